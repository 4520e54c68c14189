from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from daycare.db import get_db
from daycare.request_context import EndpointNameRoute
from daycare.schemas import PromotionValidateRequest
from daycare.services.promotion_service import validate_promotion_code


router = APIRouter(prefix='/promotions', tags=['Promotions'], route_class=EndpointNameRoute)


@router.post('/validate')
def validate(payload: PromotionValidateRequest, db: Session = Depends(get_db)):
    return validate_promotion_code(
        db,
        code=payload.promo_code,
        service_id=payload.service_id,
        child_age_months=payload.child_age,
        original_price=payload.original_price,
    )
