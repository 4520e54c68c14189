from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from daycare.db import get_db
from daycare.models import Service
from daycare.request_context import EndpointNameRoute
from daycare.services.pricing_service import compute_session_pricing, get_pricing_description, get_session_options


router = APIRouter(prefix='/pricing', tags=['Pricing'], route_class=EndpointNameRoute)


@router.get('/options')
def options(service_id: int | None = None, db: Session = Depends(get_db)):
    included = None
    if service_id is not None:
        service = db.query(Service).filter(Service.id == service_id, Service.is_active.is_(True)).first()
        if not service:
            raise HTTPException(status_code=404, detail='Service not found or not available')
        included = service.included_sessions
    return get_session_options(included_sessions=included)


@router.get('/quote')
def quote(service_id: int, sessions: int, db: Session = Depends(get_db)):
    service = db.query(Service).filter(Service.id == service_id, Service.is_active.is_(True)).first()
    if not service:
        raise HTTPException(status_code=404, detail='Service not found or not available')
    try:
        pricing = compute_session_pricing(service.price, sessions, included_sessions=service.included_sessions)
        description = get_pricing_description(sessions, service.price, included_sessions=service.included_sessions)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {'service_id': service.id, 'service_name': service.name, 'pricing': pricing.as_dict(), 'description': description}
