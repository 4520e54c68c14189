from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy.orm import Session

from daycare.core.errors import PersistenceError
from daycare.db import get_db
from daycare.request_context import EndpointNameRoute
from daycare.routers.common import get_acting_user_id, to_http_error
from daycare.schemas import SubscriptionCreateRequest, SubscriptionStatusUpdateRequest
from daycare.services.notification_service import SubscriptionNotifier
from daycare.services.subscription_service import (
    create_subscription,
    get_subscription,
    list_subscriptions,
    update_subscription_status,
    withdraw_subscription,
)


router = APIRouter(prefix='/subscriptions', tags=['Subscriptions'], route_class=EndpointNameRoute)


def get_notifier() -> SubscriptionNotifier:
    return SubscriptionNotifier()


@router.post('', status_code=201)
def create(
    payload: SubscriptionCreateRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    acting_user_id: int = Depends(get_acting_user_id),
    notifier: SubscriptionNotifier = Depends(get_notifier),
):
    try:
        result = create_subscription(db, payload, acting_user_id, dispatch_notifications=False)
    except (ValueError, PersistenceError) as exc:
        raise to_http_error(exc) from exc

    background_tasks.add_task(notifier.dispatch, result.notification)
    return {
        'message': 'Subscription created successfully',
        'subscription': result.subscription,
        'invoice_number': result.invoice_number,
        'warnings': result.warnings,
    }


@router.get('')
def list_all(
    user_id: int | None = None,
    status: str | None = None,
    page: int = 1,
    limit: int = 10,
    db: Session = Depends(get_db),
):
    return list_subscriptions(db, user_id=user_id, status=status, page=page, limit=limit)


@router.get('/{code}')
def detail(code: str, db: Session = Depends(get_db)):
    try:
        return get_subscription(db, code)
    except ValueError as exc:
        raise to_http_error(exc) from exc


@router.patch('/{code}/status')
def change_status(
    code: str,
    payload: SubscriptionStatusUpdateRequest,
    db: Session = Depends(get_db),
    acting_user_id: int = Depends(get_acting_user_id),
):
    try:
        subscription = update_subscription_status(db, code, payload.status, acting_user_id=acting_user_id)
    except (ValueError, PersistenceError) as exc:
        raise to_http_error(exc) from exc
    return {'message': f'Subscription {payload.status}', 'subscription': subscription}


@router.delete('/{code}')
def withdraw(
    code: str,
    db: Session = Depends(get_db),
    acting_user_id: int = Depends(get_acting_user_id),
):
    if acting_user_id <= 0:
        raise HTTPException(status_code=401, detail='Missing X-User-Id header')
    try:
        return withdraw_subscription(db, code, acting_user_id=acting_user_id, owner_id=acting_user_id)
    except (ValueError, PersistenceError) as exc:
        raise to_http_error(exc) from exc
