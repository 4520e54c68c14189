from fastapi import Header, HTTPException

from daycare.core.errors import (
    CapacityExceeded,
    InvalidPromotionCode,
    InvalidStatusTransition,
    NotFoundError,
    PersistenceError,
    PromotionIneligible,
)


def get_acting_user_id(x_user_id: int = Header(default=0, alias='X-User-Id', ge=0)) -> int:
    # Identity is resolved upstream; the gateway forwards the account id.
    return x_user_id


def to_http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, CapacityExceeded):
        return HTTPException(
            status_code=409,
            detail={
                'error': str(exc),
                'current_subscriptions': exc.current,
                'max_capacity': exc.maximum,
            },
        )
    if isinstance(exc, PromotionIneligible):
        return HTTPException(status_code=400, detail={'error': str(exc), 'reason': exc.reason})
    if isinstance(exc, InvalidPromotionCode):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, InvalidStatusTransition):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, PersistenceError):
        return HTTPException(status_code=500, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))
