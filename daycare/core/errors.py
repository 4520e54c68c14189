from __future__ import annotations


class SubscriptionValidationError(ValueError):
    """Request rejected before anything was written."""


class NoScheduleSelected(SubscriptionValidationError):
    def __init__(self, message: str = 'At least one weekly schedule slot must be selected'):
        super().__init__(message)


class InvalidSessionCount(SubscriptionValidationError):
    def __init__(self, sessions: int, minimum: int, maximum: int):
        self.sessions = sessions
        self.minimum = minimum
        self.maximum = maximum
        super().__init__(f'Sessions per month must be between {minimum} and {maximum} (got {sessions})')


class NotFoundError(ValueError):
    pass


class ServiceUnavailable(NotFoundError):
    def __init__(self, service_id: int):
        self.service_id = service_id
        super().__init__('Service not found or not available')


class InvalidPromotionCode(NotFoundError):
    def __init__(self, code: str):
        self.code = code
        super().__init__('Invalid promotion code')


class SubscriptionNotFound(NotFoundError):
    def __init__(self, code: str):
        self.code = code
        super().__init__('Subscription not found')


class CapacityExceeded(ValueError):
    def __init__(self, *, current: int, maximum: int, month: int, year: int):
        self.current = current
        self.maximum = maximum
        self.month = month
        self.year = year
        super().__init__(f'No places available for {month}/{year}. Maximum capacity: {maximum}')


class PromotionIneligible(ValueError):
    def __init__(self, reason: str, message: str):
        self.reason = reason
        super().__init__(message)


class InvalidStatusTransition(ValueError):
    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(f'Cannot move subscription from {current} to {requested}')


class PersistenceError(RuntimeError):
    """The provisioning write failed and was rolled back; storage details stay in the logs."""

    def __init__(self, message: str = 'Subscription could not be saved'):
        super().__init__(message)
