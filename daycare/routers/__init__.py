from daycare.routers import pricing, promotions, subscriptions

__all__ = [
    'pricing',
    'promotions',
    'subscriptions',
]
