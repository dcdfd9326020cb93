from .booking import router as booking_router
from .healthcheck import router as healthcheck_router
from .slot import router as slot_router

__all__ = [
    'slot_router',
    'booking_router',
    'healthcheck_router',
]

routers = [
    slot_router,
    booking_router,
    healthcheck_router,
]
