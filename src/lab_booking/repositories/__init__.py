from .base import CRUDBase
from .booking import BookingRepository, booking_repository
from .slot import SlotRepository, slot_repository

__all__ = [
    'CRUDBase',
    'SlotRepository',
    'slot_repository',
    'BookingRepository',
    'booking_repository',
]
