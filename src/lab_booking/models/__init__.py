from .booking import Booking
from .slot import Slot

__all__ = [
    'Slot',
    'Booking',
]
