from typing import Annotated

from fastapi import Depends

from lab_booking.services.booking_ledger import BookingLedger, booking_ledger
from lab_booking.services.cache_service import CacheService, cache_service
from lab_booking.services.slot_store import SlotStore, slot_store


async def get_cache_service() -> CacheService:
    """Зависимость для получения сервиса кеширования."""
    return cache_service


async def get_slot_store() -> SlotStore:
    """Зависимость для получения каталога занятий."""
    return slot_store


async def get_booking_ledger() -> BookingLedger:
    """Зависимость для получения журнала записей."""
    return booking_ledger


Cache = Annotated[CacheService, Depends(get_cache_service)]
Slots = Annotated[SlotStore, Depends(get_slot_store)]
Bookings = Annotated[BookingLedger, Depends(get_booking_ledger)]
