"""Модуль схем Pydantic для валидации и сериализации данных.

Содержит схемы для всех сущностей системы:
- Лабораторные занятия (Slot)
- Записи студентов (Booking)
- Аутентифицированный пользователь (Caller)

Идентификаторы занятий и записей имеют тип UUID, идентификаторы
пользователей приходят из внешнего сервиса и хранятся как строки.
"""

from .auth import AuthToken, Caller
from .booking import BookingCreate, BookingInfo, RosterEntry
from .common import ErrorResponse
from .slot import (
    SlotCreate,
    SlotInfo,
    SlotShortInfo,
    SlotStatusUpdate,
    SlotUpdate,
    SlotWithRoster,
)

__all__ = [
    'SlotCreate',
    'SlotInfo',
    'SlotShortInfo',
    'SlotStatusUpdate',
    'SlotUpdate',
    'SlotWithRoster',
    'BookingCreate',
    'BookingInfo',
    'RosterEntry',
    'ErrorResponse',
    'AuthToken',
    'Caller',
]
