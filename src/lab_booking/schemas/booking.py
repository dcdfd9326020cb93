from datetime import datetime
from typing import Annotated, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from lab_booking.core.constants import NOTES_MAX_LENGTH
from lab_booking.utils.enums import BookingStatus


class BookingCreate(BaseModel):
    """Схема для записи студента на занятие."""

    slot_id: UUID
    notes: Optional[Annotated[str, Field(max_length=NOTES_MAX_LENGTH)]] = None

    @field_validator('notes', mode='before')
    @classmethod
    def normalize_notes(cls, value: Optional[str]) -> Optional[str]:
        """Очищает комментарий от лишних пробелов."""
        if value is None:
            return None
        if not isinstance(value, str):
            raise ValueError('Комментарий должен быть строкой')
        cleaned = value.strip()
        return cleaned or None


class RosterEntry(BaseModel):
    """Запись в списке студентов занятия."""

    id: UUID
    student_id: str
    student_name: str
    notes: Optional[str] = None
    status: BookingStatus
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class BookingInfo(RosterEntry):
    """Полная схема записи вместе с данными о занятии."""

    slot_id: UUID
    slot: 'SlotShortInfo'
    cancelled_at: Optional[datetime] = None
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


from lab_booking.schemas.slot import SlotShortInfo  # noqa: E402

BookingInfo.model_rebuild()
