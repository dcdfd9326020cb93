import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, Enum, ForeignKey, Index, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lab_booking.core.constants import (
    PERSON_ID_MAX_LENGTH,
    PERSON_NAME_MAX_LENGTH,
)
from lab_booking.core.db import Base
from lab_booking.utils.enums import BookingStatus

if TYPE_CHECKING:
    from lab_booking.models import Slot

ACTIVE_BOOKING_CONDITION = "status = 'CONFIRMED'"
ACTIVE_BOOKING_INDEX = 'uq_booking_active_student_slot'


class Booking(Base):
    """Таблица записей студентов на лабораторные занятия."""

    slot_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey('slot.id', ondelete='RESTRICT'),
        index=True,
        nullable=False,
    )
    student_id: Mapped[str] = mapped_column(
        String(PERSON_ID_MAX_LENGTH),
        index=True,
        nullable=False,
    )
    student_name: Mapped[str] = mapped_column(
        String(PERSON_NAME_MAX_LENGTH),
        nullable=False,
        default='',
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[BookingStatus] = mapped_column(
        Enum(BookingStatus, name='booking_status'),
        nullable=False,
        default=BookingStatus.CONFIRMED,
        server_default=BookingStatus.CONFIRMED.value,
    )
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    slot: Mapped['Slot'] = relationship(
        uselist=False,
        lazy='selectin',
    )

    __table_args__ = (
        Index(
            ACTIVE_BOOKING_INDEX,
            'student_id',
            'slot_id',
            unique=True,
            postgresql_where=text(ACTIVE_BOOKING_CONDITION),
            sqlite_where=text(ACTIVE_BOOKING_CONDITION),
        ),
        Index('ix_booking_slot_status', 'slot_id', 'status', 'created_at'),
    )

    @property
    def is_confirmed(self) -> bool:
        """Активна ли запись."""
        return self.status == BookingStatus.CONFIRMED
