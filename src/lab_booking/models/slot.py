import datetime as dt
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    Time,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lab_booking.core.constants import (
    LOCATION_MAX_LENGTH,
    PERSON_ID_MAX_LENGTH,
    PERSON_NAME_MAX_LENGTH,
    SECONDS_IN_MINUTE,
    TOPIC_MAX_LENGTH,
)
from lab_booking.core.db import Base

if TYPE_CHECKING:
    from lab_booking.models import Booking


class Slot(Base):
    """Таблица лабораторных занятий, открытых для записи."""

    teacher_id: Mapped[str] = mapped_column(
        String(PERSON_ID_MAX_LENGTH),
        index=True,
        nullable=False,
    )
    teacher_name: Mapped[str] = mapped_column(
        String(PERSON_NAME_MAX_LENGTH),
        nullable=False,
        default='',
    )
    level: Mapped[int] = mapped_column(Integer, nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    start_time: Mapped[dt.time] = mapped_column(Time, nullable=False)
    end_time: Mapped[dt.time] = mapped_column(Time, nullable=False)
    topic: Mapped[str] = mapped_column(
        String(TOPIC_MAX_LENGTH),
        nullable=False,
    )
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    location: Mapped[str] = mapped_column(
        String(LOCATION_MAX_LENGTH),
        nullable=False,
        default='',
    )
    max_students: Mapped[int] = mapped_column(Integer, nullable=False)
    current_bookings: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default=text('0'),
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default=text('true'),
    )
    deleted_at: Mapped[Optional[dt.datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    confirmed_bookings: Mapped[List['Booking']] = relationship(
        'Booking',
        primaryjoin=(
            "and_(Slot.id == foreign(Booking.slot_id), "
            "Booking.status == 'CONFIRMED')"
        ),
        order_by='Booking.created_at',
        viewonly=True,
        lazy='selectin',
    )

    __table_args__ = (
        CheckConstraint('start_time < end_time', name='ck_slot_interval'),
        CheckConstraint('max_students >= 1', name='ck_slot_max_students'),
        CheckConstraint(
            'current_bookings >= 0',
            name='ck_slot_bookings_non_negative',
        ),
        CheckConstraint(
            'current_bookings <= max_students',
            name='ck_slot_bookings_within_capacity',
        ),
        Index('ix_slot_level_date', 'level', 'date', 'start_time'),
    )

    @property
    def duration_minutes(self) -> int:
        """Длительность занятия в минутах, вычисляется из времени."""
        start = dt.datetime.combine(self.date, self.start_time)
        end = dt.datetime.combine(self.date, self.end_time)
        return int((end - start).total_seconds() // SECONDS_IN_MINUTE)

    @property
    def available_seats(self) -> int:
        """Количество свободных мест."""
        return max(self.max_students - self.current_bookings, 0)

    @property
    def is_available(self) -> bool:
        """Доступен ли слот для записи прямо сейчас."""
        return (
            self.is_active
            and self.deleted_at is None
            and self.current_bookings < self.max_students
        )
