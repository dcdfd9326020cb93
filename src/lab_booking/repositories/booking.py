from typing import List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from lab_booking.models import Booking
from lab_booking.repositories.base import CRUDBase
from lab_booking.schemas.booking import BookingCreate
from lab_booking.utils.enums import BookingStatus


class BookingRepository(CRUDBase[Booking, BookingCreate, BookingCreate]):
    """Репозиторий для операций с записями на занятия."""

    def __init__(self) -> None:
        """Инициализация репозитория записей."""
        super().__init__(Booking)

    async def get_with_slot(
        self,
        session: AsyncSession,
        booking_id: UUID,
    ) -> Optional[Booking]:
        """Получает запись вместе с данными занятия."""
        return await self.get(
            session,
            id=booking_id,
            options=[selectinload(Booking.slot)],
            fresh=True,
        )

    async def get_active(
        self,
        session: AsyncSession,
        student_id: str,
        slot_id: UUID,
    ) -> Optional[Booking]:
        """Активная запись студента на слот, если она есть."""
        return await self.get(
            session,
            student_id=student_id,
            slot_id=slot_id,
            status=BookingStatus.CONFIRMED,
        )

    async def get_roster(
        self,
        session: AsyncSession,
        slot_id: UUID,
        *,
        for_update: bool = False,
    ) -> List[Booking]:
        """Подтверждённые записи слота в порядке создания."""
        return await self.get(
            session,
            slot_id=slot_id,
            status=BookingStatus.CONFIRMED,
            many=True,
            order_by=(Booking.created_at, Booking.id),
            for_update=for_update,
            fresh=True,
        )

    async def get_multi_by_student(
        self,
        session: AsyncSession,
        student_id: str,
    ) -> List[Booking]:
        """История записей студента, новые сверху."""
        return await self.get(
            session,
            student_id=student_id,
            many=True,
            order_by=(Booking.created_at.desc(), Booking.id),
            options=[selectinload(Booking.slot)],
            fresh=True,
        )

    async def get_multi_for_admin(
        self,
        session: AsyncSession,
        *,
        show_all: bool = False,
    ) -> List[Booking]:
        """Все записи для администратора."""
        conditions = []
        if not show_all:
            conditions.append(Booking.status == BookingStatus.CONFIRMED)
        return await self.get(
            session,
            *conditions,
            many=True,
            order_by=(Booking.created_at.desc(), Booking.id),
            options=[selectinload(Booking.slot)],
            fresh=True,
        )


booking_repository = BookingRepository()
