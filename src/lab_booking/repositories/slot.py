from typing import List, Optional
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from lab_booking.models import Slot
from lab_booking.repositories.base import CRUDBase
from lab_booking.schemas.slot import SlotCreate, SlotUpdate

SLOT_ORDERING = (Slot.date, Slot.start_time, Slot.id)


class SlotRepository(CRUDBase[Slot, SlotCreate, SlotUpdate]):
    """Репозиторий для операций со слотами лабораторных занятий."""

    def __init__(self) -> None:
        """Инициализация репозитория слотов."""
        super().__init__(Slot)

    async def get_existing(
        self,
        session: AsyncSession,
        slot_id: UUID,
        *,
        for_update: bool = False,
    ) -> Optional[Slot]:
        """Получает неудалённый слот, при необходимости блокируя строку."""
        return await self.get(
            session,
            Slot.deleted_at.is_(None),
            id=slot_id,
            for_update=for_update,
            fresh=True,
        )

    async def get_available_by_level(
        self,
        session: AsyncSession,
        level: int,
    ) -> List[Slot]:
        """Активные слоты уровня, в которых остались свободные места."""
        return await self.get(
            session,
            Slot.deleted_at.is_(None),
            Slot.is_active.is_(True),
            Slot.current_bookings < Slot.max_students,
            level=level,
            many=True,
            order_by=SLOT_ORDERING,
            fresh=True,
        )

    async def get_multi_by_teacher(
        self,
        session: AsyncSession,
        teacher_id: str,
    ) -> List[Slot]:
        """Все неудалённые слоты преподавателя."""
        return await self.get(
            session,
            Slot.deleted_at.is_(None),
            teacher_id=teacher_id,
            many=True,
            order_by=SLOT_ORDERING,
            fresh=True,
        )

    async def get_multi_for_admin(
        self,
        session: AsyncSession,
        *,
        show_all: bool = False,
    ) -> List[Slot]:
        """Все слоты для администратора."""
        conditions = [Slot.deleted_at.is_(None)]
        if not show_all:
            conditions.append(Slot.is_active.is_(True))
        return await self.get(
            session,
            *conditions,
            many=True,
            order_by=SLOT_ORDERING,
            fresh=True,
        )

    async def increment_booked(
        self,
        session: AsyncSession,
        slot_id: UUID,
    ) -> bool:
        """Атомарно занимает место, если слот ещё не заполнен.

        Условие на вместимость проверяется в том же UPDATE, поэтому
        счётчик не превысит max_students даже при параллельных вызовах.
        Возвращает False, если свободных мест нет.
        """
        stmt = (
            update(Slot)
            .where(
                Slot.id == slot_id,
                Slot.current_bookings < Slot.max_students,
            )
            .values(current_bookings=Slot.current_bookings + 1)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        return result.rowcount == 1

    async def decrement_booked(
        self,
        session: AsyncSession,
        slot_id: UUID,
    ) -> bool:
        """Атомарно освобождает место, не опускаясь ниже нуля."""
        stmt = (
            update(Slot)
            .where(Slot.id == slot_id, Slot.current_bookings > 0)
            .values(current_bookings=Slot.current_bookings - 1)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        return result.rowcount == 1


slot_repository = SlotRepository()
