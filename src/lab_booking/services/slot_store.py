from typing import Any, List
from uuid import UUID

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from lab_booking.core.constants import LEVEL_MAX, LEVEL_MIN
from lab_booking.core.db import atomic, utcnow
from lab_booking.core.exceptions import (
    AuthorizationError,
    CapacityError,
    NotFoundError,
    ValidationError,
)
from lab_booking.core.locks import slot_locks
from lab_booking.models import Booking, Slot
from lab_booking.repositories.booking import booking_repository
from lab_booking.repositories.slot import slot_repository
from lab_booking.schemas.auth import Caller
from lab_booking.schemas.slot import SlotCreate, SlotUpdate
from lab_booking.utils.enums import BookingStatus

# Поля, которые не могут принимать значение NULL при обновлении.
REQUIRED_FIELDS = (
    'level',
    'date',
    'start_time',
    'end_time',
    'topic',
    'location',
    'max_students',
)


class SlotStore:
    """Каталог лабораторных занятий и их заполненности.

    Счётчик current_bookings изменяется только через
    increment_booked/decrement_booked внутри транзакции вызывающего.
    """

    async def create_slot(
        self,
        session: AsyncSession,
        obj_in: SlotCreate,
        teacher: Caller,
    ) -> Slot:
        """Публикует новое занятие преподавателя.

        Args:
            session: Асинхронная сессия базы данных
            obj_in: Данные занятия
            teacher: Преподаватель, который становится владельцем
        Returns:
            Slot: Созданное занятие, активное и без записей
        Raises:
            ValidationError: если нарушены ограничения полей

        """
        data = obj_in.model_dump()
        self._ensure_valid(data)
        slot = Slot(
            **data,
            teacher_id=teacher.id,
            teacher_name=teacher.display_name,
            current_bookings=0,
            is_active=True,
        )
        async with atomic(session):
            await slot_repository.add(session, slot)
        logger.info(
            f'Преподаватель {teacher.id} создал занятие {slot.id} '
            f'({slot.date} {slot.start_time}-{slot.end_time}, '
            f'мест: {slot.max_students})',
        )
        return slot

    async def update_slot(
        self,
        session: AsyncSession,
        slot_id: UUID,
        obj_in: SlotUpdate,
        teacher_id: str,
    ) -> Slot:
        """Обновляет поля занятия владельцем.

        Args:
            session: Асинхронная сессия базы данных
            slot_id: UUID занятия
            obj_in: Изменяемые поля
            teacher_id: Идентификатор преподавателя
        Returns:
            Slot: Обновлённое занятие
        Raises:
            NotFoundError: если занятие не найдено
            AuthorizationError: если занятие принадлежит другому
            ValidationError: если итоговое состояние некорректно
            CapacityError: если вместимость меньше числа записей

        """
        update_data = self._clean_update(obj_in.model_dump(exclude_unset=True))
        async with slot_locks.hold(slot_id):
            async with atomic(session):
                slot = await self._get_owned(
                    session,
                    slot_id,
                    teacher_id,
                    for_update=True,
                )
                merged = {
                    field: update_data.get(field, getattr(slot, field))
                    for field in REQUIRED_FIELDS
                }
                self._ensure_valid(merged)
                if merged['max_students'] < slot.current_bookings:
                    logger.warning(
                        f'Отказ в уменьшении вместимости занятия {slot_id}: '
                        f'{merged["max_students"]} < {slot.current_bookings}',
                    )
                    raise CapacityError(
                        'Нельзя установить вместимость меньше числа '
                        f'записавшихся студентов ({slot.current_bookings})',
                    )
                slot_repository.apply_update(slot, update_data)
        logger.info(f'Занятие {slot_id} обновлено: {sorted(update_data)}')
        return slot

    async def set_active(
        self,
        session: AsyncSession,
        slot_id: UUID,
        teacher_id: str,
        active: bool,
    ) -> Slot:
        """Показывает или скрывает занятие от студентов."""
        async with atomic(session):
            slot = await self._get_owned(session, slot_id, teacher_id)
            slot.is_active = active
        logger.info(
            f'Занятие {slot_id} '
            f'{"активировано" if active else "деактивировано"}',
        )
        return slot

    async def delete_slot(
        self,
        session: AsyncSession,
        slot_id: UUID,
        teacher_id: str,
    ) -> List[Booking]:
        """Удаляет занятие, отменяя все активные записи на него.

        Записи не удаляются физически: они получают статус CANCELLED
        и остаются в истории студентов. Само занятие помечается
        удалённым и больше не видно ни в одном запросе.

        Returns:
            List[Booking]: Записи, отменённые вместе с занятием

        """
        async with slot_locks.hold(slot_id):
            async with atomic(session):
                slot = await self._get_owned(
                    session,
                    slot_id,
                    teacher_id,
                    for_update=True,
                )
                cancelled = await booking_repository.get_roster(
                    session,
                    slot_id,
                    for_update=True,
                )
                now = utcnow()
                for booking in cancelled:
                    booking.status = BookingStatus.CANCELLED
                    booking.cancelled_at = now
                    await session.flush()
                    await self.decrement_booked(session, slot_id)
                slot.is_active = False
                slot.deleted_at = now
        logger.info(
            f'Занятие {slot_id} удалено, отменено записей: {len(cancelled)}',
        )
        return cancelled

    async def list_available(
        self,
        session: AsyncSession,
        level: int,
    ) -> List[Slot]:
        """Активные занятия уровня со свободными местами по времени."""
        if not LEVEL_MIN <= level <= LEVEL_MAX:
            raise ValidationError(
                f'Уровень должен быть от {LEVEL_MIN} до {LEVEL_MAX}',
            )
        return await slot_repository.get_available_by_level(session, level)

    async def list_by_teacher(
        self,
        session: AsyncSession,
        teacher_id: str,
    ) -> List[Slot]:
        """Все занятия преподавателя, включая скрытые."""
        return await slot_repository.get_multi_by_teacher(session, teacher_id)

    async def list_all(
        self,
        session: AsyncSession,
        show_all: bool = False,
    ) -> List[Slot]:
        """Все занятия для администратора."""
        return await slot_repository.get_multi_for_admin(
            session,
            show_all=show_all,
        )

    async def get_slot(self, session: AsyncSession, slot_id: UUID) -> Slot:
        """Возвращает занятие или выбрасывает NotFoundError."""
        slot = await slot_repository.get_existing(session, slot_id)
        if slot is None:
            raise NotFoundError('Занятие не найдено')
        return slot

    async def increment_booked(
        self,
        session: AsyncSession,
        slot_id: UUID,
    ) -> None:
        """Занимает одно место. Не фиксирует транзакцию."""
        if not await slot_repository.increment_booked(session, slot_id):
            raise CapacityError('В занятии не осталось свободных мест')

    async def decrement_booked(
        self,
        session: AsyncSession,
        slot_id: UUID,
    ) -> None:
        """Освобождает одно место. Не фиксирует транзакцию."""
        if not await slot_repository.decrement_booked(session, slot_id):
            logger.warning(
                f'Счётчик записей занятия {slot_id} уже равен нулю',
            )

    async def _get_owned(
        self,
        session: AsyncSession,
        slot_id: UUID,
        teacher_id: str,
        *,
        for_update: bool = False,
    ) -> Slot:
        """Возвращает занятие, если им владеет указанный преподаватель."""
        slot = await slot_repository.get_existing(
            session,
            slot_id,
            for_update=for_update,
        )
        if slot is None:
            raise NotFoundError('Занятие не найдено')
        if slot.teacher_id != teacher_id:
            logger.warning(
                f'Преподаватель {teacher_id} пытался изменить чужое '
                f'занятие {slot_id}',
            )
            raise AuthorizationError(
                'Изменять занятие может только его владелец',
            )
        return slot

    @staticmethod
    def _clean_update(update_data: dict[str, Any]) -> dict[str, Any]:
        """Отбрасывает NULL для обязательных полей, пустое описание -> None."""
        cleaned = {
            field: value
            for field, value in update_data.items()
            if value is not None or field not in REQUIRED_FIELDS
        }
        if 'description' in cleaned and not cleaned['description']:
            cleaned['description'] = None
        return cleaned

    @staticmethod
    def _ensure_valid(data: dict[str, Any]) -> None:
        """Проверяет инварианты занятия."""
        topic = data.get('topic')
        if not isinstance(topic, str) or not topic.strip():
            raise ValidationError('Тема занятия не может быть пустой')
        max_students = data.get('max_students')
        if not isinstance(max_students, int) or max_students < 1:
            raise ValidationError(
                'Количество мест должно быть не меньше одного',
            )
        level = data.get('level')
        if not isinstance(level, int) or not LEVEL_MIN <= level <= LEVEL_MAX:
            raise ValidationError(
                f'Уровень должен быть от {LEVEL_MIN} до {LEVEL_MAX}',
            )
        start_time, end_time = data.get('start_time'), data.get('end_time')
        if start_time is None or end_time is None:
            raise ValidationError(
                'Не указано время начала или окончания занятия',
            )
        if start_time >= end_time:
            raise ValidationError(
                'Время начала должно быть меньше времени окончания',
            )


slot_store = SlotStore()
