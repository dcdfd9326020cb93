from typing import List, Optional
from uuid import UUID

from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from lab_booking.core.db import atomic, utcnow
from lab_booking.core.exceptions import (
    AuthorizationError,
    CapacityError,
    DuplicateBookingError,
    InactiveSlotError,
    NoOpError,
    NotFoundError,
    SlotFullError,
)
from lab_booking.core.locks import slot_locks
from lab_booking.models import Booking
from lab_booking.models.booking import ACTIVE_BOOKING_INDEX
from lab_booking.repositories.booking import booking_repository
from lab_booking.repositories.slot import slot_repository
from lab_booking.schemas.auth import Caller
from lab_booking.services.slot_store import SlotStore, slot_store
from lab_booking.utils.enums import BookingStatus

SQLITE_ACTIVE_BOOKING_CONFLICT = (
    'UNIQUE constraint failed: booking.student_id, booking.slot_id'
)


def is_active_booking_conflict(error: IntegrityError) -> bool:
    """Нарушен ли уникальный индекс активных записей студента.

    Имя ограничения берётся из ошибки драйвера, если он его сообщает,
    иначе ищется в тексте ошибки.
    """
    orig = error.orig
    for source in (orig, getattr(orig, '__cause__', None)):
        diag = getattr(source, 'diag', None)
        constraint_name = getattr(diag, 'constraint_name', None) or getattr(
            source,
            'constraint_name',
            None,
        )
        if constraint_name:
            return constraint_name == ACTIVE_BOOKING_INDEX
    message = str(orig)
    return (
        ACTIVE_BOOKING_INDEX in message
        or SQLITE_ACTIVE_BOOKING_CONFLICT in message
    )


class BookingLedger:
    """Журнал записей студентов на лабораторные занятия.

    Создание и отмена записи выполняются под блокировкой слота
    и одной транзакцией вместе с изменением счётчика мест, поэтому
    current_bookings всегда равен числу подтверждённых записей.
    """

    def __init__(self, store: SlotStore) -> None:
        """Инициализация журнала поверх каталога занятий."""
        self.store = store

    async def create_booking(
        self,
        session: AsyncSession,
        slot_id: UUID,
        student: Caller,
        notes: Optional[str] = None,
    ) -> Booking:
        """Записывает студента на занятие.

        Args:
            session: Асинхронная сессия базы данных
            slot_id: UUID занятия
            student: Студент, который записывается
            notes: Необязательный комментарий студента
        Returns:
            Booking: Подтверждённая запись с данными занятия
        Raises:
            NotFoundError: если занятие не найдено
            InactiveSlotError: если занятие скрыто преподавателем
            DuplicateBookingError: если студент уже записан
            SlotFullError: если свободных мест нет

        """
        async with slot_locks.hold(slot_id):
            try:
                async with atomic(session):
                    booking = await self._reserve_seat(
                        session,
                        slot_id,
                        student,
                        notes,
                    )
            except IntegrityError as e:
                if not is_active_booking_conflict(e):
                    raise
                logger.warning(
                    f'Конфликт уникальности записи студента {student.id} '
                    f'на занятие {slot_id}: {e.orig}',
                )
                raise DuplicateBookingError(
                    'Вы уже записаны на это занятие',
                ) from e
        logger.info(
            f'Студент {student.id} записан на занятие {slot_id} '
            f'(запись {booking.id})',
        )
        return await self.get_booking(session, booking.id)

    async def _reserve_seat(
        self,
        session: AsyncSession,
        slot_id: UUID,
        student: Caller,
        notes: Optional[str],
    ) -> Booking:
        """Проверки и изменения записи внутри открытой транзакции."""
        slot = await slot_repository.get_existing(
            session,
            slot_id,
            for_update=True,
        )
        if slot is None:
            raise NotFoundError('Занятие не найдено')
        if not slot.is_active:
            raise InactiveSlotError('Запись на это занятие закрыта')
        if await booking_repository.get_active(session, student.id, slot_id):
            raise DuplicateBookingError('Вы уже записаны на это занятие')
        try:
            await self.store.increment_booked(session, slot_id)
        except CapacityError as e:
            logger.info(f'Занятие {slot_id} заполнено, запись отклонена')
            raise SlotFullError('В занятии не осталось свободных мест') from e
        booking = Booking(
            slot_id=slot_id,
            student_id=student.id,
            student_name=student.display_name,
            notes=notes,
            status=BookingStatus.CONFIRMED,
        )
        return await booking_repository.add(session, booking)

    async def cancel_booking(
        self,
        session: AsyncSession,
        booking_id: UUID,
        student_id: str,
    ) -> Booking:
        """Отменяет запись студента и освобождает место.

        Raises:
            NotFoundError: если запись не найдена
            AuthorizationError: если запись принадлежит другому студенту
            NoOpError: если запись уже отменена

        """
        booking = await self.get_booking(session, booking_id)
        if booking.student_id != student_id:
            logger.warning(
                f'Студент {student_id} пытался отменить чужую запись '
                f'{booking_id}',
            )
            raise AuthorizationError('Отменить можно только свою запись')
        slot_id = booking.slot_id
        async with slot_locks.hold(slot_id):
            async with atomic(session):
                booking = await booking_repository.get(
                    session,
                    id=booking_id,
                    for_update=True,
                )
                if booking.status != BookingStatus.CONFIRMED:
                    raise NoOpError('Запись уже отменена')
                booking.status = BookingStatus.CANCELLED
                booking.cancelled_at = utcnow()
                await session.flush()
                await self.store.decrement_booked(session, slot_id)
        logger.info(
            f'Студент {student_id} отменил запись {booking_id} '
            f'на занятие {slot_id}',
        )
        return await self.get_booking(session, booking_id)

    async def list_for_student(
        self,
        session: AsyncSession,
        student_id: str,
    ) -> List[Booking]:
        """История записей студента во всех статусах."""
        return await booking_repository.get_multi_by_student(
            session,
            student_id,
        )

    async def list_for_slot(
        self,
        session: AsyncSession,
        slot_id: UUID,
        teacher_id: Optional[str] = None,
    ) -> List[Booking]:
        """Список записавшихся в порядке записи.

        Если передан teacher_id, список доступен только владельцу.
        """
        slot = await self.store.get_slot(session, slot_id)
        if teacher_id is not None and slot.teacher_id != teacher_id:
            raise AuthorizationError(
                'Список студентов доступен только владельцу занятия',
            )
        return await booking_repository.get_roster(session, slot_id)

    async def list_all(
        self,
        session: AsyncSession,
        show_all: bool = False,
    ) -> List[Booking]:
        """Все записи для администратора."""
        return await booking_repository.get_multi_for_admin(
            session,
            show_all=show_all,
        )

    async def get_booking(
        self,
        session: AsyncSession,
        booking_id: UUID,
    ) -> Booking:
        """Возвращает запись с данными занятия или NotFoundError."""
        booking = await booking_repository.get_with_slot(session, booking_id)
        if booking is None:
            raise NotFoundError('Запись не найдена')
        return booking


booking_ledger = BookingLedger(slot_store)
