from typing import Optional
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status
from loguru import logger

from lab_booking.core.auth import Admin, AnyUser, Teacher
from lab_booking.core.constants import LEVEL_MAX, LEVEL_MIN
from lab_booking.core.db import DbSession
from lab_booking.core.dependencies import Bookings, Cache, Slots
from lab_booking.core.exceptions import LabBookingError, ValidationError
from lab_booking.schemas.booking import RosterEntry
from lab_booking.schemas.common import ErrorResponse
from lab_booking.schemas.slot import (
    SlotCreate,
    SlotInfo,
    SlotStatusUpdate,
    SlotUpdate,
    SlotWithRoster,
)
from lab_booking.utils.enums import UserRole
from lab_booking.utils.http import internal_error
from lab_booking.utils.logging_decorator import event_logger

router = APIRouter(prefix='/lab', tags=['Лабораторные занятия'])

ERROR_RESPONSES = {
    status.HTTP_400_BAD_REQUEST: {'model': ErrorResponse},
    status.HTTP_403_FORBIDDEN: {'model': ErrorResponse},
    status.HTTP_404_NOT_FOUND: {'model': ErrorResponse},
    status.HTTP_409_CONFLICT: {'model': ErrorResponse},
    status.HTTP_500_INTERNAL_SERVER_ERROR: {'model': ErrorResponse},
}


@router.post(
    '/slots',
    response_model=SlotInfo,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
)
@event_logger('Создана', 'Slot')
async def create_slot(
    slot_data: SlotCreate,
    session: DbSession,
    current_user: Teacher,
    store: Slots,
    cache: Cache,
) -> SlotInfo:
    """Публикует новое лабораторное занятие.

    Args:
        slot_data: Уровень, дата, время, тема, место и вместимость
        session: Асинхронная сессия базы данных
        current_user: Преподаватель, который становится владельцем
        store: Каталог занятий
        cache: Сервис кеширования
    Returns:
        SlotInfo: Созданное занятие без записей
    Raises:
        HTTPException: 400 при нарушении ограничений полей

    """
    try:
        slot = await store.create_slot(session, slot_data, current_user)
        await cache.clear_teacher_slots(current_user.id)
        return slot
    except (LabBookingError, HTTPException):
        raise
    except Exception as e:
        raise internal_error('Ошибка при создании занятия', e)


@router.get(
    '/slots',
    response_model=list[SlotInfo],
    responses=ERROR_RESPONSES,
)
async def get_all_slots(
    session: DbSession,
    current_user: Admin,
    store: Slots,
    show_all: bool = Query(False, description='Показывать скрытые занятия?'),
) -> list[SlotInfo]:
    """Список всех занятий для администратора."""
    try:
        return await store.list_all(session, show_all=show_all)
    except Exception as e:
        raise internal_error('Ошибка при получении списка занятий', e)


@router.get(
    '/slots/available',
    response_model=list[SlotInfo],
    responses=ERROR_RESPONSES,
)
async def get_available_slots(
    session: DbSession,
    current_user: AnyUser,
    store: Slots,
    level: Optional[int] = Query(
        None,
        ge=LEVEL_MIN,
        le=LEVEL_MAX,
        description='Уровень занятий (студенту по умолчанию его уровень)',
    ),
) -> list[SlotInfo]:
    """Активные занятия уровня, на которые ещё можно записаться.

    Студент видит только занятия своего уровня: если уровень
    не передан, берётся уровень из токена.
    """
    if current_user.role == UserRole.STUDENT:
        if level is None:
            level = current_user.level
        elif level != current_user.level:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail='Студенту доступны только занятия своего уровня',
            )
    if level is None:
        raise ValidationError('Не указан уровень занятий')
    try:
        return await store.list_available(session, level)
    except LabBookingError:
        raise
    except Exception as e:
        raise internal_error('Ошибка при получении доступных занятий', e)


@router.get(
    '/teacher/slots',
    response_model=list[SlotWithRoster],
    responses=ERROR_RESPONSES,
)
async def get_teacher_slots(
    session: DbSession,
    current_user: Teacher,
    store: Slots,
    cache: Cache,
) -> list[SlotWithRoster]:
    """Занятия преподавателя со списками записавшихся, с кешированием."""
    cache_key = await cache.teacher_slots_key(current_user.id)
    try:
        cached_slots = await cache.get(cache_key)
        if cached_slots is not None:
            logger.debug(f'Кеш попадание для занятий: {cache_key}')
            return [
                SlotWithRoster.model_validate(slot_data)
                for slot_data in cached_slots
            ]
        logger.debug(f'Кеш промах для занятий: {cache_key}')
        db_slots = await store.list_by_teacher(session, current_user.id)
        slots = [SlotWithRoster.model_validate(slot) for slot in db_slots]
        await cache.set(
            cache_key,
            [slot.model_dump(mode='json') for slot in slots],
        )
        return slots
    except Exception as e:
        raise internal_error('Ошибка при получении занятий преподавателя', e)


@router.get(
    '/slots/{slot_id}',
    response_model=SlotInfo,
    responses=ERROR_RESPONSES,
)
async def get_slot_by_id(
    slot_id: UUID,
    session: DbSession,
    current_user: AnyUser,
    store: Slots,
) -> SlotInfo:
    """Информация о занятии по идентификатору."""
    try:
        return await store.get_slot(session, slot_id)
    except LabBookingError:
        raise
    except Exception as e:
        raise internal_error(f'Ошибка при получении занятия {slot_id}', e)


@router.patch(
    '/slots/{slot_id}',
    response_model=SlotInfo,
    responses=ERROR_RESPONSES,
)
@event_logger('Обновлена', 'Slot')
async def update_slot(
    slot_id: UUID,
    update_data: SlotUpdate,
    session: DbSession,
    current_user: Teacher,
    store: Slots,
    cache: Cache,
) -> SlotInfo:
    """Обновляет занятие владельцем.

    Args:
        slot_id: UUID занятия
        update_data: Изменяемые поля
        session: Асинхронная сессия базы данных
        current_user: Преподаватель-владелец
        store: Каталог занятий
        cache: Сервис кеширования
    Returns:
        SlotInfo: Обновлённое занятие
    Raises:
        HTTPException: 403 если занятие принадлежит другому преподавателю
        HTTPException: 404 если занятие не найдено
        HTTPException: 409 если вместимость меньше числа записей

    """
    try:
        slot = await store.update_slot(
            session,
            slot_id,
            update_data,
            current_user.id,
        )
        await cache.clear_teacher_slots(current_user.id)
        return slot
    except (LabBookingError, HTTPException):
        raise
    except Exception as e:
        raise internal_error(f'Ошибка при обновлении занятия {slot_id}', e)


@router.patch(
    '/slots/{slot_id}/status',
    response_model=SlotInfo,
    responses=ERROR_RESPONSES,
)
@event_logger('Обновлена', 'Slot')
async def set_slot_status(
    slot_id: UUID,
    status_data: SlotStatusUpdate,
    session: DbSession,
    current_user: Teacher,
    store: Slots,
    cache: Cache,
) -> SlotInfo:
    """Открывает или закрывает запись на занятие."""
    try:
        slot = await store.set_active(
            session,
            slot_id,
            current_user.id,
            status_data.is_active,
        )
        await cache.clear_teacher_slots(current_user.id)
        return slot
    except (LabBookingError, HTTPException):
        raise
    except Exception as e:
        raise internal_error(
            f'Ошибка при изменении статуса занятия {slot_id}',
            e,
        )


@router.delete(
    '/slots/{slot_id}',
    response_model=list[RosterEntry],
    responses=ERROR_RESPONSES,
)
@event_logger('Удалена', 'Slot')
async def delete_slot(
    slot_id: UUID,
    session: DbSession,
    current_user: Teacher,
    store: Slots,
    cache: Cache,
) -> list[RosterEntry]:
    """Удаляет занятие и отменяет все записи на него.

    Returns:
        list[RosterEntry]: Записи, отменённые вместе с занятием

    """
    try:
        cancelled = await store.delete_slot(session, slot_id, current_user.id)
        await cache.clear_teacher_slots(current_user.id)
        return cancelled
    except (LabBookingError, HTTPException):
        raise
    except Exception as e:
        raise internal_error(f'Ошибка при удалении занятия {slot_id}', e)


@router.get(
    '/slots/{slot_id}/bookings',
    response_model=list[RosterEntry],
    responses=ERROR_RESPONSES,
)
async def get_slot_roster(
    slot_id: UUID,
    session: DbSession,
    current_user: AnyUser,
    ledger: Bookings,
) -> list[RosterEntry]:
    """Список записавшихся студентов в порядке записи.

    Доступен преподавателю-владельцу и администратору.
    """
    if current_user.role == UserRole.STUDENT:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail='Недостаточно прав для выполнения операции',
        )
    teacher_id = (
        current_user.id if current_user.role == UserRole.TEACHER else None
    )
    try:
        return await ledger.list_for_slot(session, slot_id, teacher_id)
    except LabBookingError:
        raise
    except Exception as e:
        raise internal_error(
            f'Ошибка при получении записей занятия {slot_id}',
            e,
        )
