from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status
from loguru import logger

from lab_booking.core.auth import Admin, Student
from lab_booking.core.db import DbSession
from lab_booking.core.dependencies import Bookings, Cache
from lab_booking.core.exceptions import LabBookingError, NoOpError
from lab_booking.schemas.booking import BookingCreate, BookingInfo
from lab_booking.schemas.common import ErrorResponse
from lab_booking.utils.http import internal_error
from lab_booking.utils.logging_decorator import event_logger

router = APIRouter(prefix='/lab/bookings', tags=['Записи на занятия'])

ERROR_RESPONSES = {
    status.HTTP_400_BAD_REQUEST: {'model': ErrorResponse},
    status.HTTP_403_FORBIDDEN: {'model': ErrorResponse},
    status.HTTP_404_NOT_FOUND: {'model': ErrorResponse},
    status.HTTP_409_CONFLICT: {'model': ErrorResponse},
    status.HTTP_500_INTERNAL_SERVER_ERROR: {'model': ErrorResponse},
}


@router.post(
    '',
    response_model=BookingInfo,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
)
@event_logger('Создана', 'Booking')
async def create_booking(
    booking_data: BookingCreate,
    session: DbSession,
    current_user: Student,
    ledger: Bookings,
    cache: Cache,
) -> BookingInfo:
    """Записывает студента на занятие.

    Args:
        booking_data: Идентификатор занятия и комментарий
        session: Асинхронная сессия базы данных
        current_user: Студент, который записывается
        ledger: Журнал записей
        cache: Сервис кеширования
    Returns:
        BookingInfo: Подтверждённая запись
    Raises:
        HTTPException: 404 если занятие не найдено
        HTTPException: 409 если мест нет, запись закрыта или уже есть

    """
    try:
        booking = await ledger.create_booking(
            session,
            booking_data.slot_id,
            current_user,
            booking_data.notes,
        )
        await cache.clear_teacher_slots(booking.slot.teacher_id)
        return booking
    except (LabBookingError, HTTPException):
        raise
    except Exception as e:
        raise internal_error('Ошибка при создании записи', e)


@router.get(
    '',
    response_model=list[BookingInfo],
    responses=ERROR_RESPONSES,
)
async def get_all_bookings(
    session: DbSession,
    current_user: Admin,
    ledger: Bookings,
    show_all: bool = Query(False, description='Показывать отменённые?'),
) -> list[BookingInfo]:
    """Все записи для администратора."""
    try:
        return await ledger.list_all(session, show_all=show_all)
    except Exception as e:
        raise internal_error('Ошибка при получении списка записей', e)


@router.get(
    '/my',
    response_model=list[BookingInfo],
    responses=ERROR_RESPONSES,
)
async def get_my_bookings(
    session: DbSession,
    current_user: Student,
    ledger: Bookings,
) -> list[BookingInfo]:
    """История записей текущего студента, новые сверху."""
    try:
        return await ledger.list_for_student(session, current_user.id)
    except Exception as e:
        raise internal_error(
            f'Ошибка при получении записей студента {current_user.id}',
            e,
        )


@router.delete(
    '/{booking_id}',
    response_model=BookingInfo,
    responses=ERROR_RESPONSES,
)
@event_logger('Отменена', 'Booking')
async def cancel_booking(
    booking_id: UUID,
    session: DbSession,
    current_user: Student,
    ledger: Bookings,
    cache: Cache,
) -> BookingInfo:
    """Отменяет запись студента.

    Повторная отмена не является ошибкой: возвращается запись
    в текущем состоянии.
    """
    try:
        booking = await ledger.cancel_booking(
            session,
            booking_id,
            current_user.id,
        )
        await cache.clear_teacher_slots(booking.slot.teacher_id)
        return booking
    except NoOpError as e:
        logger.info(f'Запись {booking_id}: {e.message}')
        return await ledger.get_booking(session, booking_id)
    except (LabBookingError, HTTPException):
        raise
    except Exception as e:
        raise internal_error(f'Ошибка при отмене записи {booking_id}', e)
