from fastapi import status


class LabBookingError(Exception):
    """Базовая ошибка предметной области лабораторных занятий."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ValidationError(LabBookingError):
    """Некорректные входные данные."""


class NotFoundError(LabBookingError):
    """Слот или бронирование не найдены."""

    status_code = status.HTTP_404_NOT_FOUND


class AuthorizationError(LabBookingError):
    """Ресурс принадлежит другому пользователю."""

    status_code = status.HTTP_403_FORBIDDEN


class CapacityError(LabBookingError):
    """Операция нарушила бы ограничение вместимости слота."""

    status_code = status.HTTP_409_CONFLICT


class SlotFullError(CapacityError):
    """В слоте не осталось свободных мест."""


class DuplicateBookingError(LabBookingError):
    """У студента уже есть активная запись на этот слот."""

    status_code = status.HTTP_409_CONFLICT


class InactiveSlotError(LabBookingError):
    """Слот скрыт преподавателем и не принимает записи."""

    status_code = status.HTTP_409_CONFLICT


class NoOpError(LabBookingError):
    """Операция не изменила состояние (например, повторная отмена)."""

    status_code = status.HTTP_200_OK
