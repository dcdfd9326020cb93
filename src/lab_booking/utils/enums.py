from enum import Enum


class UserRole(str, Enum):
    """Enum класс для ролей пользователей."""

    STUDENT = 'STUDENT'
    TEACHER = 'TEACHER'
    ADMIN = 'ADMIN'


class BookingStatus(str, Enum):
    """Enum класс для статусов записей на занятия."""

    CONFIRMED = 'CONFIRMED'
    CANCELLED = 'CANCELLED'
