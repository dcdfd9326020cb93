import datetime as dt
from typing import Annotated, Optional
from uuid import UUID

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.types import StringConstraints

from lab_booking.core.constants import (
    DESCRIPTION_MAX_LENGTH,
    LEVEL_MAX,
    LEVEL_MIN,
    LOCATION_MAX_LENGTH,
    TOPIC_MAX_LENGTH,
)

TopicConstraint = StringConstraints(
    strip_whitespace=True,
    min_length=1,
    max_length=TOPIC_MAX_LENGTH,
)
Level = Annotated[int, Field(ge=LEVEL_MIN, le=LEVEL_MAX)]
MaxStudents = Annotated[int, Field(ge=1)]


def _clean_optional_text(value: Optional[str], field: str) -> Optional[str]:
    """Удаляет лишние пробелы и приводит пустые строки к None."""
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f'Поле {field} должно быть строкой')
    cleaned = value.strip()
    return cleaned or None


class SlotBase(BaseModel):
    """Базовая схема лабораторного занятия с общими полями."""

    level: Level
    date: dt.date
    start_time: dt.time
    end_time: dt.time
    topic: Annotated[str, TopicConstraint]
    description: Optional[
        Annotated[str, Field(max_length=DESCRIPTION_MAX_LENGTH)]
    ] = None
    location: Annotated[str, Field(max_length=LOCATION_MAX_LENGTH)] = ''
    max_students: MaxStudents

    @field_validator('topic', mode='before')
    @classmethod
    def normalize_topic(cls, value: str) -> str:
        """Удаляет лишние пробелы из темы."""
        if not isinstance(value, str):
            raise ValueError('Тема должна быть строкой')
        cleaned = value.strip()
        if not cleaned:
            raise ValueError('Тема не может быть пустой')
        return cleaned

    @field_validator('description', mode='before')
    @classmethod
    def normalize_description(cls, value: Optional[str]) -> Optional[str]:
        """Приводит пустое описание к None."""
        return _clean_optional_text(value, 'description')

    @field_validator('location', mode='before')
    @classmethod
    def normalize_location(cls, value: Optional[str]) -> str:
        """Удаляет лишние пробелы из места проведения."""
        return _clean_optional_text(value, 'location') or ''

    @model_validator(mode='after')
    def check_time_interval(self) -> 'SlotBase':
        """Проверяет, что время начала меньше времени окончания."""
        if self.start_time >= self.end_time:
            raise ValueError(
                'Время начала должно быть меньше времени окончания',
            )
        return self


class SlotCreate(SlotBase):
    """Схема для создания нового лабораторного занятия."""


class SlotUpdate(BaseModel):
    """Схема для частичного обновления лабораторного занятия."""

    level: Optional[Level] = None
    date: Optional[dt.date] = None
    start_time: Optional[dt.time] = None
    end_time: Optional[dt.time] = None
    topic: Optional[Annotated[str, TopicConstraint]] = None
    description: Optional[
        Annotated[str, Field(max_length=DESCRIPTION_MAX_LENGTH)]
    ] = None
    location: Optional[
        Annotated[str, Field(max_length=LOCATION_MAX_LENGTH)]
    ] = None
    max_students: Optional[MaxStudents] = None

    @field_validator('topic', mode='before')
    @classmethod
    def normalize_topic(cls, value: Optional[str]) -> Optional[str]:
        """Запрещает пустую тему при обновлении."""
        if value is None:
            return None
        if not isinstance(value, str) or not value.strip():
            raise ValueError('Тема не может быть пустой')
        return value.strip()

    @field_validator('description', 'location', mode='before')
    @classmethod
    def normalize_text(cls, value: Optional[str]) -> Optional[str]:
        """Удаляет лишние пробелы из текстовых полей."""
        if value is None:
            return None
        if not isinstance(value, str):
            raise ValueError('Значение должно быть строкой')
        return value.strip()

    @model_validator(mode='after')
    def validate_time_range(self) -> 'SlotUpdate':
        """Проверяет корректность временного интервала при обновлении."""
        if self.start_time is not None and self.end_time is not None:
            if self.start_time >= self.end_time:
                raise ValueError(
                    'Время начала должно быть меньше времени окончания',
                )
        return self


class SlotStatusUpdate(BaseModel):
    """Схема переключения видимости занятия для студентов."""

    is_active: bool


class SlotShortInfo(BaseModel):
    """Сокращенная схема занятия для вложенных объектов."""

    id: UUID
    teacher_id: str
    teacher_name: str
    level: int
    date: dt.date
    start_time: dt.time
    end_time: dt.time
    duration_minutes: int
    topic: str
    location: str

    model_config = ConfigDict(from_attributes=True)


class SlotInfo(SlotShortInfo):
    """Полная схема занятия со сведениями о заполненности."""

    description: Optional[str] = None
    max_students: int
    current_bookings: int
    available_seats: int
    is_available: bool
    is_active: bool
    created_at: dt.datetime
    updated_at: dt.datetime

    model_config = ConfigDict(from_attributes=True)


class SlotWithRoster(SlotInfo):
    """Занятие преподавателя вместе со списком записавшихся."""

    bookings: list['RosterEntry'] = Field(
        default_factory=list,
        validation_alias=AliasChoices('confirmed_bookings', 'bookings'),
    )

    model_config = ConfigDict(from_attributes=True)


from lab_booking.schemas.booking import RosterEntry  # noqa: E402

SlotWithRoster.model_rebuild()
