from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field

from lab_booking.core.constants import LEVEL_MAX, LEVEL_MIN
from lab_booking.utils.enums import UserRole


class AuthToken(BaseModel):
    """Схема токена аутентификации."""

    access_token: str
    token_type: str = 'bearer'


class Caller(BaseModel):
    """Аутентифицированный пользователь, извлечённый из JWT.

    Сервис идентификации внешний: из токена берутся только
    идентификатор, роль, уровень (для студентов) и отображаемое имя.
    """

    id: Annotated[str, Field(min_length=1)]
    role: UserRole
    level: Optional[Annotated[int, Field(ge=LEVEL_MIN, le=LEVEL_MAX)]] = None
    name: str = ''

    model_config = ConfigDict(frozen=True)

    @property
    def display_name(self) -> str:
        """Имя для отображения, по умолчанию идентификатор."""
        return self.name or self.id
