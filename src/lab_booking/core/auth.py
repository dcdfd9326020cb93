from datetime import datetime, timedelta, timezone
from typing import Annotated, Awaitable, Callable, List, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from lab_booking.core.config import settings
from lab_booking.schemas.auth import Caller
from lab_booking.utils.enums import UserRole

# Для обязательной аутентификации
security = HTTPBearer(auto_error=False)


def get_token_expires() -> timedelta:
    """Возвращает время жизни токена."""
    return timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)


def create_access_token(
    caller: Caller,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Создает JWT токен с идентификатором, ролью и уровнем."""
    expire = datetime.now(timezone.utc) + (
        expires_delta or get_token_expires()
    )
    to_encode = {
        'sub': caller.id,
        'role': caller.role.value,
        'name': caller.name,
        'exp': expire,
    }
    if caller.level is not None:
        to_encode['level'] = caller.level
    return jwt.encode(
        to_encode,
        settings.SECRET_KEY,
        algorithm=settings.ALGORITHM,
    )


def decode_caller(token: str) -> Caller:
    """Извлекает пользователя из JWT или выбрасывает 401."""
    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM],
        )
        return Caller(
            id=payload.get('sub'),
            role=payload.get('role'),
            level=payload.get('level'),
            name=payload.get('name') or '',
        )
    except JWTError as e:
        logger.warning(f'JWTError при обработке токена: {e}')
    except PydanticValidationError as e:
        logger.warning(f'Некорректные данные пользователя в токене: {e}')
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail='Неверные учетные данные',
    )


async def get_current_user(
    credentials: Annotated[
        Optional[HTTPAuthorizationCredentials],
        Depends(security),
    ],
) -> Caller:
    """Получение текущего пользователя из JWT токена."""
    if credentials is None:
        logger.info('Отсутствует заголовок Authorization в headers')
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail='Не авторизован',
        )
    return decode_caller(credentials.credentials)


def role_checker(
    allowed_roles: List[UserRole],
) -> Callable[..., Awaitable[Caller]]:
    """Универсальная функция для проверки ролей пользователя."""

    async def checker(
        current_user: Caller = Depends(get_current_user),
    ) -> Caller:
        # Проверяем, есть ли у пользователя нужная роль
        if current_user.role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail='Недостаточно прав для выполнения операции',
            )
        return current_user

    return checker


Student = Annotated[Caller, Depends(role_checker([UserRole.STUDENT]))]
Teacher = Annotated[Caller, Depends(role_checker([UserRole.TEACHER]))]
Admin = Annotated[Caller, Depends(role_checker([UserRole.ADMIN]))]
AnyUser = Annotated[Caller, Depends(get_current_user)]
