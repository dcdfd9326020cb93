from typing import Any

from fastapi import HTTPException, status
from loguru import logger


def build_error(detail: Any, code: int) -> dict[str, Any]:
    """Формирует унифицированный ответ об ошибке для API."""
    return {'code': code, 'detail': str(detail) if detail is not None else ''}


def internal_error(context: str, exc: Exception) -> HTTPException:
    """Логирует непредвиденную ошибку и возвращает HTTP 500."""
    logger.error(f'{context}: {str(exc)}')
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=build_error(
            'Внутренняя ошибка сервера',
            status.HTTP_500_INTERNAL_SERVER_ERROR,
        ),
    )
