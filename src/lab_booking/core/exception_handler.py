from typing import Any, Mapping

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from lab_booking.core.exceptions import LabBookingError
from lab_booking.utils.http import build_error

VALUE_ERROR_PREFIX = 'Value error, '


def _error_response(
    code: int,
    detail: Any,
    headers: Mapping[str, str] | None = None,
) -> JSONResponse:
    """Ответ об ошибке в формате ErrorResponse."""
    if isinstance(detail, dict):
        code = detail.get('code', code)
        detail = detail.get('detail') or detail.get('message') or detail
    elif isinstance(detail, list):
        detail = '; '.join(str(item) for item in detail)
    return JSONResponse(
        status_code=code,
        content=build_error(detail or '', code),
        headers=dict(headers) if headers else None,
    )


def _describe(error: dict[str, Any]) -> str:
    """Сообщение pydantic с именем поля, если ошибка относится к полю."""
    message = error['msg'].removeprefix(VALUE_ERROR_PREFIX)
    field_path = [str(part) for part in error.get('loc', ())[1:]]
    if field_path:
        return f'{".".join(field_path)}: {message}'
    return message


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Собирает ошибки валидации запроса в одну строку."""
    messages = [_describe(error) for error in exc.errors()]
    return _error_response(
        status.HTTP_422_UNPROCESSABLE_CONTENT,
        '; '.join(messages) or 'Ошибка валидации данных',
    )


async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException,
) -> JSONResponse:
    return _error_response(
        exc.status_code,
        exc.detail,
        getattr(exc, 'headers', None),
    )


async def lab_booking_exception_handler(
    request: Request,
    exc: LabBookingError,
) -> JSONResponse:
    """Переводит ошибки предметной области в HTTP-ответ."""
    logger.warning(
        f'{request.method} {request.url.path}: '
        f'{type(exc).__name__}: {exc.message}',
    )
    return _error_response(exc.status_code, exc.message)
