import json
from functools import wraps
from typing import Any, Callable, Optional

from loguru import logger

from lab_booking.schemas.auth import Caller


def _serialize(obj: Any, only_set: bool = True) -> dict | None:
    """Сериализует объект Pydantic в словарь для логирования."""
    if isinstance(obj, Caller):
        return None
    if hasattr(obj, 'model_dump'):
        try:
            return obj.model_dump(
                mode='json',
                exclude_none=True,
                exclude_unset=only_set,
            )
        except Exception as e:
            logger.debug(
                f'Ошибка сериализации модели {e}',
            )
    return None


def _find_caller(kwargs: dict[str, Any]) -> Optional[Caller]:
    """Находит среди аргументов эндпоинта текущего пользователя."""
    return next(
        (value for value in kwargs.values() if isinstance(value, Caller)),
        None,
    )


def event_logger(
    event_type: str,
    table_name: str,
    only_set: bool = True,
) -> Callable:
    """Декоратор для логирования выполнения эндпоинта.

    Логирует успешное выполнение асинхронной функции (эндпоинта)
    вместе с автором изменения, идентификатором затронутой записи
    и переданными параметрами, а также ошибки при выполнении.

    Args:
        event_type: Тип события ('Создана', 'Обновлена', 'Отменена').
        table_name: Название таблицы, над которой выполняется операция.
        only_set: Флаг, указывающий сериализовать ли только заданные поля.
            По умолчанию True.

    Returns:
        Callable: Декоратор, оборачивающий асинхронную функцию и
            добавляющий логирование.

    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            caller = _find_caller(kwargs)
            author = caller.id if caller else 'SYSTEM'
            parameters = next(
                (
                    data
                    for data in (
                        _serialize(v, only_set) for v in kwargs.values()
                    )
                    if data is not None
                ),
                None,
            )
            try:
                result = await func(*args, **kwargs)
            except Exception:
                logger.error(
                    f'Произошла ошибка при выполнении операции с '
                    f'таблицей "{table_name}" (пользователь {author})',
                )
                raise
            record_id = getattr(result, 'id', None)
            message = (
                f'{event_type} запись {record_id or ""} в таблице '
                f'"{table_name}" пользователем {author}'
            )
            if parameters:
                formatted_params = json.dumps(
                    parameters,
                    ensure_ascii=False,
                    indent=4,
                )
                message += f', с параметрами:\n{formatted_params}'
            logger.info(message)
            return result

        return wrapper

    return decorator
