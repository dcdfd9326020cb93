import logging
import sys
from pathlib import Path
from typing import Optional

from loguru import logger

from lab_booking.core.config import LOG_DIR, settings
from lab_booking.core.constants import (
    FILE_LOG_FORMAT,
    INTERCEPTED_LOGGERS,
    LOG_COMPRESSION,
    LOG_DEPTH,
    LOG_ENCODING,
    LOG_FORMAT,
    get_logger_header,
)

_STD_INTERCEPT_CONFIGURED = False


class InterceptHandler(logging.Handler):
    """Перехват stdlib логов (uvicorn и sqlalchemy) в loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        """Передаёт запись стандартного логгера в Loguru."""
        try:
            lvl = logger.level(record.levelname).name
        except ValueError:
            lvl = record.levelno
        logger.opt(
            depth=LOG_DEPTH,
            exception=record.exc_info,
        ).log(lvl, record.getMessage())


def setup_stdlib_intercept() -> None:
    """Перенаправляет стандартные логи (uvicorn, sqlalchemy) в Loguru."""
    global _STD_INTERCEPT_CONFIGURED
    if _STD_INTERCEPT_CONFIGURED:
        return
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in INTERCEPTED_LOGGERS:
        log = logging.getLogger(name)
        log.handlers = [InterceptHandler()]
        log.propagate = False
    _STD_INTERCEPT_CONFIGURED = True


def _ensure_defaults(record: dict) -> dict:
    """Добавляет значения по умолчанию в extra-поля лог-записи."""
    record['extra'].setdefault('username', 'SYSTEM')
    record['extra'].setdefault('user_id', '-')
    record['extra'].setdefault('request_id', '-')
    return record


def _write_log_header(path: Path) -> None:
    """Записывает заголовок с датой в начало лог-файла при его создании."""
    try:
        with open(path, 'a', encoding=LOG_ENCODING) as f:
            f.write(get_logger_header())
    except OSError as e:
        print(f'Не удалось записать заголовок в файл {path}: {e}')


def _add_file_sink(log_file: Path, level: str) -> None:
    """Подключает файловый sink с ротацией и сжатием архивов."""
    if not log_file.exists() or log_file.stat().st_size == 0:
        _write_log_header(log_file)
    logger.add(
        log_file,
        level=level,
        rotation=settings.LOG_ROTATION,
        retention=settings.LOG_RETENTION,
        compression=LOG_COMPRESSION,
        format=FILE_LOG_FORMAT,
        encoding=LOG_ENCODING,
        enqueue=True,
        backtrace=False,
        diagnose=False,
    )


def configure_logging(
    level: Optional[str] = None,
    log_dir: Path = LOG_DIR,
) -> None:
    """Настраивает Loguru, создаёт sinks и подключает перехват логов stdlib.

    Args:
        level: Уровень логирования, по умолчанию LOG_LEVEL из настроек.
        log_dir: Каталог для файла app.log.

    """
    level = level or settings.LOG_LEVEL
    log_dir.mkdir(parents=True, exist_ok=True)

    logger.remove()
    logger.configure(patcher=_ensure_defaults)

    logger.add(
        sys.stdout,
        level=level,
        format=LOG_FORMAT,
        colorize=True,
        enqueue=True,
        backtrace=False,
        diagnose=False,
    )
    _add_file_sink(log_dir / 'app.log', level)

    setup_stdlib_intercept()
