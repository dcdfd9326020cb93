from datetime import datetime

# Ограничения лабораторных занятий
LEVEL_MIN = 1
LEVEL_MAX = 10
TOPIC_MAX_LENGTH = 200
DESCRIPTION_MAX_LENGTH = 1000
LOCATION_MAX_LENGTH = 200
NOTES_MAX_LENGTH = 500
PERSON_ID_MAX_LENGTH = 64
PERSON_NAME_MAX_LENGTH = 128
SECONDS_IN_MINUTE = 60

# Ключи кеша
TEACHER_SLOTS_CACHE_KEY = 'slots:teacher:{teacher_id}:v{version}'
TEACHER_SLOTS_VERSION_KEY = 'slots:teacher:{teacher_id}:version'

# Настройки логгера
MS_IN_SECOND = 1000
LOG_DEPTH = 7
LOG_ENCODING = 'utf-8'
LOG_COMPRESSION = 'zip'
LOG_FORMAT = (
    '<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | '
    '<level>{level: <8}</level> | '
    '{extra[username]}({extra[user_id]}) | '
    '<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | '
    '<level>{message}</level>'
)
FILE_LOG_FORMAT = (
    '{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<8} | {extra[request_id]} | '
    '{extra[username]}({extra[user_id]}) | '
    '{name}:{function}:{line} | {message}'
)
INTERCEPTED_LOGGERS = (
    'uvicorn',
    'uvicorn.error',
    'sqlalchemy',
)
NOISE_PATHS = {
    '/docs',
    '/openapi.json',
    '/healthcheck/db',
    '/healthcheck/redis',
}
HTTP_LOG_TEMPLATE = (
    '{method} {path} -> {status} ({ms:.1f} ms)\n    ip={ip}\n    ua={ua}\n'
)


def get_logger_header() -> str:
    """Формирует заголовок для нового лог-файла."""
    return (
        '\n'
        '=================== LOGGER - LAB_BOOKING ===================\n'
        f'Date: {datetime.now():%Y-%m-%d %H:%M:%S}\n'
        '============================================================\n\n'
    )
