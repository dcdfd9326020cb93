from typing import Dict, Optional

from fastapi import APIRouter
from loguru import logger
from sqlalchemy import text

from lab_booking.core.db import DbSession
from lab_booking.core.dependencies import Cache

router = APIRouter(prefix='/healthcheck', tags=['Healthcheck'])


def _report(component: str, error: Optional[str] = None) -> Dict[str, str]:
    """Ответ проверки: ok или error с причиной."""
    if error is None:
        logger.debug(f'Проверка {component}: успешно')
        return {'status': 'ok'}
    logger.error(f'Проверка {component}: {error}')
    return {'status': 'error', 'details': error}


@router.get('/db')
async def db_health(session: DbSession) -> Dict[str, str]:
    """Доступность базы данных."""
    try:
        await session.scalar(text('SELECT 1'))
    except Exception as e:
        return _report('БД', str(e))
    return _report('БД')


@router.get('/redis')
async def redis_health(cache: Cache) -> Dict[str, str]:
    """Доступность Redis (без него кеш отключён)."""
    if cache.redis is None:
        return _report('Redis', 'Redis не подключен')
    try:
        await cache.redis.ping()
    except Exception as e:
        return _report('Redis', str(e))
    return _report('Redis')
