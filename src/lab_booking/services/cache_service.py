import json
import time
from typing import Any, Optional

from loguru import logger
from redis.asyncio import Redis

from lab_booking.core.config import settings
from lab_booking.core.constants import (
    MS_IN_SECOND,
    TEACHER_SLOTS_CACHE_KEY,
    TEACHER_SLOTS_VERSION_KEY,
)


class CacheService:
    """Кеш Redis для списков занятий преподавателей.

    Redis необязателен: без подключения чтение всегда даёт промах,
    а запись и сброс ничего не делают. Ошибки Redis логируются
    и не прерывают запрос.
    """

    def __init__(self, ttl: Optional[int] = None) -> None:
        self.redis: Optional[Redis] = None
        self.ttl = ttl or settings.REDIS_CACHE_TTL

    async def connect(self) -> None:
        """Подключается к Redis, при неудаче работает без кеша."""
        client = Redis.from_url(
            settings.redis_url,
            encoding='utf-8',
            decode_responses=True,
        )
        try:
            await client.ping()
        except Exception as e:
            logger.error(f'Redis недоступен, кеш отключён: {str(e)}')
            await client.aclose()
            self.redis = None
            return
        self.redis = client
        logger.info(f'Подключение к Redis: {settings.REDIS_HOST}')

    async def disconnect(self) -> None:
        if self.redis is None:
            return
        await self.redis.aclose()
        self.redis = None
        logger.info('Отключение от Redis')

    async def get(self, key: str) -> Optional[Any]:
        """Десериализованное значение ключа или None при промахе."""
        if self.redis is None:
            return None
        started = time.perf_counter()
        try:
            raw: Optional[str] = await self.redis.get(key)
        except Exception as e:
            logger.error(f'Ошибка чтения кеша {key}: {str(e)}')
            return None
        elapsed = (time.perf_counter() - started) * MS_IN_SECOND
        if raw is None:
            logger.debug(f'Кеш промах: {key} ({elapsed:.2f} мс)')
            return None
        logger.debug(
            f'Кеш попадание: {key} | {len(raw)} байт ({elapsed:.2f} мс)',
        )
        return json.loads(raw)

    async def set(
        self,
        key: str,
        value: Any,
        ttl: Optional[int] = None,
    ) -> bool:
        """Сохраняет значение в JSON на ttl секунд."""
        if self.redis is None:
            return False
        payload = json.dumps(value, default=str, ensure_ascii=False)
        try:
            await self.redis.setex(key, ttl or self.ttl, payload)
        except Exception as e:
            logger.error(f'Ошибка записи в кеш {key}: {str(e)}')
            return False
        return True

    async def delete(self, *keys: str) -> bool:
        if self.redis is None or not keys:
            return False
        try:
            await self.redis.delete(*keys)
        except Exception as e:
            logger.error(f'Ошибка удаления из кеша {keys}: {str(e)}')
            return False
        return True

    async def teacher_slots_key(self, teacher_id: str) -> str:
        """Ключ списка занятий для текущей версии кеша преподавателя.

        Ключ нужно получить до чтения из БД: запись, сделанная
        после сброса кеша, попадёт под старую версию и не будет прочитана.
        """
        version = 0
        if self.redis is not None:
            version_key = TEACHER_SLOTS_VERSION_KEY.format(
                teacher_id=teacher_id,
            )
            try:
                version = int(await self.redis.get(version_key) or 0)
            except Exception as e:
                logger.error(f'Ошибка чтения версии кеша {teacher_id}: {e}')
        return TEACHER_SLOTS_CACHE_KEY.format(
            teacher_id=teacher_id,
            version=version,
        )

    async def clear_teacher_slots(self, teacher_id: str) -> None:
        """Сбрасывает кеш после изменения занятий или записей."""
        if self.redis is None:
            return
        stale_key = await self.teacher_slots_key(teacher_id)
        version_key = TEACHER_SLOTS_VERSION_KEY.format(teacher_id=teacher_id)
        try:
            version = await self.redis.incr(version_key)
        except Exception as e:
            logger.error(f'Ошибка сброса кеша {teacher_id}: {str(e)}')
            return
        await self.delete(stale_key)
        logger.debug(
            f'Кеш занятий преподавателя {teacher_id} сброшен '
            f'(версия {version})',
        )


cache_service = CacheService()
