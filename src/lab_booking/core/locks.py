import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator
from uuid import UUID
from weakref import WeakValueDictionary

from loguru import logger


class SlotLockRegistry:
    """Реестр блокировок, сериализующий операции над одним слотом.

    Блокировка живёт, пока её удерживает хотя бы одна корутина,
    после чего удаляется из реестра сборщиком мусора. Операции над
    разными слотами не блокируют друг друга.
    """

    def __init__(self) -> None:
        """Инициализация реестра."""
        self._locks: WeakValueDictionary[UUID, asyncio.Lock] = (
            WeakValueDictionary()
        )

    def _get_lock(self, slot_id: UUID) -> asyncio.Lock:
        """Возвращает блокировку слота, создавая её при необходимости."""
        lock = self._locks.get(slot_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[slot_id] = lock
        return lock

    @asynccontextmanager
    async def hold(self, slot_id: UUID) -> AsyncIterator[None]:
        """Удерживает блокировку слота на время выполнения блока."""
        lock = self._get_lock(slot_id)
        if lock.locked():
            logger.debug(f'Ожидание блокировки слота {slot_id}')
        async with lock:
            yield

    def __len__(self) -> int:
        return len(self._locks)


slot_locks = SlotLockRegistry()
