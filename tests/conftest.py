"""Фикстуры тестов.

Переменные окружения выставляются до импорта приложения:
настройки и движок БД создаются при импорте модулей.
"""
import os

os.environ.setdefault('SECRET_KEY', 'test-secret-key')
os.environ['DATABASE_URL'] = 'sqlite+aiosqlite:///:memory:'

import datetime as dt  # noqa: E402
from typing import AsyncIterator, Callable  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from lab_booking.core.auth import create_access_token  # noqa: E402
from lab_booking.core.db import Base, get_async_session  # noqa: E402
from lab_booking.main import app  # noqa: E402
from lab_booking.schemas.auth import Caller  # noqa: E402
from lab_booking.schemas.slot import SlotCreate  # noqa: E402
from lab_booking.services.slot_store import slot_store  # noqa: E402
from lab_booking.utils.enums import UserRole  # noqa: E402

SLOT_DATE = dt.date(2026, 11, 2)


@pytest.fixture
async def engine(tmp_path):
    """Отдельная файловая SQLite БД на каждый тест."""
    engine = create_async_engine(
        f'sqlite+aiosqlite:///{tmp_path / "lab_booking.db"}',
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
async def session(session_factory) -> AsyncIterator[AsyncSession]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def teacher() -> Caller:
    return Caller(id='t-1', role=UserRole.TEACHER, name='Анна Петровна')


@pytest.fixture
def other_teacher() -> Caller:
    return Caller(id='t-2', role=UserRole.TEACHER, name='Иван Сергеевич')


@pytest.fixture
def admin() -> Caller:
    return Caller(id='admin', role=UserRole.ADMIN, name='Администратор')


@pytest.fixture
def make_student() -> Callable[..., Caller]:
    def _make(student_id: str, level: int = 2) -> Caller:
        return Caller(
            id=student_id,
            role=UserRole.STUDENT,
            level=level,
            name=f'Студент {student_id}',
        )

    return _make


@pytest.fixture
def slot_data() -> Callable[..., SlotCreate]:
    """Фабрика данных занятия с переопределяемыми полями."""

    def _make(**overrides) -> SlotCreate:
        data = {
            'level': 2,
            'date': SLOT_DATE,
            'start_time': dt.time(10, 0),
            'end_time': dt.time(11, 30),
            'topic': 'Титрование',
            'description': 'Кислотно-основное титрование',
            'location': 'Ауд. 204',
            'max_students': 2,
        }
        data.update(overrides)
        return SlotCreate(**data)

    return _make


@pytest.fixture
def create_slot(session, teacher, slot_data):
    """Создаёт занятие от имени преподавателя по умолчанию."""

    async def _create(owner: Caller = teacher, **overrides):
        return await slot_store.create_slot(
            session,
            slot_data(**overrides),
            owner,
        )

    return _create


@pytest.fixture
async def client(session_factory) -> AsyncIterator[AsyncClient]:
    """HTTP-клиент приложения поверх тестовой БД.

    Lifespan не запускается, поэтому Redis не подключен и кеш
    работает вхолостую.
    """

    async def _override_session() -> AsyncIterator[AsyncSession]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_async_session] = _override_session
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url='http://test') as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers() -> Callable[[Caller], dict[str, str]]:
    def _headers(caller: Caller) -> dict[str, str]:
        return {'Authorization': f'Bearer {create_access_token(caller)}'}

    return _headers
