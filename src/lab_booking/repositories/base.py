from typing import Any, Generic, Iterable, Optional, Sequence, Type, TypeVar

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Load

from lab_booking.core.db import Base

ModelT = TypeVar('ModelT', bound=Base)
CreateSchemaT = TypeVar('CreateSchemaT', bound=BaseModel)
UpdateSchemaT = TypeVar('UpdateSchemaT', bound=BaseModel)


class CRUDBase(Generic[ModelT, CreateSchemaT, UpdateSchemaT]):
    """Базовый класс для операций с таблицей.

    Методы репозиториев не фиксируют транзакцию: границы транзакции
    задаёт вызывающий сервис.
    """

    def __init__(self, model: Type[ModelT]) -> None:
        """Инициализация класса."""
        self.model = model

    async def get(
        self,
        session: AsyncSession,
        *predicates: Any,
        many: bool = False,
        order_by: Sequence[Any] = (),
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        options: Iterable[Load] = (),
        for_update: bool = False,
        fresh: bool = False,
        **filters: Any,
    ) -> list[ModelT] | ModelT | None:
        """Универсальная выборка по равенствам полям модели.

        get(..., field=value, ...).

        Параметры:
            session: AsyncSession.
            *predicates: произвольные SQLAlchemy-условия
            (например, Model.flag.is_(False)).
            many: True - вернуть список, False - вернуть первый или None.
            order_by, limit, offset: необязательные параметры выдачи.
            options: ORM-опции загрузки (selectinload и т.п.).
            for_update: заблокировать выбранные строки до конца транзакции.
            fresh: перезаписать уже загруженные в сессию объекты.
            **filters: равенства по полям модели (field=value).

        Исключения:
            ValueError - если передан фильтр по несуществующему полю модели.
        """
        self._validate_filters(filters)
        conditions = [getattr(self.model, k) == v for k, v in filters.items()]
        if predicates:
            conditions.extend(predicates)

        stmt = select(self.model).where(*conditions)
        if order_by:
            stmt = stmt.order_by(*order_by)
        if offset:
            stmt = stmt.offset(offset)
        if limit:
            stmt = stmt.limit(limit)
        if options:
            stmt = stmt.options(*options)
        if for_update:
            stmt = stmt.with_for_update()
        if fresh or for_update:
            stmt = stmt.execution_options(populate_existing=True)

        res = await session.execute(stmt)
        return list(res.scalars().all()) if many else res.scalars().first()

    async def add(self, session: AsyncSession, db_obj: ModelT) -> ModelT:
        """Добавляет запись в текущую транзакцию без фиксации."""
        session.add(db_obj)
        await session.flush()
        return db_obj

    def apply_update(
        self,
        db_obj: ModelT,
        update_data: dict[str, Any],
    ) -> ModelT:
        """Переносит изменённые поля в объект модели."""
        self._validate_filters(update_data)
        for field, value in update_data.items():
            setattr(db_obj, field, value)
        return db_obj

    def _validate_filters(self, filters: dict[str, Any]) -> None:
        """Валидация полей, переданных в get() и apply_update()."""
        unknown = [k for k in filters if not hasattr(self.model, k)]
        if unknown:
            raise ValueError(
                'Некорректные поля фильтра для '
                f'{self.model.__name__}: {unknown}',
            )
