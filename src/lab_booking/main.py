from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from lab_booking.api.endpoints import routers
from lab_booking.core.db import engine
from lab_booking.core.exception_handler import (
    http_exception_handler,
    lab_booking_exception_handler,
    validation_exception_handler,
)
from lab_booking.core.exceptions import LabBookingError
from lab_booking.core.logging import configure_logging
from lab_booking.middleware.http_logging import logging_middleware
from lab_booking.services.cache_service import cache_service

API_VERSION = '0.1.0'


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator:
    """Логгер и Redis на время жизни приложения; пул БД закрывается."""
    configure_logging()
    await cache_service.connect()
    logger.info(
        f'Сервис записи на занятия запущен (версия {API_VERSION}, '
        f'кеш {"включён" if cache_service.redis else "выключен"})',
    )
    try:
        yield
    finally:
        await cache_service.disconnect()
        await engine.dispose()
        logger.info('Сервис записи на занятия остановлен')


def create_app() -> FastAPI:
    application = FastAPI(
        title='Запись на лабораторные занятия',
        description=(
            'Преподаватели публикуют занятия, студенты записываются '
            'на свободные места'
        ),
        version=API_VERSION,
        lifespan=lifespan,
        root_path='/api',
    )
    application.add_exception_handler(
        RequestValidationError,
        validation_exception_handler,
    )
    application.add_exception_handler(
        StarletteHTTPException,
        http_exception_handler,
    )
    application.add_exception_handler(
        LabBookingError,
        lab_booking_exception_handler,
    )
    application.middleware('http')(logging_middleware)
    for router in routers:
        application.include_router(router)
    return application


app = create_app()
