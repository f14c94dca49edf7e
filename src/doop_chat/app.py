from __future__ import annotations

import logging
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any, AsyncIterator

import redis.asyncio as aioredis
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from doop_chat.api.middleware.correlation_id import CorrelationIdMiddleware
from doop_chat.api.middleware.metrics import RequestTimingMiddleware
from doop_chat.api.v1.routers import conversations, health, messages, profiles, ws
from doop_chat.application.exceptions import (
    AppError,
    AuthorizationError,
    NotFoundError,
    Unavailable,
    ValidationError,
)
from doop_chat.config import settings
from doop_chat.infrastructure.bus.redis_pubsub import RedisPubSubSubscriber
from doop_chat.infrastructure.db.session import create_tables, dispose_engine

logger = logging.getLogger(__name__)

# Most specific first; anything else derived from AppError is a 400
ERROR_STATUS: tuple[tuple[type[AppError], int], ...] = (
    (NotFoundError, 404),
    (AuthorizationError, 403),
    (ValidationError, 422),
    (Unavailable, 503),
)
RETRY_AFTER_SECONDS = "5"


async def relay_to_sockets(event_type: str, data: dict[str, Any]) -> None:
    """Hand a fan-out event to the sockets connected to this process."""
    await ws.get_manager().dispatch(event_type, data)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    async with AsyncExitStack() as stack:
        stack.push_async_callback(dispose_engine)
        if settings.DB_CREATE_TABLES:
            await create_tables()

        app.state.redis = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
        stack.push_async_callback(app.state.redis.aclose)

        app.state.pubsub_subscriber = RedisPubSubSubscriber(
            app.state.redis, settings.REDIS_PUBSUB_CHANNEL, relay_to_sockets,
        )
        await app.state.pubsub_subscriber.start()
        stack.push_async_callback(app.state.pubsub_subscriber.stop)

        logger.info("Doop chat API ready (fan-out channel %s)", settings.REDIS_PUBSUB_CHANNEL)
        yield
        logger.info("Doop chat API shutting down")


async def app_error_handler(_req: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, AppError)
    status_code = next((code for cls, code in ERROR_STATUS if isinstance(exc, cls)), 400)
    headers = None
    if status_code == 503:
        logger.warning("Dependency unavailable: %s", exc.detail)
        headers = {"Retry-After": RETRY_AFTER_SECONDS}
    return JSONResponse(status_code=status_code, content={"detail": exc.detail}, headers=headers)


def create_app() -> FastAPI:
    app = FastAPI(title="Doop Chat Service", version="0.1.0", lifespan=lifespan)

    # Starlette runs the last added middleware first
    app.add_middleware(RequestTimingMiddleware)
    app.add_middleware(CorrelationIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(AppError, app_error_handler)

    for module in (health, conversations, messages, profiles, ws):
        app.include_router(module.router)

    return app
