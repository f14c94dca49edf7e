from __future__ import annotations

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

from doop_chat.domain.value_objects.limits import PAGE_SIZE


class Settings(BaseSettings):
    """Chat service settings, read from the environment and ``.env``."""

    # HTTP
    APP_HOST: str = "0.0.0.0"
    APP_PORT: int = 8000
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: list[str] = ["*"]

    # Postgres
    POSTGRES_USER: str
    POSTGRES_PASSWORD: str
    POSTGRES_DB: str
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_RECYCLE: int = 300
    DB_ECHO: bool = False
    DB_CREATE_TABLES: bool = False

    # Auth: tokens are issued by the marketplace, never by this service
    JWT_VERIFY_MODE: Literal["hs256", "jwks"] = "hs256"
    JWT_SECRET: str = ""
    JWT_ALGORITHM: str = "HS256"
    JWT_AUDIENCE: str | None = None
    JWT_LEEWAY_SECONDS: int = 30
    JWKS_URL: str | None = None

    # Messaging
    MESSAGE_PAGE_SIZE: int = PAGE_SIZE
    MESSAGE_PAGE_SIZE_MAX: int = 100
    WS_HEARTBEAT_SECONDS: int = 30

    # Fan-out
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_PUBSUB_CHANNEL: str = "chat.fanout"
    OUTBOX_POLL_INTERVAL: float = 0.5
    OUTBOX_BATCH_SIZE: int = 50
    OUTBOX_MAX_ATTEMPTS: int = 5

    # Marketplace profile events
    MARKETPLACE_EVENTS_STREAM: str = "doop.events"
    MARKETPLACE_EVENTS_GROUP: str = "chat-service"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def database_url(self) -> str:
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.POSTGRES_DB}"
        )


settings = Settings()  # type: ignore[call-arg]
