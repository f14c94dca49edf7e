from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict

from doop_chat.domain.value_objects.limits import PAGE_SIZE


class ClientSettings(BaseSettings):
    """Settings for embedding the chat client in another process."""

    API_BASE_URL: str = "http://localhost:8000"
    WS_URL: str = "ws://localhost:8000/ws/chat"
    REQUEST_TIMEOUT: float = 10.0
    WS_OPEN_TIMEOUT: float = 10.0
    PAGE_SIZE: int = PAGE_SIZE

    model_config = SettingsConfigDict(env_prefix="DOOP_CHAT_", env_file=".env", extra="ignore")
