from __future__ import annotations

from typing import Protocol

from doop_chat.application.dto.principal import Principal


class TokenVerifier(Protocol):
    async def verify(self, token: str) -> Principal:
        """Decode a bearer token; raise on a bad signature, expiry or missing ``sub``."""
        ...
