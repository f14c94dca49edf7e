from __future__ import annotations

import jwt

from doop_chat.application.dto.principal import Principal
from doop_chat.infrastructure.auth.claims import principal_from_claims


class HS256Verifier:
    """Checks tokens signed with the secret shared with the marketplace."""

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        *,
        audience: str | None = None,
        leeway: int = 0,
    ) -> None:
        if not secret:
            raise ValueError("JWT secret is empty")
        self._secret = secret
        self._algorithm = algorithm
        self._audience = audience
        self._leeway = leeway

    async def verify(self, token: str) -> Principal:
        claims = jwt.decode(
            token,
            self._secret,
            algorithms=[self._algorithm],
            audience=self._audience,
            leeway=self._leeway,
            options={"require": ["sub"], "verify_aud": self._audience is not None},
        )
        return principal_from_claims(claims)
