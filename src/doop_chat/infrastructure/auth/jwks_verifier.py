from __future__ import annotations

import asyncio
import logging

import jwt
from jwt import PyJWKClient

from doop_chat.application.dto.principal import Principal
from doop_chat.infrastructure.auth.claims import principal_from_claims

logger = logging.getLogger(__name__)

ASYMMETRIC_ALGORITHMS = ["RS256", "ES256"]


class JWKSVerifier:
    """Checks tokens against the marketplace identity provider's published keys."""

    def __init__(self, jwks_url: str, *, audience: str | None = None, leeway: int = 0) -> None:
        self._keys = PyJWKClient(jwks_url, cache_keys=True)
        self._audience = audience
        self._leeway = leeway

    async def verify(self, token: str) -> Principal:
        # Key lookup may hit the network through blocking urllib
        signing_key = await asyncio.to_thread(self._keys.get_signing_key_from_jwt, token)
        claims = jwt.decode(
            token,
            signing_key.key,
            algorithms=ASYMMETRIC_ALGORITHMS,
            audience=self._audience,
            leeway=self._leeway,
            options={"require": ["sub"], "verify_aud": self._audience is not None},
        )
        logger.debug("Token for sub=%s verified via JWKS", claims["sub"])
        return principal_from_claims(claims)
