"""FastAPI dependencies: unit of work and the authenticated caller."""
from __future__ import annotations

import logging
from functools import lru_cache
from typing import Annotated, AsyncIterator

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from doop_chat.application.dto.principal import Principal
from doop_chat.application.ports.auth import TokenVerifier
from doop_chat.application.uow import UnitOfWork
from doop_chat.config import settings
from doop_chat.infrastructure.auth.hs256_verifier import HS256Verifier
from doop_chat.infrastructure.auth.jwks_verifier import JWKSVerifier
from doop_chat.infrastructure.db.uow import uow_scope

logger = logging.getLogger(__name__)

_bearer = HTTPBearer(auto_error=False)


async def get_uow() -> AsyncIterator[UnitOfWork]:
    async with uow_scope() as uow:
        yield uow


UoWDep = Annotated[UnitOfWork, Depends(get_uow)]


@lru_cache(maxsize=1)
def get_verifier() -> TokenVerifier:
    if settings.JWT_VERIFY_MODE == "jwks":
        if not settings.JWKS_URL:
            raise RuntimeError("JWKS_URL must be set when JWT_VERIFY_MODE=jwks")
        return JWKSVerifier(
            settings.JWKS_URL,
            audience=settings.JWT_AUDIENCE,
            leeway=settings.JWT_LEEWAY_SECONDS,
        )
    return HS256Verifier(
        settings.JWT_SECRET,
        settings.JWT_ALGORITHM,
        audience=settings.JWT_AUDIENCE,
        leeway=settings.JWT_LEEWAY_SECONDS,
    )


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_principal(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer)],
) -> Principal:
    if credentials is None:
        raise _unauthorized("Missing bearer token")
    try:
        return await get_verifier().verify(credentials.credentials)
    except jwt.PyJWTError as exc:
        logger.debug("Rejected token: %s", exc)
        raise _unauthorized(str(exc)) from exc


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]
