from __future__ import annotations

from typing import Any

import jwt

from doop_chat.application.dto.principal import Principal


def principal_from_claims(payload: dict[str, Any]) -> Principal:
    """Build a Principal from decoded JWT claims; ``sub`` must be a user id."""
    try:
        subject_id = int(payload["sub"])
    except (KeyError, TypeError, ValueError) as exc:
        raise jwt.InvalidTokenError("Token has no numeric 'sub' claim") from exc
    roles = payload.get("roles") or []
    return Principal(subject_id=subject_id, roles=[str(r) for r in roles])
