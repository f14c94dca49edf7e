from __future__ import annotations

from datetime import datetime

from doop_chat.application.exceptions import NotFoundError, ValidationError
from doop_chat.application.ports.clock import utcnow
from doop_chat.application.uow import UnitOfWork
from doop_chat.domain.entities.profile import Profile


async def get_profile(user_id: int, uow: UnitOfWork) -> Profile:
    profile = await uow.profiles.get(user_id)
    if profile is None:
        raise NotFoundError("Profile not found")
    return profile


async def upsert_profile(
    user_id: int,
    username: str,
    profile_pic: str | None,
    uow: UnitOfWork,
    *,
    updated_at: datetime | None = None,
) -> Profile:
    if not username or not username.strip():
        raise ValidationError("Username must not be empty")
    profile = Profile(
        user_id=user_id,
        username=username.strip(),
        profile_pic=profile_pic or None,
        updated_at=updated_at or utcnow(),
    )
    await uow.profiles_w.upsert(profile)
    await uow.commit()
    return profile
