from __future__ import annotations

from doop_chat.domain.entities.profile import Profile
from doop_chat.infrastructure.db.models.profile import ProfileModel


def model_to_entity(model: ProfileModel) -> Profile:
    return Profile(
        user_id=model.user_id,
        username=model.username,
        profile_pic=model.profile_pic,
        updated_at=model.updated_at,
    )
