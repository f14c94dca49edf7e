from __future__ import annotations

from pydantic import BaseModel


class ProfileResponse(BaseModel):
    user_id: int
    username: str
    profile_pic: str | None

    model_config = {"from_attributes": True}
