from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True, slots=True)
class Profile:
    """Read copy of a marketplace user's public profile."""

    user_id: int
    username: str
    profile_pic: str | None
    updated_at: datetime
