from __future__ import annotations

from typing import Iterable, Protocol

from doop_chat.domain.entities.profile import Profile


class ProfileReader(Protocol):
    async def get(self, user_id: int) -> Profile | None: ...

    async def get_many(self, user_ids: Iterable[int]) -> dict[int, Profile]: ...


class ProfileWriter(Protocol):
    async def upsert(self, profile: Profile) -> None: ...
