from __future__ import annotations

from typing import Iterable

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from doop_chat.domain.entities.profile import Profile
from doop_chat.infrastructure.db.mappers import profile as mapper
from doop_chat.infrastructure.db.models.profile import ProfileModel


class ProfileReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, user_id: int) -> Profile | None:
        result = await self._session.get(ProfileModel, user_id)
        return mapper.model_to_entity(result) if result else None

    async def get_many(self, user_ids: Iterable[int]) -> dict[int, Profile]:
        ids = list(user_ids)
        if not ids:
            return {}
        stmt = select(ProfileModel).where(ProfileModel.user_id.in_(ids))
        result = await self._session.execute(stmt)
        return {m.user_id: mapper.model_to_entity(m) for m in result.scalars().all()}


class ProfileWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def upsert(self, profile: Profile) -> None:
        stmt = (
            pg_insert(ProfileModel)
            .values(
                user_id=profile.user_id,
                username=profile.username,
                profile_pic=profile.profile_pic,
                updated_at=profile.updated_at,
            )
            .on_conflict_do_update(
                index_elements=[ProfileModel.user_id],
                set_={
                    "username": profile.username,
                    "profile_pic": profile.profile_pic,
                    "updated_at": profile.updated_at,
                },
                # Out-of-order events must not roll a profile back
                where=ProfileModel.updated_at <= profile.updated_at,
            )
        )
        await self._session.execute(stmt)
