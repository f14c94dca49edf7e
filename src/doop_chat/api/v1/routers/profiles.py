from __future__ import annotations

from fastapi import APIRouter

from doop_chat.api.deps import CurrentPrincipal, UoWDep
from doop_chat.api.v1.schemas.profile import ProfileResponse
from doop_chat.services import profile_service

router = APIRouter(prefix="/api/v1/profiles", tags=["profiles"])


@router.get("/{user_id}", response_model=ProfileResponse)
async def get_profile(
    user_id: int,
    _principal: CurrentPrincipal,
    uow: UoWDep,
) -> ProfileResponse:
    profile = await profile_service.get_profile(user_id, uow)
    return ProfileResponse.model_validate(profile, from_attributes=True)
