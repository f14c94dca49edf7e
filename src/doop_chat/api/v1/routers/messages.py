from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Response, status

from doop_chat.api.deps import CurrentPrincipal, UoWDep
from doop_chat.services import read_state_service

router = APIRouter(prefix="/api/v1/messages", tags=["messages"])


@router.post("/{message_id}/read", status_code=status.HTTP_204_NO_CONTENT)
async def mark_read(
    message_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> Response:
    await read_state_service.mark_read(principal, message_id, uow)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
