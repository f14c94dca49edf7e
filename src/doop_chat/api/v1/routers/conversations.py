from __future__ import annotations

from fastapi import APIRouter, Query, Response, status

from doop_chat.api.deps import CurrentPrincipal, UoWDep
from doop_chat.api.v1.schemas.conversation import ConversationSummaryResponse
from doop_chat.api.v1.schemas.message import (
    MessagePageResponse,
    MessageResponse,
    SendMessageRequest,
)
from doop_chat.application.dto.conversation import PageRequestDTO
from doop_chat.application.dto.message import SendMessageDTO
from doop_chat.config import settings
from doop_chat.services import inbox_service, message_service, read_state_service

router = APIRouter(prefix="/api/v1/conversations", tags=["conversations"])


@router.get("", response_model=list[ConversationSummaryResponse])
async def list_conversations(
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> list[ConversationSummaryResponse]:
    summaries = await inbox_service.list_conversations(principal, uow)
    return [ConversationSummaryResponse.model_validate(s, from_attributes=True) for s in summaries]


@router.get("/{counterparty_id}/messages", response_model=MessagePageResponse)
async def list_messages(
    counterparty_id: int,
    principal: CurrentPrincipal,
    uow: UoWDep,
    context_id: str | None = Query(None, max_length=64),
    cursor: str | None = Query(None),
    limit: int = Query(settings.MESSAGE_PAGE_SIZE, ge=1, le=settings.MESSAGE_PAGE_SIZE_MAX),
) -> MessagePageResponse:
    page = await message_service.list_messages(
        principal,
        PageRequestDTO(
            counterparty_id=counterparty_id,
            context_id=context_id,
            cursor=cursor,
            limit=limit,
        ),
        uow,
    )
    return MessagePageResponse.model_validate(page, from_attributes=True)


@router.post(
    "/{counterparty_id}/messages",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def send_message(
    counterparty_id: int,
    body: SendMessageRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> MessageResponse:
    msg, _created = await message_service.send_message(
        principal,
        SendMessageDTO(
            recipient_id=counterparty_id,
            text=body.text,
            context_id=body.context_id,
            client_msg_id=body.client_msg_id,
        ),
        uow,
    )
    return MessageResponse.model_validate(msg, from_attributes=True)


@router.post("/{counterparty_id}/read", status_code=status.HTTP_204_NO_CONTENT)
async def mark_all_read(
    counterparty_id: int,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> Response:
    await read_state_service.mark_all_read(principal, counterparty_id, uow)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
