from __future__ import annotations

import asyncio
import logging
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from doop_chat.api.deps import get_verifier
from doop_chat.application.dto.message import SendMessageDTO
from doop_chat.application.dto.principal import Principal
from doop_chat.application.exceptions import AppError
from doop_chat.config import settings
from doop_chat.domain.events.message_created import message_to_dict
from doop_chat.infrastructure.db.uow import uow_scope
from doop_chat.infrastructure.ws import protocol
from doop_chat.infrastructure.ws.manager import ConnectionManager
from doop_chat.infrastructure.ws.protocol import WsInbound, WsOutbound
from doop_chat.services import message_service, read_state_service

logger = logging.getLogger(__name__)
router = APIRouter(tags=["websocket"])

manager = ConnectionManager()


def get_manager() -> ConnectionManager:
    return manager


async def _authenticate(token: str) -> Principal | None:
    try:
        return await get_verifier().verify(token)
    except Exception:
        logger.debug("WS auth failed", exc_info=True)
        return None


@router.websocket("/ws/chat")
async def ws_chat(
    websocket: WebSocket,
    token: str = Query(...),
) -> None:
    principal = await _authenticate(token)
    if principal is None:
        await websocket.close(code=4001, reason="Authentication failed")
        return

    pkey = principal.principal_key
    await manager.connect(websocket, pkey)

    heartbeat_task = asyncio.create_task(
        _heartbeat(websocket), name=f"ws-heartbeat-{pkey}",
    )
    try:
        await _read_loop(websocket, principal)
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception("WS error for %s", pkey)
    finally:
        heartbeat_task.cancel()
        manager.disconnect(websocket, pkey)


async def _heartbeat(ws: WebSocket) -> None:
    interval = settings.WS_HEARTBEAT_SECONDS
    try:
        while True:
            await asyncio.sleep(interval)
            await ws.send_text(WsOutbound(type=protocol.PONG).model_dump_json())
    except asyncio.CancelledError:
        pass
    except Exception:
        logger.debug("WS heartbeat stopped", exc_info=True)


async def _read_loop(ws: WebSocket, principal: Principal) -> None:
    while True:
        raw = await ws.receive_text()
        try:
            msg = WsInbound.model_validate_json(raw)
        except Exception:
            await _reply(ws, WsOutbound.error("invalid_payload"))
            continue

        if msg.type == protocol.PING:
            await _reply(ws, WsOutbound(type=protocol.PONG))

        elif msg.type == protocol.MESSAGE_SEND:
            await _handle_send(ws, principal, msg.data)

        elif msg.type == protocol.MARK_READ:
            await _handle_mark_read(ws, principal, msg.data)

        elif msg.type == protocol.MARK_ALL_READ:
            await _handle_mark_all_read(ws, principal, msg.data)

        else:
            await _reply(ws, WsOutbound.error("unknown_type", type=msg.type))


async def _reply(ws: WebSocket, out: WsOutbound) -> None:
    await ws.send_text(out.model_dump_json())


async def _handle_send(ws: WebSocket, principal: Principal, data: dict[str, Any]) -> None:
    try:
        dto = SendMessageDTO(
            recipient_id=int(data["recipient_id"]),
            text=data.get("text") or "",
            context_id=data.get("context_id"),
            client_msg_id=UUID(data["client_msg_id"]) if data.get("client_msg_id") else None,
        )
    except (KeyError, TypeError, ValueError) as exc:
        await _reply(ws, WsOutbound.error("invalid_data", detail=str(exc)))
        return

    async with uow_scope() as uow:
        try:
            msg, _created = await message_service.send_message(principal, dto, uow)
        except AppError as exc:
            await _reply(
                ws,
                WsOutbound.error(
                    "send_failed",
                    kind=type(exc).__name__,
                    detail=exc.detail,
                    client_msg_id=data.get("client_msg_id"),
                ),
            )
            return

    # Delivery to both parties goes through the outbox fan-out
    await _reply(ws, WsOutbound(type=protocol.MESSAGE_SENT, data={"message": message_to_dict(msg)}))


async def _handle_mark_read(ws: WebSocket, principal: Principal, data: dict[str, Any]) -> None:
    try:
        message_id = UUID(data["message_id"])
    except (KeyError, TypeError, ValueError):
        await _reply(ws, WsOutbound.error("invalid_data"))
        return

    async with uow_scope() as uow:
        try:
            await read_state_service.mark_read(principal, message_id, uow)
        except AppError:
            logger.info("mark_read rejected for %s", message_id, exc_info=True)
        except Exception:
            logger.exception("mark_read failed")


async def _handle_mark_all_read(ws: WebSocket, principal: Principal, data: dict[str, Any]) -> None:
    try:
        counterparty_id = int(data["counterparty_id"])
    except (KeyError, TypeError, ValueError):
        await _reply(ws, WsOutbound.error("invalid_data"))
        return

    async with uow_scope() as uow:
        try:
            await read_state_service.mark_all_read(principal, counterparty_id, uow)
        except AppError:
            logger.info("mark_all_read rejected for %s", counterparty_id, exc_info=True)
        except Exception:
            logger.exception("mark_all_read failed")
