"""``MessageStore`` backed by the chat service REST API."""
from __future__ import annotations

import logging
from datetime import datetime
from types import TracebackType
from typing import Any
from uuid import UUID

import httpx

from doop_chat.application.dto.message import MessagePage
from doop_chat.application.exceptions import (
    AppError,
    AuthorizationError,
    NotFoundError,
    Unavailable,
    ValidationError,
)
from doop_chat.application.policies.validation import validate_text
from doop_chat.domain.entities.conversation import ConversationSummary, CounterpartyInfo
from doop_chat.domain.entities.message import Message
from doop_chat.domain.events.message_created import message_from_dict

logger = logging.getLogger(__name__)


class HttpMessageStore:
    """Talks to the service as a single authenticated identity.

    Requests on behalf of any other identity are rejected locally with
    ``AuthorizationError`` before touching the network.
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        identity: int,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.identity = identity
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={"Authorization": f"Bearer {token}"},
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> HttpMessageStore:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def append(
        self,
        sender_id: int,
        recipient_id: int,
        text: str,
        context_id: str | None = None,
        client_msg_id: UUID | None = None,
    ) -> Message:
        self._assert_self(sender_id)
        validate_text(text)
        body: dict[str, Any] = {"text": text, "context_id": context_id}
        if client_msg_id is not None:
            body["client_msg_id"] = str(client_msg_id)
        data = await self._request(
            "POST", f"/api/v1/conversations/{recipient_id}/messages", json=body
        )
        return message_from_dict(data)

    async def page(
        self,
        identity_a: int,
        identity_b: int,
        context_id: str | None = None,
        cursor: str | None = None,
        limit: int = 20,
    ) -> MessagePage:
        if self.identity == identity_a:
            counterparty_id = identity_b
        elif self.identity == identity_b:
            counterparty_id = identity_a
        else:
            raise AuthorizationError("Not a participant of this conversation")
        params: dict[str, Any] = {"limit": limit}
        if context_id is not None:
            params["context_id"] = context_id
        if cursor is not None:
            params["cursor"] = cursor
        data = await self._request(
            "GET", f"/api/v1/conversations/{counterparty_id}/messages", params=params
        )
        return MessagePage(
            messages=[message_from_dict(m) for m in data["messages"]],
            has_more=bool(data["has_more"]),
            next_cursor=data.get("next_cursor"),
        )

    async def mark_read(self, message_id: UUID) -> None:
        await self._request("POST", f"/api/v1/messages/{message_id}/read")

    async def mark_all_read(self, counterparty_id: int, for_identity: int) -> None:
        self._assert_self(for_identity)
        await self._request("POST", f"/api/v1/conversations/{counterparty_id}/read")

    async def list_conversations(self, identity: int) -> list[ConversationSummary]:
        self._assert_self(identity)
        data = await self._request("GET", "/api/v1/conversations")
        return [
            ConversationSummary(
                counterparty_id=int(item["counterparty_id"]),
                counterparty=CounterpartyInfo(
                    username=item["counterparty"].get("username"),
                    profile_pic=item["counterparty"].get("profile_pic"),
                ),
                last_message_text=item["last_message_text"],
                last_message_time=datetime.fromisoformat(item["last_message_time"]),
            )
            for item in data
        ]

    async def get_counterparty(self, user_id: int) -> CounterpartyInfo | None:
        """Profile shown in a conversation header; ``None`` if unknown."""
        try:
            data = await self._request("GET", f"/api/v1/profiles/{user_id}")
        except NotFoundError:
            return None
        return CounterpartyInfo(username=data["username"], profile_pic=data.get("profile_pic"))

    def _assert_self(self, identity: int) -> None:
        if identity != self.identity:
            raise AuthorizationError("Cannot act on behalf of another identity")

    async def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        try:
            resp = await self._client.request(method, url, **kwargs)
        except httpx.TimeoutException as exc:
            raise Unavailable(f"{method} {url} timed out") from exc
        except httpx.TransportError as exc:
            raise Unavailable(f"{method} {url} failed: {exc}") from exc

        if resp.status_code == 204:
            return None
        if resp.is_success:
            return resp.json()

        detail = _error_detail(resp)
        logger.debug("%s %s -> %d %s", method, url, resp.status_code, detail)
        if resp.status_code in (401, 403):
            raise AuthorizationError(detail)
        if resp.status_code == 404:
            raise NotFoundError(detail)
        if resp.status_code in (400, 409, 422):
            raise ValidationError(detail)
        if resp.status_code >= 500 or resp.status_code == 429:
            raise Unavailable(detail)
        raise AppError(detail)


def _error_detail(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text or resp.reason_phrase
    detail = body.get("detail") if isinstance(body, dict) else body
    if detail is None:
        return resp.reason_phrase
    return detail if isinstance(detail, str) else str(detail)
