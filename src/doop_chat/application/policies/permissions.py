from __future__ import annotations

from doop_chat.application.dto.principal import Principal
from doop_chat.application.exceptions import NotFoundError
from doop_chat.domain.entities.message import Message


def assert_message_access(principal: Principal, message: Message | None) -> Message:
    """Raise if the message doesn't exist or the principal is not one of its two parties."""
    if message is None:
        raise NotFoundError("Message not found")

    # Not a party: answer as if the message did not exist
    if not message.is_visible_to(principal.subject_id):
        raise NotFoundError("Message not found")

    return message
