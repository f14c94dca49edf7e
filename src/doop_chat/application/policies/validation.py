from __future__ import annotations

from doop_chat.application.exceptions import ValidationError
from doop_chat.domain.value_objects.limits import MAX_TEXT_LENGTH


def validate_text(text: str | None) -> str:
    """Return ``text`` unchanged if it is sendable.

    Text is never trimmed or truncated: blank and over-long input is rejected.
    """
    if text is None or not text.strip():
        raise ValidationError("Message text must not be empty")
    if len(text) > MAX_TEXT_LENGTH:
        raise ValidationError(f"Message text exceeds {MAX_TEXT_LENGTH} characters")
    return text


def validate_identity(value: object, *, field: str = "identity") -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(f"Malformed {field}")
    return value


def validate_recipient(sender_id: int, recipient_id: int) -> int:
    validate_identity(recipient_id, field="recipient")
    if recipient_id == sender_id:
        raise ValidationError("Cannot send a message to yourself")
    return recipient_id


def validate_context_id(context_id: str | None) -> str | None:
    if context_id is None:
        return None
    context_id = context_id.strip()
    if not context_id:
        return None
    if len(context_id) > 64 or ":" in context_id:
        raise ValidationError("Malformed context_id")
    return context_id
