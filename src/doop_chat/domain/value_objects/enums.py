from __future__ import annotations

from enum import StrEnum


class SessionState(StrEnum):
    LOADING = "loading"
    READY = "ready"
    LOADING_OLDER = "loading_older"
    SENDING = "sending"
    CLOSED = "closed"


class ChannelEvent(StrEnum):
    MESSAGE_CREATED = "message.created"
    MESSAGES_READ = "messages.read"


class TranscriptChangeKind(StrEnum):
    RESET = "reset"
    PREPEND = "prepend"
    APPEND = "append"
    INSERT = "insert"
    REPLACE = "replace"
    REMOVE = "remove"
    READ = "read"


class OutboxStatus(StrEnum):
    PENDING = "pending"
    PROCESSING = "processing"
    SENT = "sent"
    FAILED = "failed"
    DEAD = "dead"
