from __future__ import annotations

from typing import NewType
from uuid import UUID

MessageId = NewType("MessageId", UUID)
UserId = NewType("UserId", int)
# Local ids live in their own string namespace; the Store only issues UUIDs.
PendingId = NewType("PendingId", str)

PENDING_ID_PREFIX = "pending-"


def pending_id(seq: int) -> PendingId:
    return PendingId(f"{PENDING_ID_PREFIX}{seq}")
