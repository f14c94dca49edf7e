from __future__ import annotations

import json
from datetime import datetime
from typing import Any
from uuid import UUID


class _Encoder(json.JSONEncoder):
    def default(self, o: object) -> Any:
        if isinstance(o, UUID):
            return str(o)
        if isinstance(o, datetime):
            return o.isoformat()
        return super().default(o)


def dumps(data: Any) -> str:
    return json.dumps(data, cls=_Encoder)


def serialize_event(event_type: str, payload: dict[str, Any]) -> str:
    return dumps({"event": event_type, "data": payload})


def deserialize_event(raw: str | bytes) -> tuple[str, dict[str, Any]]:
    data = json.loads(raw)
    return data["event"], data["data"]


def decode_stream_fields(fields: dict[str, Any]) -> tuple[str, dict[str, Any]]:
    """Unpack a Redis Stream entry.

    Producers either put a JSON document under ``payload`` or flatten the
    payload into the entry's fields.
    """
    event_type = fields.get("event_type", "unknown")
    raw = fields.get("payload")
    if raw is not None:
        return event_type, json.loads(raw)
    return event_type, {k: v for k, v in fields.items() if k != "event_type"}
