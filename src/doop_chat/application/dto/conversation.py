from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class PageRequestDTO:
    counterparty_id: int
    context_id: str | None = None
    cursor: str | None = None
    limit: int = 20
