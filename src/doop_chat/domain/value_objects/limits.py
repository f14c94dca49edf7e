from __future__ import annotations

PAGE_SIZE = 20
MAX_TEXT_LENGTH = 2000
