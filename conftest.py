"""Root conftest: service settings are read at import, so seed the env first."""
from __future__ import annotations

import os
from pathlib import Path

_TEST_ENV = {
    "POSTGRES_USER": "doop",
    "POSTGRES_PASSWORD": "doop",
    "POSTGRES_DB": "doop_chat_test",
    "JWT_SECRET": "test-secret-for-doop-chat-hs256-signing",
    "JWT_VERIFY_MODE": "hs256",
    "DB_CREATE_TABLES": "false",
}

_env_file = Path(__file__).resolve().parent / ".env.test"
if _env_file.exists():
    for raw in _env_file.read_text().splitlines():
        key, sep, value = raw.strip().partition("=")
        if sep and not key.startswith("#"):
            _TEST_ENV[key.strip()] = value.strip()

for _key, _value in _TEST_ENV.items():
    os.environ.setdefault(_key, _value)
