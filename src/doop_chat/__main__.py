"""Entrypoint: python -m doop_chat"""
from __future__ import annotations

from typing import Any

import uvicorn
from uvicorn.config import LOGGING_CONFIG

from doop_chat.config import settings


def _log_config() -> dict[str, Any]:
    config: dict[str, Any] = {**LOGGING_CONFIG}
    config["filters"] = {
        "correlation_id": {"()": "doop_chat.api.middleware.correlation_id.CorrelationIdFilter"},
    }
    config["formatters"] = {
        **LOGGING_CONFIG["formatters"],
        "app": {"format": "%(asctime)s %(levelname)s %(name)s [%(correlation_id)s]: %(message)s"},
    }
    config["handlers"] = {
        **LOGGING_CONFIG["handlers"],
        "app": {
            "class": "logging.StreamHandler",
            "formatter": "app",
            "filters": ["correlation_id"],
            "stream": "ext://sys.stderr",
        },
    }
    config["loggers"] = {
        **LOGGING_CONFIG["loggers"],
        "doop_chat": {"handlers": ["app"], "level": settings.LOG_LEVEL, "propagate": False},
    }
    return config


def main() -> None:
    uvicorn.run(
        "doop_chat.app:create_app",
        factory=True,
        host=settings.APP_HOST,
        port=settings.APP_PORT,
        log_level=settings.LOG_LEVEL.lower(),
        log_config=_log_config(),
    )


if __name__ == "__main__":
    main()
