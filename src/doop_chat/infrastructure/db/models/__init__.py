"""Import all models so Alembic can discover them via Base.metadata."""
from doop_chat.infrastructure.db.models.message import MessageModel
from doop_chat.infrastructure.db.models.outbox import OutboxMessageModel
from doop_chat.infrastructure.db.models.profile import ProfileModel

__all__ = [
    "MessageModel",
    "OutboxMessageModel",
    "ProfileModel",
]
