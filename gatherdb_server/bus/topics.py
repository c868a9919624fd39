"""
Topic and channel naming.

Every observable (kind, change) pair has one Event Bus topic, e.g.
``ACCOUNT_CREATED``, and one client-facing channel, e.g.
``accountCreated``. The periodic counter has a channel but no topic.
"""

from __future__ import annotations

from enum import Enum

from ..store import EntityKind

COUNTER_CHANNEL = "counter"


class ChangeType(Enum):
    """Kinds of entity change that produce notifications."""

    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"


def topic_for(kind: EntityKind, change: ChangeType) -> str:
    """Event Bus topic for a change, e.g. ``EVENT_DELETED``."""
    return f"{kind.value}_{change.value}".upper()


def channel_for(kind: EntityKind, change: ChangeType) -> str:
    """Channel name for a change, e.g. ``eventDeleted``."""
    return f"{kind.value}{change.value.capitalize()}"
