"""
Store module for GatherDB - in-memory entity collections.

This module provides:
- Entity dataclasses (Account, ScheduledEvent, Location, Participation)
- EntityCollection: ordered list/get/insert/patch/remove/clear per kind
- EntityStore: the four collections with a load/close lifecycle
- Seed document loading

Invariants:
    - Collections keep insertion order
    - ids are unique per collection and never reassigned
    - Foreign keys are not validated at write time

How to change safely:
    - Keep store operations synchronous
    - Route every id through normalize_id
"""

from .collection import EntityCollection
from .entity_store import EntityStore
from .seed import SeedDocument, load_seed
from .types import (
    ENTITY_TYPES,
    Account,
    Entity,
    EntityKind,
    Location,
    Participation,
    ScheduledEvent,
    normalize_id,
)

__all__ = [
    "Account",
    "ScheduledEvent",
    "Location",
    "Participation",
    "Entity",
    "EntityKind",
    "ENTITY_TYPES",
    "normalize_id",
    "EntityCollection",
    "EntityStore",
    "SeedDocument",
    "load_seed",
]
