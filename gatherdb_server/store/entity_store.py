"""
Entity store holding the four GatherDB collections.

The store is an explicit object rather than module-level state: the
data service constructs one, loads the seed document into it and
closes it on shutdown. The relational resolver and the mutation
dispatcher receive it by injection.

Invariants:
    - All data lives in memory for the lifetime of the store
    - Seed records are validated and id-normalized on load; a rejected
      seed document loads nothing
    - close() leaves every collection empty
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional

from ..errors import ValidationError
from .collection import EntityCollection
from .seed import COLLECTION_KEYS, SeedDocument
from .types import (
    ENTITY_TYPES,
    Account,
    EntityKind,
    EntityMixin,
    Location,
    Participation,
    ScheduledEvent,
)

logger = logging.getLogger(__name__)


class EntityStore:
    """In-memory store for accounts, events, locations and participations.

    Attributes:
        accounts: Account collection
        events: ScheduledEvent collection
        locations: Location collection
        participations: Participation collection

    Example:
        >>> store = EntityStore()
        >>> store.load(SeedDocument(accounts=[{"id": 1, "username": "a", "email": "a@x"}]))
        >>> store.accounts.get_by_id("1").username
        'a'
        >>> store.close()
    """

    def __init__(self, id_factory: Optional[Callable[[], str]] = None) -> None:
        """Initialize empty collections.

        Args:
            id_factory: Optional id generator shared by all collections
        """
        self.accounts: EntityCollection[Account] = EntityCollection(Account, id_factory)
        self.events: EntityCollection[ScheduledEvent] = EntityCollection(
            ScheduledEvent, id_factory
        )
        self.locations: EntityCollection[Location] = EntityCollection(Location, id_factory)
        self.participations: EntityCollection[Participation] = EntityCollection(
            Participation, id_factory
        )
        self._collections: Dict[EntityKind, EntityCollection] = {
            EntityKind.ACCOUNT: self.accounts,
            EntityKind.EVENT: self.events,
            EntityKind.LOCATION: self.locations,
            EntityKind.PARTICIPATION: self.participations,
        }

    def collection(self, kind: EntityKind) -> EntityCollection:
        """Return the collection for an entity kind."""
        return self._collections[kind]

    def load(self, seed: SeedDocument) -> None:
        """Append every seed record to its collection.

        Every record is validated before any is appended, so a rejected
        seed leaves the store unchanged.

        Args:
            seed: Parsed seed document

        Raises:
            ValidationError: If a record is incomplete or duplicates an id
        """
        staged: Dict[EntityKind, List[EntityMixin]] = {}
        for kind, collection in self._collections.items():
            entity_type = ENTITY_TYPES[kind]
            seen = {entity.id for entity in collection}
            entities = []
            for record in seed.records(kind):
                entity = entity_type.from_dict(record)
                if entity.id in seen:  # type: ignore[attr-defined]
                    raise ValidationError(
                        f"Duplicate {kind.value} id: {entity.id}",  # type: ignore[attr-defined]
                        field_name="id",
                    )
                seen.add(entity.id)  # type: ignore[attr-defined]
                entities.append(entity)
            staged[kind] = entities

        for kind, entities in staged.items():
            for entity in entities:
                self._collections[kind].load(entity)
        logger.info("Seed data loaded", extra=self.counts())

    def counts(self) -> Dict[str, int]:
        """Number of entities per collection, keyed by collection name."""
        return {COLLECTION_KEYS[kind]: len(c) for kind, c in self._collections.items()}

    def close(self) -> None:
        """Drop all data held by the store."""
        for collection in self._collections.values():
            collection.clear()
        logger.debug("EntityStore closed")
