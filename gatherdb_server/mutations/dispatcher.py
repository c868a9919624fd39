"""
Mutation dispatcher: store writes paired with change notifications.

Each entity kind gets an EntityMutations object exposing create, update,
delete and delete_all. Each operation mutates the entity store first and
then publishes the resulting entity on the matching bus topic, both
within the caller's scheduling turn.

Invariants:
    - A failed update/delete (NotFoundError) publishes nothing and
      leaves every collection untouched
    - update publishes the merged entity; delete publishes the removed one
    - delete_all publishes one "deleted" notification per removed entity,
      in the order the entities held in the collection
    - Kinds that are not observable (or when the counter family is
      active) never publish
    - Every id passes through normalize_id before comparison

How to change safely:
    - Never await between the store write and publish(); the pair must
      stay atomic with respect to other requests
    - Publish only after the store call has returned successfully
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Generic, List, Mapping, TypeVar

from ..bus import ChangeType, ChannelMultiplexer, EventBus, topic_for
from ..errors import NotFoundError
from ..store import (
    Account,
    EntityCollection,
    EntityKind,
    EntityStore,
    Location,
    Participation,
    ScheduledEvent,
    normalize_id,
)
from ..store.types import EntityMixin

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=EntityMixin)


class EntityMutations(Generic[E]):
    """Create/update/delete/delete_all for one entity kind.

    Attributes:
        collection: Target store collection
        bus: Event Bus receiving change notifications
        observable: Whether changes are published
    """

    def __init__(self, collection: EntityCollection[E], bus: EventBus, observable: bool) -> None:
        self.collection = collection
        self.bus = bus
        self.observable = observable
        self.kind = collection.kind

    def create(self, data: Mapping[str, Any]) -> E:
        """Insert a new entity with a generated id.

        Args:
            data: Values for every mutable field

        Returns:
            The stored entity

        Raises:
            ValidationError: If a field is missing or unknown
        """
        entity = self.collection.insert(data)
        logger.info(f"{self.collection.label} created", extra={"entity_id": entity.id})  # type: ignore[attr-defined]
        self._publish(ChangeType.CREATED, entity)
        return entity

    def update(self, entity_id: Any, partial: Mapping[str, Any]) -> E:
        """Overwrite the fields present in ``partial``.

        Args:
            entity_id: Id of the entity to change
            partial: Subset of mutable fields; None values are ignored

        Returns:
            The merged entity

        Raises:
            NotFoundError: If the id is absent
        """
        key = normalize_id(entity_id)
        try:
            entity = self.collection.patch(key, partial)
        except NotFoundError:
            logger.info(f"{self.collection.label} update missed", extra={"entity_id": key})
            raise
        logger.info(f"{self.collection.label} updated", extra={"entity_id": key})
        self._publish(ChangeType.UPDATED, entity)
        return entity

    def delete(self, entity_id: Any) -> E:
        """Remove one entity.

        Returns:
            The removed entity

        Raises:
            NotFoundError: If the id is absent
        """
        key = normalize_id(entity_id)
        try:
            entity = self.collection.remove(key)
        except NotFoundError:
            logger.info(f"{self.collection.label} delete missed", extra={"entity_id": key})
            raise
        logger.info(f"{self.collection.label} deleted", extra={"entity_id": key})
        self._publish(ChangeType.DELETED, entity)
        return entity

    def delete_all(self) -> List[E]:
        """Remove every entity of this kind.

        Never fails; an empty collection yields an empty list and no
        notifications.

        Returns:
            The removed entities in their original order
        """
        removed = self.collection.clear()
        logger.info(f"All {self.kind.value} entities deleted", extra={"count": len(removed)})
        for entity in removed:
            self._publish(ChangeType.DELETED, entity)
        return removed

    def _publish(self, change: ChangeType, entity: E) -> None:
        if self.observable:
            self.bus.publish(topic_for(self.kind, change), entity)


class MutationDispatcher:
    """Entry point for all writes, one EntityMutations per kind.

    Example:
        >>> dispatcher = MutationDispatcher(store, bus, channels)
        >>> acc = dispatcher.accounts.create({"username": "a", "email": "a@x.com"})
        >>> dispatcher.accounts.update(acc.id, {"email": "b@x.com"}).email
        'b@x.com'
    """

    def __init__(self, store: EntityStore, bus: EventBus, channels: ChannelMultiplexer) -> None:
        self.accounts: EntityMutations[Account] = EntityMutations(
            store.accounts, bus, channels.is_observable(EntityKind.ACCOUNT)
        )
        self.events: EntityMutations[ScheduledEvent] = EntityMutations(
            store.events, bus, channels.is_observable(EntityKind.EVENT)
        )
        self.locations: EntityMutations[Location] = EntityMutations(
            store.locations, bus, channels.is_observable(EntityKind.LOCATION)
        )
        self.participations: EntityMutations[Participation] = EntityMutations(
            store.participations, bus, channels.is_observable(EntityKind.PARTICIPATION)
        )
        self._by_kind: Dict[EntityKind, EntityMutations] = {
            EntityKind.ACCOUNT: self.accounts,
            EntityKind.EVENT: self.events,
            EntityKind.LOCATION: self.locations,
            EntityKind.PARTICIPATION: self.participations,
        }

    def for_kind(self, kind: EntityKind) -> EntityMutations:
        """Return the mutations object for an entity kind."""
        return self._by_kind[kind]
