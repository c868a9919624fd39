"""
Ordered in-memory collection for one entity kind.

Invariants:
    - Iteration order is insertion order; no implicit sort or dedup
    - ids are unique within the collection at all times
    - Every operation completes synchronously; no caller can observe a
      half-applied write

How to change safely:
    - Keep every method free of ``await`` so writes stay atomic with
      respect to the event loop
    - Return new entity instances from patch; never mutate in place
"""

from __future__ import annotations

import dataclasses
import logging
import uuid
from typing import Any, Callable, Generic, Iterator, List, Mapping, Optional, Type, TypeVar

from ..errors import NotFoundError, ValidationError
from .types import EntityMixin, normalize_id

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=EntityMixin)


def _uuid_id() -> str:
    return str(uuid.uuid4())


class EntityCollection(Generic[E]):
    """Mutable ordered collection of entities of a single kind.

    Attributes:
        entity_type: Dataclass stored in this collection
        kind: Entity kind, used in logs and error messages

    Example:
        >>> accounts = EntityCollection(Account)
        >>> acc = accounts.insert({"username": "a", "email": "a@x.com"})
        >>> accounts.patch(acc.id, {"email": "b@x.com"}).email
        'b@x.com'
    """

    def __init__(
        self,
        entity_type: Type[E],
        id_factory: Optional[Callable[[], str]] = None,
    ) -> None:
        """Initialize an empty collection.

        Args:
            entity_type: Entity dataclass to store
            id_factory: Callable producing fresh ids (uuid4 by default)
        """
        self.entity_type = entity_type
        self.kind = entity_type.KIND
        self._id_factory = id_factory or _uuid_id
        self._items: List[E] = []

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[E]:
        return iter(list(self._items))

    @property
    def label(self) -> str:
        return self.kind.value.capitalize()

    def list_all(self) -> List[E]:
        """Return a snapshot of the collection in insertion order."""
        return list(self._items)

    def get_by_id(self, entity_id: Any) -> Optional[E]:
        """Look up an entity by id.

        Args:
            entity_id: Id in any representation accepted by normalize_id

        Returns:
            The entity, or None if absent
        """
        index = self._index_of(normalize_id(entity_id))
        return None if index is None else self._items[index]

    def insert(self, payload: Mapping[str, Any]) -> E:
        """Create an entity with a freshly generated id and append it.

        Args:
            payload: Values for every mutable field

        Returns:
            The stored entity

        Raises:
            ValidationError: If a field is missing or unknown
        """
        data = self._coerce(payload, partial=False)
        entity = self.entity_type(id=self._next_id(), **data)
        self._items.append(entity)
        return entity

    def load(self, entity: E) -> E:
        """Append an entity that already carries an id (seed loading).

        Raises:
            ValidationError: If the id is already present
        """
        if self._index_of(entity.id) is not None:  # type: ignore[attr-defined]
            raise ValidationError(
                f"Duplicate {self.kind.value} id: {entity.id}",  # type: ignore[attr-defined]
                field_name="id",
            )
        self._items.append(entity)
        return entity

    def patch(self, entity_id: Any, partial: Mapping[str, Any]) -> E:
        """Overwrite the fields present in ``partial``, keep the rest.

        Fields whose value is None count as omitted.

        Args:
            entity_id: Id of the entity to change
            partial: Subset of mutable fields

        Returns:
            The merged entity

        Raises:
            NotFoundError: If no entity has this id
            ValidationError: If ``partial`` names an unknown field
        """
        key = normalize_id(entity_id)
        index = self._index_of(key)
        if index is None:
            raise self._not_found(key)
        changes = self._coerce(partial, partial=True)
        updated = dataclasses.replace(self._items[index], **changes)  # type: ignore[type-var]
        self._items[index] = updated
        return updated

    def remove(self, entity_id: Any) -> E:
        """Remove an entity and return it.

        Raises:
            NotFoundError: If no entity has this id
        """
        key = normalize_id(entity_id)
        index = self._index_of(key)
        if index is None:
            raise self._not_found(key)
        return self._items.pop(index)

    def clear(self) -> List[E]:
        """Empty the collection.

        Returns:
            Everything the collection held before the call, in order
        """
        removed, self._items = self._items, []
        return removed

    def filter_by(self, field_name: str, value: Any) -> List[E]:
        """Return every entity whose ``field_name`` equals ``value``."""
        key = normalize_id(value)
        return [item for item in self._items if getattr(item, field_name) == key]

    def _index_of(self, key: str) -> Optional[int]:
        for index, item in enumerate(self._items):
            if item.id == key:  # type: ignore[attr-defined]
                return index
        return None

    def _next_id(self) -> str:
        new_id = normalize_id(self._id_factory())
        while self._index_of(new_id) is not None:
            logger.warning(f"Generated {self.kind.value} id collided, retrying: {new_id}")
            new_id = normalize_id(self._id_factory())
        return new_id

    def _not_found(self, key: str) -> NotFoundError:
        return NotFoundError(
            f"{self.label} not found: {key}",
            resource_type=self.kind.value,
            resource_id=key,
        )

    def _coerce(self, payload: Mapping[str, Any], partial: bool) -> dict[str, Any]:
        allowed = self.entity_type.mutable_fields()
        unknown = sorted(set(payload) - set(allowed))
        if unknown:
            raise ValidationError(
                f"Unknown field(s) for {self.kind.value}: {', '.join(unknown)}",
                field_name=unknown[0],
                errors=[f"unknown: {name}" for name in unknown],
            )

        data = {name: value for name, value in payload.items() if value is not None}
        if not partial:
            missing = [name for name in allowed if name not in data]
            if missing:
                raise ValidationError(
                    f"Missing field(s) for {self.kind.value}: {', '.join(missing)}",
                    field_name=missing[0],
                    errors=[f"missing: {name}" for name in missing],
                )

        for name in self.entity_type.FOREIGN_KEYS:
            if name in data:
                data[name] = normalize_id(data[name])
        return data
