"""
Entity types for the GatherDB store.

Four entity kinds live in the store: accounts, scheduled events,
locations and participations. Relationships between them are carried
as plain foreign-key fields and resolved at read time by
``gatherdb_server.resolve``; no back-pointers are stored.

Invariants:
    - Entities are immutable; a patch produces a new instance
    - ``id`` is assigned once at creation and never changes
    - All ids and foreign keys are held in canonical form (``str``)
    - Foreign keys are opaque and may dangle

How to change safely:
    - New fields must be added to the GraphQL input/output types too
    - New foreign keys must be listed in ``FOREIGN_KEYS`` so they are
      normalized at the store boundary
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from enum import Enum
from typing import Any, ClassVar, Mapping, Tuple, Type, TypeVar, Union

from ..errors import ValidationError

E = TypeVar("E", bound="EntityMixin")


class EntityKind(Enum):
    """Entity kinds held by the store."""

    ACCOUNT = "account"
    EVENT = "event"
    LOCATION = "location"
    PARTICIPATION = "participation"


def normalize_id(value: Any) -> str:
    """Convert an id or foreign key to its canonical representation.

    Seed documents may carry integer ids while GraphQL always supplies
    strings; every comparison in the service goes through this function
    so both forms compare equal. No other rewriting happens: " 1" and
    "1" are different ids.

    Args:
        value: Raw identifier

    Returns:
        Identifier as ``str``

    Raises:
        ValidationError: If the value is missing or empty
    """
    if value is None or isinstance(value, bool):
        raise ValidationError("Identifier is required", field_name="id")
    normalized = str(value)
    if not normalized:
        raise ValidationError("Identifier must not be empty", field_name="id")
    return normalized


class EntityMixin:
    """Shared helpers for entity dataclasses."""

    KIND: ClassVar[EntityKind]
    FOREIGN_KEYS: ClassVar[Tuple[str, ...]] = ()

    @classmethod
    def field_names(cls) -> Tuple[str, ...]:
        """All field names, ``id`` first."""
        return tuple(f.name for f in fields(cls))  # type: ignore[arg-type]

    @classmethod
    def mutable_fields(cls) -> Tuple[str, ...]:
        """Field names a caller may set on insert or patch."""
        return tuple(name for name in cls.field_names() if name != "id")

    @classmethod
    def from_dict(cls: Type[E], data: Mapping[str, Any]) -> E:
        """Build an entity from a complete record, id included.

        Args:
            data: Record with every field of the entity

        Returns:
            Entity instance with normalized identifiers

        Raises:
            ValidationError: If a field is missing
        """
        missing = [name for name in cls.field_names() if name not in data]
        if missing:
            raise ValidationError(
                f"{cls.KIND.value} record is missing fields: {', '.join(missing)}",
                field_name=missing[0],
                errors=[f"missing: {name}" for name in missing],
            )
        values = {name: data[name] for name in cls.field_names()}
        values["id"] = normalize_id(values["id"])
        for key in cls.FOREIGN_KEYS:
            values[key] = normalize_id(values[key])
        return cls(**values)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return asdict(self)  # type: ignore[call-overload]


@dataclass(frozen=True)
class Account(EntityMixin):
    """A user account.

    Attributes:
        id: Unique account id
        username: Display name
        email: Contact email
    """

    id: str
    username: str
    email: str

    KIND: ClassVar[EntityKind] = EntityKind.ACCOUNT


@dataclass(frozen=True)
class ScheduledEvent(EntityMixin):
    """A scheduled event owned by an account and held at a location.

    Attributes:
        id: Unique event id
        title: Event title
        description: Free-form description
        date: Calendar date, kept as given
        start_time: Start time, kept as given
        end_time: End time, kept as given
        owner_id: Id of the owning account (may dangle)
        location_id: Id of the location (may dangle)
    """

    id: str
    title: str
    description: str
    date: str
    start_time: str
    end_time: str
    owner_id: str
    location_id: str

    KIND: ClassVar[EntityKind] = EntityKind.EVENT
    FOREIGN_KEYS: ClassVar[Tuple[str, ...]] = ("owner_id", "location_id")


@dataclass(frozen=True)
class Location(EntityMixin):
    """A place where events are held."""

    id: str
    name: str
    description: str
    latitude: float
    longitude: float

    KIND: ClassVar[EntityKind] = EntityKind.LOCATION


@dataclass(frozen=True)
class Participation(EntityMixin):
    """An account's participation in an event."""

    id: str
    account_id: str
    event_id: str

    KIND: ClassVar[EntityKind] = EntityKind.PARTICIPATION
    FOREIGN_KEYS: ClassVar[Tuple[str, ...]] = ("account_id", "event_id")


Entity = Union[Account, ScheduledEvent, Location, Participation]

ENTITY_TYPES: dict[EntityKind, Type[EntityMixin]] = {
    EntityKind.ACCOUNT: Account,
    EntityKind.EVENT: ScheduledEvent,
    EntityKind.LOCATION: Location,
    EntityKind.PARTICIPATION: Participation,
}
