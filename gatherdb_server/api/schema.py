"""
GraphQL schema for GatherDB.

Query, mutation and subscription surfaces over the DataService. The
schema layer validates operation shapes (required arguments, scalar
types); everything else is delegated to the store, resolver, mutation
dispatcher and channel multiplexer.

Invariants:
    - Relation fields resolve against the live store at request time
    - A GatherDbError becomes a null field plus an error entry carrying
      the error code; other operations in the request are unaffected
    - Only the active channel family appears in the Subscription type

How to change safely:
    - Keep GraphQL names stable; clients subscribe by field name
    - Subscription resolvers must close their channel stream on exit
      (``aclosing``) so a disconnect detaches from the bus immediately
"""

import dataclasses
import logging
from contextlib import aclosing, contextmanager
from typing import Any, AsyncGenerator, Callable, Dict, Iterator, List, Optional, Tuple

import strawberry
from graphql import GraphQLError
from strawberry.tools import merge_types
from strawberry.types import Info

from ..bus import COUNTER_CHANNEL, ChannelMultiplexer
from ..config import ChannelFamily
from ..errors import GatherDbError
from ..service import DataService
from ..store import Account, EntityKind, Location, Participation, ScheduledEvent

logger = logging.getLogger(__name__)


def _service(info: Info) -> DataService:
    return info.context["service"]


@contextmanager
def _reported() -> Iterator[None]:
    """Re-raise service errors as GraphQL errors with an error code."""
    try:
        yield
    except GatherDbError as e:
        raise GraphQLError(
            e.message,
            original_error=e,
            extensions={"code": e.code, **e.details},
        ) from e


def _service_error(error: GraphQLError) -> Optional[GatherDbError]:
    # graphql-core re-wraps errors raised in resolvers to attach the path
    cause = error.original_error
    while isinstance(cause, GraphQLError):
        cause = cause.original_error
    return cause if isinstance(cause, GatherDbError) else None


def _fields(data: Any) -> Dict[str, Any]:
    return dataclasses.asdict(data)


# =============================================================================
# Output types
# =============================================================================


@strawberry.type(name="Account")
class AccountType:
    id: strawberry.ID
    username: str
    email: str
    entity: strawberry.Private[Account]

    @classmethod
    def from_entity(cls, entity: Account) -> "AccountType":
        return cls(id=strawberry.ID(entity.id), username=entity.username, email=entity.email, entity=entity)

    @strawberry.field(description="Events owned by this account")
    def events(self, info: Info) -> List["EventType"]:
        return [EventType.from_entity(e) for e in _service(info).resolver.events_of_account(self.entity)]

    @strawberry.field(description="Participations recorded for this account")
    def participations(self, info: Info) -> List["ParticipationType"]:
        return [
            ParticipationType.from_entity(p)
            for p in _service(info).resolver.participations_of_account(self.entity)
        ]


@strawberry.type(name="Event")
class EventType:
    id: strawberry.ID
    title: str
    description: str
    date: str
    start_time: str
    end_time: str
    entity: strawberry.Private[ScheduledEvent]

    @classmethod
    def from_entity(cls, entity: ScheduledEvent) -> "EventType":
        return cls(
            id=strawberry.ID(entity.id),
            title=entity.title,
            description=entity.description,
            date=entity.date,
            start_time=entity.start_time,
            end_time=entity.end_time,
            entity=entity,
        )

    @strawberry.field(description="Owning account; null if the reference dangles")
    def owner(self, info: Info) -> Optional[AccountType]:
        account = _service(info).resolver.owner_of_event(self.entity)
        return AccountType.from_entity(account) if account else None

    @strawberry.field(description="Location; null if the reference dangles")
    def location(self, info: Info) -> Optional["LocationType"]:
        location = _service(info).resolver.location_of_event(self.entity)
        return LocationType.from_entity(location) if location else None

    @strawberry.field
    def participations(self, info: Info) -> List["ParticipationType"]:
        return [
            ParticipationType.from_entity(p)
            for p in _service(info).resolver.participations_of_event(self.entity)
        ]


@strawberry.type(name="Location")
class LocationType:
    id: strawberry.ID
    name: str
    description: str
    latitude: float
    longitude: float
    entity: strawberry.Private[Location]

    @classmethod
    def from_entity(cls, entity: Location) -> "LocationType":
        return cls(
            id=strawberry.ID(entity.id),
            name=entity.name,
            description=entity.description,
            latitude=entity.latitude,
            longitude=entity.longitude,
            entity=entity,
        )

    @strawberry.field(description="Events held at this location")
    def events(self, info: Info) -> List[EventType]:
        return [EventType.from_entity(e) for e in _service(info).resolver.events_of_location(self.entity)]


@strawberry.type(name="Participation")
class ParticipationType:
    id: strawberry.ID
    entity: strawberry.Private[Participation]

    @classmethod
    def from_entity(cls, entity: Participation) -> "ParticipationType":
        return cls(id=strawberry.ID(entity.id), entity=entity)

    @strawberry.field
    def account(self, info: Info) -> Optional[AccountType]:
        account = _service(info).resolver.account_of_participation(self.entity)
        return AccountType.from_entity(account) if account else None

    @strawberry.field
    def event(self, info: Info) -> Optional[EventType]:
        event = _service(info).resolver.event_of_participation(self.entity)
        return EventType.from_entity(event) if event else None


# =============================================================================
# Input types
# =============================================================================


@strawberry.input
class CreateAccountInput:
    username: str
    email: str


@strawberry.input
class UpdateAccountInput:
    username: Optional[str] = None
    email: Optional[str] = None


@strawberry.input
class CreateEventInput:
    title: str
    description: str
    date: str
    start_time: str
    end_time: str
    owner_id: strawberry.ID
    location_id: strawberry.ID


@strawberry.input
class UpdateEventInput:
    title: Optional[str] = None
    description: Optional[str] = None
    date: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    owner_id: Optional[strawberry.ID] = None
    location_id: Optional[strawberry.ID] = None


@strawberry.input
class CreateLocationInput:
    name: str
    description: str
    latitude: float
    longitude: float


@strawberry.input
class UpdateLocationInput:
    name: Optional[str] = None
    description: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None


@strawberry.input
class CreateParticipationInput:
    account_id: strawberry.ID
    event_id: strawberry.ID


@strawberry.input
class UpdateParticipationInput:
    account_id: Optional[strawberry.ID] = None
    event_id: Optional[strawberry.ID] = None


# =============================================================================
# Query
# =============================================================================


@strawberry.type
class Query:
    @strawberry.field
    def accounts(self, info: Info) -> List[AccountType]:
        return [AccountType.from_entity(a) for a in _service(info).store.accounts.list_all()]

    @strawberry.field
    def account(self, info: Info, id: strawberry.ID) -> Optional[AccountType]:
        with _reported():
            account = _service(info).store.accounts.get_by_id(id)
        return AccountType.from_entity(account) if account else None

    @strawberry.field
    def events(self, info: Info) -> List[EventType]:
        return [EventType.from_entity(e) for e in _service(info).store.events.list_all()]

    @strawberry.field
    def event(self, info: Info, id: strawberry.ID) -> Optional[EventType]:
        with _reported():
            event = _service(info).store.events.get_by_id(id)
        return EventType.from_entity(event) if event else None

    @strawberry.field
    def locations(self, info: Info) -> List[LocationType]:
        return [LocationType.from_entity(loc) for loc in _service(info).store.locations.list_all()]

    @strawberry.field
    def location(self, info: Info, id: strawberry.ID) -> Optional[LocationType]:
        with _reported():
            location = _service(info).store.locations.get_by_id(id)
        return LocationType.from_entity(location) if location else None

    @strawberry.field
    def participations(self, info: Info) -> List[ParticipationType]:
        return [
            ParticipationType.from_entity(p)
            for p in _service(info).store.participations.list_all()
        ]

    @strawberry.field
    def participation(self, info: Info, id: strawberry.ID) -> Optional[ParticipationType]:
        with _reported():
            participation = _service(info).store.participations.get_by_id(id)
        return ParticipationType.from_entity(participation) if participation else None


# =============================================================================
# Mutation
# =============================================================================


@strawberry.type
class Mutation:
    # Account

    @strawberry.mutation
    def add_account(self, info: Info, data: CreateAccountInput) -> Optional[AccountType]:
        with _reported():
            return AccountType.from_entity(_service(info).mutations.accounts.create(_fields(data)))

    @strawberry.mutation
    def update_account(
        self, info: Info, id: strawberry.ID, data: UpdateAccountInput
    ) -> Optional[AccountType]:
        with _reported():
            return AccountType.from_entity(
                _service(info).mutations.accounts.update(id, _fields(data))
            )

    @strawberry.mutation
    def delete_account(self, info: Info, id: strawberry.ID) -> Optional[AccountType]:
        with _reported():
            return AccountType.from_entity(_service(info).mutations.accounts.delete(id))

    @strawberry.mutation
    def delete_all_accounts(self, info: Info) -> List[AccountType]:
        return [AccountType.from_entity(a) for a in _service(info).mutations.accounts.delete_all()]

    # Event

    @strawberry.mutation
    def add_event(self, info: Info, data: CreateEventInput) -> Optional[EventType]:
        with _reported():
            return EventType.from_entity(_service(info).mutations.events.create(_fields(data)))

    @strawberry.mutation
    def update_event(
        self, info: Info, id: strawberry.ID, data: UpdateEventInput
    ) -> Optional[EventType]:
        with _reported():
            return EventType.from_entity(_service(info).mutations.events.update(id, _fields(data)))

    @strawberry.mutation
    def delete_event(self, info: Info, id: strawberry.ID) -> Optional[EventType]:
        with _reported():
            return EventType.from_entity(_service(info).mutations.events.delete(id))

    @strawberry.mutation
    def delete_all_events(self, info: Info) -> List[EventType]:
        return [EventType.from_entity(e) for e in _service(info).mutations.events.delete_all()]

    # Location

    @strawberry.mutation
    def add_location(self, info: Info, data: CreateLocationInput) -> Optional[LocationType]:
        with _reported():
            return LocationType.from_entity(
                _service(info).mutations.locations.create(_fields(data))
            )

    @strawberry.mutation
    def update_location(
        self, info: Info, id: strawberry.ID, data: UpdateLocationInput
    ) -> Optional[LocationType]:
        with _reported():
            return LocationType.from_entity(
                _service(info).mutations.locations.update(id, _fields(data))
            )

    @strawberry.mutation
    def delete_location(self, info: Info, id: strawberry.ID) -> Optional[LocationType]:
        with _reported():
            return LocationType.from_entity(_service(info).mutations.locations.delete(id))

    @strawberry.mutation
    def delete_all_locations(self, info: Info) -> List[LocationType]:
        return [
            LocationType.from_entity(loc)
            for loc in _service(info).mutations.locations.delete_all()
        ]

    # Participation

    @strawberry.mutation
    def add_participation(
        self, info: Info, data: CreateParticipationInput
    ) -> Optional[ParticipationType]:
        with _reported():
            return ParticipationType.from_entity(
                _service(info).mutations.participations.create(_fields(data))
            )

    @strawberry.mutation
    def update_participation(
        self, info: Info, id: strawberry.ID, data: UpdateParticipationInput
    ) -> Optional[ParticipationType]:
        with _reported():
            return ParticipationType.from_entity(
                _service(info).mutations.participations.update(id, _fields(data))
            )

    @strawberry.mutation
    def delete_participation(self, info: Info, id: strawberry.ID) -> Optional[ParticipationType]:
        with _reported():
            return ParticipationType.from_entity(
                _service(info).mutations.participations.delete(id)
            )

    @strawberry.mutation
    def delete_all_participations(self, info: Info) -> List[ParticipationType]:
        return [
            ParticipationType.from_entity(p)
            for p in _service(info).mutations.participations.delete_all()
        ]


# =============================================================================
# Subscription
# =============================================================================


async def _relay(info: Info, channel: str, wrap: Callable[[Any], Any]) -> AsyncGenerator[Any, None]:
    with _reported():
        stream = _service(info).channels.stream(channel)
    async with aclosing(stream) as envelopes:
        async for envelope in envelopes:
            yield wrap(envelope[channel])


@strawberry.type
class AccountSubscription:
    @strawberry.subscription
    async def account_created(self, info: Info) -> AsyncGenerator[AccountType, None]:
        async with aclosing(_relay(info, "accountCreated", AccountType.from_entity)) as items:
            async for item in items:
                yield item

    @strawberry.subscription
    async def account_updated(self, info: Info) -> AsyncGenerator[AccountType, None]:
        async with aclosing(_relay(info, "accountUpdated", AccountType.from_entity)) as items:
            async for item in items:
                yield item

    @strawberry.subscription
    async def account_deleted(self, info: Info) -> AsyncGenerator[AccountType, None]:
        async with aclosing(_relay(info, "accountDeleted", AccountType.from_entity)) as items:
            async for item in items:
                yield item


@strawberry.type
class EventSubscription:
    @strawberry.subscription
    async def event_created(self, info: Info) -> AsyncGenerator[EventType, None]:
        async with aclosing(_relay(info, "eventCreated", EventType.from_entity)) as items:
            async for item in items:
                yield item

    @strawberry.subscription
    async def event_updated(self, info: Info) -> AsyncGenerator[EventType, None]:
        async with aclosing(_relay(info, "eventUpdated", EventType.from_entity)) as items:
            async for item in items:
                yield item

    @strawberry.subscription
    async def event_deleted(self, info: Info) -> AsyncGenerator[EventType, None]:
        async with aclosing(_relay(info, "eventDeleted", EventType.from_entity)) as items:
            async for item in items:
                yield item


@strawberry.type
class LocationSubscription:
    @strawberry.subscription
    async def location_created(self, info: Info) -> AsyncGenerator[LocationType, None]:
        async with aclosing(_relay(info, "locationCreated", LocationType.from_entity)) as items:
            async for item in items:
                yield item

    @strawberry.subscription
    async def location_updated(self, info: Info) -> AsyncGenerator[LocationType, None]:
        async with aclosing(_relay(info, "locationUpdated", LocationType.from_entity)) as items:
            async for item in items:
                yield item

    @strawberry.subscription
    async def location_deleted(self, info: Info) -> AsyncGenerator[LocationType, None]:
        async with aclosing(_relay(info, "locationDeleted", LocationType.from_entity)) as items:
            async for item in items:
                yield item


@strawberry.type
class ParticipationSubscription:
    @strawberry.subscription
    async def participation_created(self, info: Info) -> AsyncGenerator[ParticipationType, None]:
        async with aclosing(
            _relay(info, "participationCreated", ParticipationType.from_entity)
        ) as items:
            async for item in items:
                yield item

    @strawberry.subscription
    async def participation_updated(self, info: Info) -> AsyncGenerator[ParticipationType, None]:
        async with aclosing(
            _relay(info, "participationUpdated", ParticipationType.from_entity)
        ) as items:
            async for item in items:
                yield item

    @strawberry.subscription
    async def participation_deleted(self, info: Info) -> AsyncGenerator[ParticipationType, None]:
        async with aclosing(
            _relay(info, "participationDeleted", ParticipationType.from_entity)
        ) as items:
            async for item in items:
                yield item


@strawberry.type
class CounterSubscription:
    @strawberry.subscription(description="Ticks 1, 2, 3, ... once per configured period")
    async def counter(self, info: Info) -> AsyncGenerator[int, None]:
        async with aclosing(_relay(info, COUNTER_CHANNEL, int)) as ticks:
            async for tick in ticks:
                yield tick


_SUBSCRIPTIONS_BY_KIND = {
    EntityKind.ACCOUNT: AccountSubscription,
    EntityKind.EVENT: EventSubscription,
    EntityKind.LOCATION: LocationSubscription,
    EntityKind.PARTICIPATION: ParticipationSubscription,
}


class GatherSchema(strawberry.Schema):
    """Schema that logs service errors as caller errors, not crashes."""

    def process_errors(self, errors: List[GraphQLError], execution_context: Any = None) -> None:
        unexpected = []
        for error in errors:
            cause = _service_error(error)
            if cause is not None:
                logger.info(f"GraphQL request failed: {error.message}", extra={"code": cause.code})
            else:
                unexpected.append(error)
        if unexpected:
            super().process_errors(unexpected, execution_context)


def subscription_types(channels: ChannelMultiplexer) -> Tuple[type, ...]:
    """Subscription classes exposed for the active channel family."""
    if channels.family == ChannelFamily.COUNTER:
        return (CounterSubscription,)
    return tuple(
        subscription
        for kind, subscription in _SUBSCRIPTIONS_BY_KIND.items()
        if channels.is_observable(kind)
    )


def build_schema(channels: ChannelMultiplexer) -> strawberry.Schema:
    """Build the GraphQL schema for a channel configuration.

    Args:
        channels: Multiplexer whose family and observable kinds decide
            which subscription fields exist

    Returns:
        Executable strawberry schema
    """
    types = subscription_types(channels)
    subscription = merge_types("Subscription", types) if types else None
    return GatherSchema(query=Query, mutation=Mutation, subscription=subscription)
