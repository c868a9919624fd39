"""
Read-time relational resolution.

Associations between entities are never stored or cached. Each accessor
scans the live sibling collection at the moment it is called, so a
resolved association always reflects the most recent completed write.

Invariants:
    - Accessors are pure reads; they never mutate the store
    - "Many" sides return matches in collection order
    - "One" sides return None for a dangling reference
"""

from __future__ import annotations

from typing import List, Optional

from ..store import Account, EntityStore, Location, Participation, ScheduledEvent


class RelationalResolver:
    """Computes cross-collection associations from an EntityStore.

    Example:
        >>> resolver = RelationalResolver(store)
        >>> owner = resolver.owner_of_event(event)
        >>> events = resolver.events_of_account(owner) if owner else []
    """

    def __init__(self, store: EntityStore) -> None:
        self.store = store

    # Account

    def events_of_account(self, account: Account) -> List[ScheduledEvent]:
        """Events owned by the account."""
        return self.store.events.filter_by("owner_id", account.id)

    def participations_of_account(self, account: Account) -> List[Participation]:
        """Participations recorded for the account."""
        return self.store.participations.filter_by("account_id", account.id)

    # ScheduledEvent

    def owner_of_event(self, event: ScheduledEvent) -> Optional[Account]:
        return self.store.accounts.get_by_id(event.owner_id)

    def location_of_event(self, event: ScheduledEvent) -> Optional[Location]:
        return self.store.locations.get_by_id(event.location_id)

    def participations_of_event(self, event: ScheduledEvent) -> List[Participation]:
        return self.store.participations.filter_by("event_id", event.id)

    # Location

    def events_of_location(self, location: Location) -> List[ScheduledEvent]:
        return self.store.events.filter_by("location_id", location.id)

    # Participation

    def account_of_participation(self, participation: Participation) -> Optional[Account]:
        return self.store.accounts.get_by_id(participation.account_id)

    def event_of_participation(self, participation: Participation) -> Optional[ScheduledEvent]:
        return self.store.events.get_by_id(participation.event_id)
