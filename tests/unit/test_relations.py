"""
Unit tests for RelationalResolver.

Tests cover:
- One and many sides of every relation
- Dangling references
- Reads reflect the latest write
"""

import pytest

from gatherdb_server.resolve import RelationalResolver
from gatherdb_server.store import EntityStore


class TestRelationalResolver:
    """Tests for RelationalResolver."""

    @pytest.fixture
    def store(self, seed):
        """Create a store loaded with the seed fixture."""
        s = EntityStore()
        s.load(seed)
        return s

    @pytest.fixture
    def resolver(self, store):
        return RelationalResolver(store)

    def test_events_of_account(self, store, resolver):
        """An account's events are those it owns, in collection order."""
        ada = store.accounts.get_by_id("1")
        grace = store.accounts.get_by_id("2")

        assert [e.id for e in resolver.events_of_account(ada)] == ["1", "2"]
        assert resolver.events_of_account(grace) == []

    def test_participations_of_account(self, store, resolver):
        grace = store.accounts.get_by_id("2")
        assert [p.id for p in resolver.participations_of_account(grace)] == ["1"]

    def test_owner_and_location_of_event(self, store, resolver):
        event = store.events.get_by_id("1")

        assert resolver.owner_of_event(event).username == "ada"
        assert resolver.location_of_event(event).name == "Library"

    def test_dangling_location(self, store, resolver):
        """A foreign key matching nothing resolves to None."""
        event = store.events.get_by_id("2")
        assert resolver.location_of_event(event) is None

    def test_participations_of_event(self, store, resolver):
        event = store.events.get_by_id("1")
        assert [p.id for p in resolver.participations_of_event(event)] == ["1", "2"]

    def test_events_of_location(self, store, resolver):
        library = store.locations.get_by_id("1")
        assert [e.id for e in resolver.events_of_location(library)] == ["1"]

    def test_participation_sides(self, store, resolver):
        participation = store.participations.get_by_id("1")

        assert resolver.account_of_participation(participation).username == "grace"
        assert resolver.event_of_participation(participation).title == "Reading group"

    def test_deleted_parent_unresolvable(self, store, resolver):
        """After a delete, associations that pointed at it resolve empty."""
        participation = store.participations.get_by_id("1")
        event = store.events.get_by_id("1")

        store.events.remove("1")

        assert resolver.event_of_participation(participation) is None
        assert resolver.events_of_location(store.locations.get_by_id("1")) == []
        # The removed event's own participations are still scanned live
        assert len(resolver.participations_of_event(event)) == 2

    def test_reads_latest_write(self, store, resolver):
        """Resolution sees a patch made after the parent was fetched."""
        event = store.events.get_by_id("2")
        assert resolver.location_of_event(event) is None

        store.locations.insert({"name": "Pier", "description": "", "latitude": 0, "longitude": 0})
        moved = store.events.patch("2", {"location_id": store.locations.list_all()[-1].id})

        assert resolver.location_of_event(moved).name == "Pier"
        assert [e.id for e in resolver.events_of_location(store.locations.list_all()[-1])] == ["2"]
