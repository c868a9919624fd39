"""
Shared fixtures for GatherDB tests.
"""

import pytest

from gatherdb_server.config import ChannelFamily, Settings
from gatherdb_server.service import DataService
from gatherdb_server.store import SeedDocument


@pytest.fixture
def settings():
    """Entity-family settings with the default observable kinds."""
    return Settings(subscription_family=ChannelFamily.ENTITY, seed_path=None)


@pytest.fixture
def seed():
    """Small seed document with one dangling reference (event 2 -> location 99)."""
    return SeedDocument(
        accounts=[
            {"id": "1", "username": "ada", "email": "ada@example.com"},
            {"id": "2", "username": "grace", "email": "grace@example.com"},
        ],
        events=[
            {
                "id": "1",
                "title": "Reading group",
                "description": "Parsing",
                "date": "2026-11-02",
                "start_time": "18:00",
                "end_time": "20:00",
                "owner_id": "1",
                "location_id": "1",
            },
            {
                "id": "2",
                "title": "Walk",
                "description": "Pier",
                "date": "2026-11-07",
                "start_time": "09:00",
                "end_time": "10:30",
                "owner_id": "1",
                "location_id": "99",
            },
        ],
        locations=[
            {"id": "1", "name": "Library", "description": "Room 2", "latitude": 41.0, "longitude": 28.9},
        ],
        participations=[
            {"id": "1", "account_id": "2", "event_id": "1"},
            {"id": "2", "account_id": "1", "event_id": "1"},
        ],
    )


@pytest.fixture
def service(settings):
    """Open DataService with an empty store."""
    svc = DataService(settings)
    svc.open()
    yield svc
    svc.close()


@pytest.fixture
def seeded_service(settings, seed):
    """Open DataService loaded with the seed fixture."""
    svc = DataService(settings)
    svc.open(seed)
    yield svc
    svc.close()
