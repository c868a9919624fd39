"""
Seed document loader.

The seed document is a JSON object with four ordered arrays::

    {
        "accounts": [{"id": "1", "username": "...", "email": "..."}],
        "events": [{"id": "1", "title": "...", "owner_id": "1", ...}],
        "locations": [{"id": "1", "name": "...", "latitude": 0.0, ...}],
        "participations": [{"id": "1", "account_id": "1", "event_id": "1"}]
    }

Documents written for the earlier schema (``users``/``participants``
arrays with ``desc``, ``from``, ``to``, ``lat``, ``lng`` and ``user_id``
fields) are accepted and mapped onto the current field names.

The document is read once at startup and never written back.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping

from ..errors import SeedError
from .types import EntityKind

logger = logging.getLogger(__name__)

# Legacy top-level keys -> current keys
_COLLECTION_ALIASES = {
    "users": "accounts",
    "participants": "participations",
}

# Legacy per-record field names, by kind
_FIELD_ALIASES: Dict[EntityKind, Dict[str, str]] = {
    EntityKind.ACCOUNT: {},
    EntityKind.EVENT: {
        "desc": "description",
        "from": "start_time",
        "to": "end_time",
        "user_id": "owner_id",
    },
    EntityKind.LOCATION: {
        "desc": "description",
        "lat": "latitude",
        "lng": "longitude",
    },
    EntityKind.PARTICIPATION: {
        "user_id": "account_id",
    },
}

COLLECTION_KEYS: Dict[EntityKind, str] = {
    EntityKind.ACCOUNT: "accounts",
    EntityKind.EVENT: "events",
    EntityKind.LOCATION: "locations",
    EntityKind.PARTICIPATION: "participations",
}


@dataclass
class SeedDocument:
    """Raw records for each collection, in document order."""

    accounts: List[Dict[str, Any]] = field(default_factory=list)
    events: List[Dict[str, Any]] = field(default_factory=list)
    locations: List[Dict[str, Any]] = field(default_factory=list)
    participations: List[Dict[str, Any]] = field(default_factory=list)

    def records(self, kind: EntityKind) -> List[Dict[str, Any]]:
        return getattr(self, COLLECTION_KEYS[kind])

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> SeedDocument:
        """Create from a parsed JSON document.

        Raises:
            SeedError: If the document is not an object of arrays
        """
        if not isinstance(data, Mapping):
            raise SeedError("Seed document must be a JSON object")

        collections: Dict[str, List[Dict[str, Any]]] = {}
        for raw_key, records in data.items():
            key = _COLLECTION_ALIASES.get(raw_key, raw_key)
            if key not in COLLECTION_KEYS.values():
                logger.warning(f"Ignoring unknown seed collection: {raw_key}")
                continue
            if not isinstance(records, list):
                raise SeedError(f"Seed collection '{raw_key}' must be an array")
            collections[key] = records

        doc = cls()
        for kind, key in COLLECTION_KEYS.items():
            aliases = _FIELD_ALIASES[kind]
            doc.records(kind).extend(
                _rename(record, aliases, key) for record in collections.get(key, [])
            )
        return doc


def _rename(record: Any, aliases: Mapping[str, str], collection: str) -> Dict[str, Any]:
    if not isinstance(record, Mapping):
        raise SeedError(f"Seed collection '{collection}' contains a non-object record")
    return {aliases.get(name, name): value for name, value in record.items()}


def load_seed(path: str | Path) -> SeedDocument:
    """Read a seed document from disk.

    Args:
        path: Path to the JSON file

    Returns:
        Parsed SeedDocument

    Raises:
        SeedError: If the file is missing or not valid JSON
    """
    seed_path = Path(path)
    try:
        raw = seed_path.read_text(encoding="utf-8")
    except OSError as e:
        raise SeedError(f"Cannot read seed document: {e}", path=str(seed_path)) from e

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise SeedError(f"Seed document is not valid JSON: {e}", path=str(seed_path)) from e

    doc = SeedDocument.from_dict(data)
    logger.info(
        "Seed document read",
        extra={
            "path": str(seed_path),
            **{key: len(doc.records(kind)) for kind, key in COLLECTION_KEYS.items()},
        },
    )
    return doc
