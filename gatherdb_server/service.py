"""
GatherDB data service.

The DataService owns one instance of every core component and wires
them together:

    ┌──────────────┐  write   ┌─────────────┐ publish ┌──────────┐
    │  Mutation    │─────────▶│ EntityStore │         │ EventBus │
    │  Dispatcher  │─────────────────────────────────▶│          │
    └──────────────┘          └──────┬──────┘         └────┬─────┘
                                     │ read                │ attach
                              ┌──────▼──────┐       ┌──────▼───────┐
                              │ Relational  │       │   Channel    │
                              │  Resolver   │       │ Multiplexer  │
                              └─────────────┘       └──────────────┘

Invariants:
    - Components are created per service; nothing is module-global
    - open() loads the seed document at most once
    - close() detaches every live subscription and drops all data

How to change safely:
    - New components should receive their collaborators here rather
      than importing shared instances
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

from .bus import ChannelMultiplexer, EventBus
from .config import Settings
from .mutations import MutationDispatcher
from .resolve import RelationalResolver
from .store import EntityKind, EntityStore, SeedDocument, load_seed

logger = logging.getLogger(__name__)


class DataService:
    """Bundle of store, resolver, bus, channels and dispatcher.

    Attributes:
        settings: Effective configuration
        store: Entity store
        resolver: Read-time association resolver
        bus: Event Bus
        channels: Subscription multiplexer
        mutations: Mutation dispatcher

    Example:
        >>> service = DataService(load_settings())
        >>> service.open()
        >>> service.mutations.accounts.create({"username": "a", "email": "a@x.com"})
        >>> service.close()
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        id_factory: Optional[Callable[[], str]] = None,
    ) -> None:
        """Initialize the service and its components.

        Args:
            settings: Configuration (defaults loaded from environment)
            id_factory: Optional id generator, mainly for tests
        """
        self.settings = settings or Settings()
        self.store = EntityStore(id_factory=id_factory)
        self.resolver = RelationalResolver(self.store)
        self.bus = EventBus()
        self.channels = ChannelMultiplexer(
            self.bus,
            family=self.settings.subscription_family,
            observable_kinds=[EntityKind(name) for name in self.settings.observable_kinds],
            counter_period=self.settings.counter_period,
        )
        self.mutations = MutationDispatcher(self.store, self.bus, self.channels)
        self._opened = False

    @property
    def is_open(self) -> bool:
        return self._opened

    def open(self, seed: Optional[SeedDocument] = None) -> None:
        """Load seed data and mark the service ready.

        Args:
            seed: Seed document; read from ``settings.seed_path`` if omitted

        Raises:
            SeedError: If the seed file cannot be read
            ValidationError: If a seed record is malformed
        """
        if self._opened:
            logger.warning("DataService already open")
            return

        if seed is None and self.settings.seed_path:
            seed = load_seed(self.settings.seed_path)
        if seed is not None:
            self.store.load(seed)

        self._opened = True
        logger.info(
            "DataService opened",
            extra={"channels": ",".join(self.channels.channel_names()), **self.store.counts()},
        )

    def close(self) -> None:
        """Detach all subscribers, stop counter streams and drop all data."""
        self.channels.close()
        self.bus.close()
        self.store.close()
        self._opened = False
        logger.info("DataService closed")

    def health(self) -> Dict[str, Any]:
        """Status summary for the health endpoint."""
        return {
            "healthy": self._opened,
            "subscription_family": self.settings.subscription_family.value,
            "collections": self.store.counts(),
            "attachments": self.bus.attachment_count(),
        }
