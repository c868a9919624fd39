"""
GatherDB Server - in-memory data service with live change notifications.

This package implements a small data service over four related
collections (accounts, scheduled events, locations, participations):
- Typed reads, with associations resolved at read time
- Writes that publish change notifications on an in-process bus
- Live subscriptions, each consumer with its own ordered stream

Architecture:
    ┌─────────────┐     ┌──────────────┐     ┌─────────────────┐
    │   Client    │────▶│   GraphQL    │────▶│    Mutation     │
    │ (HTTP / WS) │     │  (FastAPI)   │     │   Dispatcher    │
    └─────────────┘     └──────┬───────┘     └───┬─────────┬───┘
                               │ read            │ write   │ publish
                        ┌──────▼───────┐   ┌─────▼─────┐ ┌─▼────────┐
                        │  Relational  │──▶│  Entity   │ │ EventBus │
                        │   Resolver   │   │   Store   │ └─┬────────┘
                        └──────────────┘   └───────────┘   │ fan-out
                                                    ┌──────▼───────┐
                                                    │   Channel    │
                                                    │ Multiplexer  │──▶ subscribers
                                                    └──────────────┘

Invariants:
    - All data is held in memory; the seed document is never written back
    - Associations are computed on read, never stored or cached
    - A failed mutation publishes nothing
    - A slow subscriber never blocks a writer or other subscribers

How to change safely:
    - Keep store and dispatcher operations synchronous
    - Route every id comparison through store.normalize_id
"""

from ._version import __version__

__all__ = ["__version__"]
