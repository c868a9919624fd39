"""
GatherDB Test Suite.

This package contains:
- unit/: Unit tests (store, resolver, bus, channels, dispatcher, config)
- integration/: Integration tests (GraphQL schema, FastAPI app)
"""
