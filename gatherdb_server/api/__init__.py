"""
API module for GatherDB.

This module provides the GraphQL transport binding:
- build_schema: strawberry schema (Query, Mutation, Subscription)
- create_app: FastAPI application serving the schema

Invariants:
    - The API layer holds no state of its own; all data lives in the
      DataService passed through the GraphQL context
    - Exactly one subscription family is exposed per app instance
"""

from .app import create_app
from .schema import build_schema

__all__ = ["create_app", "build_schema"]
