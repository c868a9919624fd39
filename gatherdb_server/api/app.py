"""
FastAPI application factory for GatherDB.

This module creates the main FastAPI app with:
- GraphQL endpoint (queries and mutations over HTTP, subscriptions over
  WebSocket) served by strawberry's GraphQLRouter
- DataService lifecycle management (seed load on startup, subscriber
  teardown on shutdown)
- CORS configuration
- Health endpoint

Usage:
    uvicorn gatherdb_server.api.app:create_app --factory --port 4000
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from strawberry.fastapi import GraphQLRouter

from .. import __version__
from ..config import Settings, load_settings
from ..service import DataService
from .schema import build_schema


def create_app(
    settings: Optional[Settings] = None,
    service: Optional[DataService] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Configuration (loaded from environment if omitted)
        service: Pre-built DataService; one is created from settings if omitted

    Returns:
        Configured FastAPI application
    """
    settings = settings or load_settings()
    service = service or DataService(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Manage DataService lifecycle."""
        service.open()
        app.state.service = service
        app.state.settings = settings

        yield

        service.close()

    async def get_context() -> Dict[str, Any]:
        return {"service": service}

    app = FastAPI(
        title="GatherDB",
        description=(
            "In-memory accounts, events, locations and participations "
            "with live change notifications over GraphQL."
        ),
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    graphql_app = GraphQLRouter(build_schema(service.channels), context_getter=get_context)
    app.include_router(graphql_app, prefix=settings.graphql_path)

    @app.get("/health")
    async def health() -> JSONResponse:
        result = service.health()
        status = 200 if result["healthy"] else 503
        return JSONResponse(result, status_code=status)

    return app
