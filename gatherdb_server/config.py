"""
Configuration management for GatherDB Server.

All configuration is done via environment variables prefixed with
``GATHERDB_`` - no config files inside containers. Settings are loaded
with pydantic-settings, so values are type-checked on load.

Invariants:
    - All settings have sensible defaults for local development
    - Exactly one subscription channel family is active per process
    - Locations are not observable unless explicitly listed

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Extend validate_settings() for every new cross-field constraint
    - Document new settings in README.md
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

ENTITY_KIND_NAMES = ("account", "event", "location", "participation")


class ChannelFamily(str, Enum):
    """Live-notification channel families (mutually exclusive)."""

    ENTITY = "entity"
    COUNTER = "counter"


class LogFormat(str, Enum):
    """Supported log output formats."""

    TEXT = "text"
    JSON = "json"


class Settings(BaseSettings):
    """GatherDB server configuration loaded from environment.

    Attributes:
        host: HTTP bind host
        port: HTTP bind port
        graphql_path: Path of the GraphQL endpoint
        seed_path: Optional JSON seed document loaded at startup
        subscription_family: Which channel family is exposed
        observable_kinds: Entity kinds that publish change notifications
        counter_period: Seconds between counter ticks
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (text, json)
        cors_origins: Allowed CORS origins
    """

    host: str = Field(default="0.0.0.0", description="HTTP bind host")
    port: int = Field(default=4000, description="HTTP bind port")
    graphql_path: str = Field(default="/graphql", description="GraphQL endpoint path")

    seed_path: Optional[str] = Field(default=None, description="Seed document (JSON)")

    subscription_family: ChannelFamily = Field(
        default=ChannelFamily.ENTITY,
        description="Active live-notification family: entity or counter",
    )
    observable_kinds: List[str] = Field(
        default=["account", "event", "participation"],
        description="Entity kinds wired to created/updated/deleted channels",
    )
    counter_period: float = Field(default=1.0, description="Counter tick period in seconds")

    log_level: str = Field(default="INFO")
    log_format: LogFormat = Field(default=LogFormat.TEXT)

    cors_origins: List[str] = Field(default=["*"], description="Allowed CORS origins")

    model_config = SettingsConfigDict(env_prefix="GATHERDB_")

    def validate_settings(self) -> None:
        """Validate configuration consistency.

        Raises:
            ValueError: If configuration is invalid.
        """
        unknown = sorted(set(self.observable_kinds) - set(ENTITY_KIND_NAMES))
        if unknown:
            raise ValueError(
                f"Unknown GATHERDB_OBSERVABLE_KINDS entries: {', '.join(unknown)}. "
                f"Must be drawn from: {', '.join(ENTITY_KIND_NAMES)}"
            )
        if self.counter_period <= 0:
            raise ValueError("GATHERDB_COUNTER_PERIOD must be positive")
        if not self.graphql_path.startswith("/"):
            raise ValueError("GATHERDB_GRAPHQL_PATH must start with '/'")
        if self.subscription_family == ChannelFamily.COUNTER and self.observable_kinds:
            logger.debug("observable_kinds is ignored while the counter family is active")

    def log_config(self) -> None:
        """Log effective configuration."""
        logger.info(
            "Server configuration loaded",
            extra={
                "bind": f"{self.host}:{self.port}",
                "graphql_path": self.graphql_path,
                "seed_path": self.seed_path,
                "subscription_family": self.subscription_family.value,
                "observable_kinds": ",".join(self.observable_kinds)
                if self.subscription_family == ChannelFamily.ENTITY
                else None,
                "counter_period": self.counter_period
                if self.subscription_family == ChannelFamily.COUNTER
                else None,
                "log_level": self.log_level,
            },
        )


def load_settings(**overrides: object) -> Settings:
    """Load settings from the environment and validate them.

    Args:
        **overrides: Explicit values taking precedence over environment

    Returns:
        Validated Settings

    Raises:
        ValueError: If configuration is invalid
    """
    settings = Settings(**overrides)  # type: ignore[arg-type]
    settings.validate_settings()
    return settings
