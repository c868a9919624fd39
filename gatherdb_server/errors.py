"""
Error types for GatherDB.

This module defines all exception types raised by the service:
- GatherDbError: Base exception
- NotFoundError: Update/delete targeting an absent id
- ValidationError: Payload shape failures caught below the GraphQL layer
- ChannelNotFoundError: Unknown or inactive live-notification channel
- SeedError: Malformed seed document

Invariants:
    - All errors inherit from GatherDbError
    - Errors include context for debugging
    - Error messages are actionable and safe to return to callers
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class GatherDbError(Exception):
    """Base exception for all GatherDB errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "GATHERDB_ERROR"
        self.details = details or {}


class NotFoundError(GatherDbError):
    """Entity not found.

    Raised when:
    - update targets an id absent from its collection
    - delete targets an id absent from its collection

    The failing mutation publishes nothing.
    """

    def __init__(
        self,
        message: str,
        resource_type: str,
        resource_id: str,
    ) -> None:
        super().__init__(
            message,
            code="NOT_FOUND",
            details={
                "resource_type": resource_type,
                "resource_id": resource_id,
            },
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class ValidationError(GatherDbError):
    """Payload validation failed.

    Raised when:
    - Required field is missing on insert
    - Payload names a field the entity does not have
    """

    def __init__(
        self,
        message: str,
        field_name: Optional[str] = None,
        errors: Optional[List[str]] = None,
    ) -> None:
        super().__init__(
            message,
            code="VALIDATION_ERROR",
            details={"field": field_name, "errors": errors or []},
        )
        self.field_name = field_name
        self.errors = errors or []


class ChannelNotFoundError(GatherDbError):
    """Live-notification channel does not exist.

    Raised when the channel name is unknown, or belongs to the channel
    family that is not active in this deployment.
    """

    def __init__(self, channel: str, family: Optional[str] = None) -> None:
        msg = f"Unknown channel '{channel}'"
        if family:
            msg += f" (active family: {family})"
        super().__init__(
            msg,
            code="CHANNEL_NOT_FOUND",
            details={"channel": channel, "family": family},
        )
        self.channel = channel
        self.family = family


class SeedError(GatherDbError):
    """Seed document could not be loaded."""

    def __init__(self, message: str, path: Optional[str] = None) -> None:
        super().__init__(message, code="SEED_ERROR", details={"path": path})
        self.path = path
