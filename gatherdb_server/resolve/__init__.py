"""Read-time association resolution over the entity store."""

from .relations import RelationalResolver

__all__ = ["RelationalResolver"]
