"""Writes to the entity store paired with change notifications."""

from .dispatcher import EntityMutations, MutationDispatcher

__all__ = ["EntityMutations", "MutationDispatcher"]
