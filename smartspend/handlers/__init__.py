"""Mutation handlers package."""

from smartspend.handlers.mutations import (
    DuplicateIdError,
    InvalidAllocationError,
    MutationError,
    MutationHandlers,
)

__all__ = [
    "DuplicateIdError",
    "InvalidAllocationError",
    "MutationError",
    "MutationHandlers",
]
