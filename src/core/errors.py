"""
Error taxonomy for article operations.

Every core operation surfaces one of these to its caller; the HTTP layer maps
each type to a status code (see src/api/main.py).

- ValidationError: malformed or missing input, retrying won't help
- NotFoundError: referenced entity is absent
- ConflictError: operation invalid for the entity's current state,
  or a bounded retry loop was exhausted
- InvalidTransitionError: status engine rejected a move (carries allowed list)
- StorageUnavailableError: blob store call failed on a write path
"""

from __future__ import annotations

from collections.abc import Sequence


class ContentOpsError(Exception):
    """Base class for all article operation errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ValidationError(ContentOpsError):
    """Raised when input is malformed or a required field is missing."""

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


class NotFoundError(ContentOpsError):
    """Raised when a referenced entity doesn't exist."""


class ConflictError(ContentOpsError):
    """Raised when the operation conflicts with the entity's current state."""


class InvalidTransitionError(ContentOpsError):
    """Raised when a status transition is not in the transition table."""

    def __init__(self, current: str, target: str, allowed: Sequence[str]) -> None:
        self.current = current
        self.target = target
        self.allowed = list(allowed)
        allowed_text = ", ".join(self.allowed) if self.allowed else "none"
        super().__init__(
            f"Cannot transition from '{current}' to '{target}'. Allowed: {allowed_text}"
        )


class StorageUnavailableError(ContentOpsError):
    """Raised when the blob store fails while creating or reading an object."""
