"""Error types raised by the mold registry."""

from __future__ import annotations


class MoldRegistryError(Exception):
    """Base class for mold registry failures."""


class ValidationError(MoldRegistryError, ValueError):
    """Raised when operation inputs are rejected before any mutation."""

    def __init__(self, field: str, message: str) -> None:
        """Initialize the error with the offending field name."""
        super().__init__(f"{field}: {message}")
        self.field = field


class DuplicateIdError(MoldRegistryError):
    """Raised when a mold with the derived id is already registered."""

    def __init__(self, mold_id: str) -> None:
        """Initialize the error with the colliding mold id."""
        super().__init__(f"mold id already exists: {mold_id}")
        self.mold_id = mold_id


class MoldNotFoundError(MoldRegistryError, LookupError):
    """Raised when an operation targets a mold that is not registered."""

    def __init__(self, mold_id: str) -> None:
        """Initialize the error with the missing mold id."""
        super().__init__(f"mold not found: {mold_id}")
        self.mold_id = mold_id


class InvalidTransitionError(MoldRegistryError):
    """Raised when an operation is attempted from the wrong lifecycle state."""

    def __init__(self, mold_id: str, action: str, current_status: str) -> None:
        """Initialize the error with the rejected action and current state."""
        super().__init__(
            f"{action} not allowed for mold {mold_id} while status is {current_status}"
        )
        self.mold_id = mold_id
        self.action = action
        self.current_status = current_status


class PersistenceError(MoldRegistryError):
    """Raised when the storage layer fails; nothing was committed."""
