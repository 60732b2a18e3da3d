"""Exception types raised by the task board core."""

from __future__ import annotations


class TaskDeckError(Exception):
    """Base class for all taskdeck errors."""


class ValidationError(TaskDeckError):
    """Input rejected before any store call was made."""

    def __init__(self, errors: list[str] | str) -> None:
        if isinstance(errors, str):
            errors = [errors]
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class PersistenceError(TaskDeckError):
    """A storage read or write failed; in-memory state matches what was written."""

    def __init__(self, operation: str, detail: str) -> None:
        self.operation = operation
        self.detail = detail
        super().__init__(f"{operation} failed: {detail}")


class RepositoryError(TaskDeckError):
    """Raised by repository adapters for malformed or conflicting state."""
