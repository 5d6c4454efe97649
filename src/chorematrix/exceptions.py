"""Custom exception hierarchy for the chorematrix package."""

from __future__ import annotations


class ChoreMatrixError(Exception):
    """Base class for all chorematrix specific errors."""


class DefinitionNotFoundError(ChoreMatrixError, KeyError):
    """Raised when a chore definition lookup fails."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


class InstanceNotFoundError(ChoreMatrixError, KeyError):
    """Raised when a chore instance lookup fails."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


class InvalidRecurrenceError(ChoreMatrixError, ValueError):
    """Raised when a recurrence rule or definition schedule is malformed."""


class PersistenceError(ChoreMatrixError):
    """Raised when chore state cannot be written to the backing store."""
