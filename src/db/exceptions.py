"""
Errors raised by the entry store, the vote log and the projection layer.
"""


class EntriesError(Exception):
    """Base class for all producer-facing errors."""


class NotFoundError(EntriesError):
    """Operation references an unknown path (or list position)."""

    def __init__(self, path, message: str = None):
        self.path = path
        super().__init__(message or f"Entry '{path}' not found")


class ForeignKeyError(EntriesError):
    """Content record or vote references an entry that does not exist."""

    def __init__(self, path: str, message: str = None):
        self.path = path
        super().__init__(message or f"Entry '{path}' does not exist")


class InvalidVoteError(EntriesError):
    """Vote compares an entry with itself or carries an unknown value."""


class TransactionFailure(EntriesError):
    """Underlying storage flush/commit failed; nothing was applied."""
