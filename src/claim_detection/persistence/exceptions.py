"""Exceptions raised by the claim repository."""


class RepositoryError(Exception):
    """Base exception for store errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class UnknownMessageError(RepositoryError):
    """A classification referenced a message id that was never saved."""
    pass


class DuplicateClassificationError(RepositoryError):
    """The message already has a classification (at most one per message)."""
    pass
