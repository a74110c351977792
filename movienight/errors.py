from __future__ import annotations


class MovieNightError(Exception):
    """Base class for errors raised by the lobby, voting, and catalog layers."""


class ValidationError(MovieNightError, ValueError):
    """Raised when user input breaks a business rule (blank field, underage)."""

    def __init__(self, message: str, code: str = "invalid") -> None:
        super().__init__(message)
        self.code = code


class DuplicateError(MovieNightError):
    """Raised when a unique or composite key already holds a row."""


class NotFoundError(MovieNightError, LookupError):
    """Raised when an operation references a lobby, user, or movie that does not exist."""


class IntegrityError(MovieNightError):
    """Raised when a delete would orphan dependent rows."""


class LobbyNotVotingError(MovieNightError):
    """Raised when suggestions or votes change after the lobby was marked ready."""


class PermissionDeniedError(MovieNightError):
    """Raised when someone other than the lobby owner attempts an owner-only action."""
