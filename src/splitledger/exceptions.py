"""Custom exceptions for splitledger."""


class SplitLedgerError(Exception):
    """Base exception for all splitledger errors."""

    status_code = 500


class ConfigurationError(SplitLedgerError):
    """Raised when configuration is invalid or missing."""

    pass


class InvalidInputError(SplitLedgerError):
    """Raised for malformed or contradictory amounts, weights, percents or fields."""

    status_code = 400


class NotFoundError(SplitLedgerError):
    """Raised when a group, expense, item or fund does not exist."""

    status_code = 404

    def __init__(self, what: str, message: str | None = None):
        self.what = what
        super().__init__(message or f"{what} not found")


class ForbiddenError(SplitLedgerError):
    """Raised when a non-member or non-admin attempts a privileged action."""

    status_code = 403


class ConflictError(SplitLedgerError):
    """Raised when a unique key already exists (e.g. one shopping duty per day)."""

    status_code = 409


class InternalError(SplitLedgerError):
    """Raised when the persistence layer fails unexpectedly."""

    pass


class RoundingError(SplitLedgerError):
    """Raised when allocated shares cannot be reconciled with the total."""

    pass


def http_status_for(exc: BaseException) -> int:
    """Map an exception to the status code clients of the HTTP layer expect."""
    if isinstance(exc, SplitLedgerError):
        return exc.status_code
    return 500
