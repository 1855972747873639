from __future__ import annotations

RATE_LIMITED = "RATE_LIMITED"
FORBIDDEN = "FORBIDDEN"
NOT_FOUND = "NOT_FOUND"
NETWORK = "NETWORK"

FETCH_FAILED = "FETCH_FAILED"


class QuoteServiceError(Exception):
    """Base error for quote/search lookups. Unclassified failures land here."""

    kind = NETWORK

    def __init__(self, message: str = "", *, status_code: int | None = None) -> None:
        super().__init__(message or self.kind)
        self.status_code = status_code


class RateLimitedError(QuoteServiceError):
    kind = RATE_LIMITED


class ForbiddenError(QuoteServiceError):
    kind = FORBIDDEN


class SymbolNotFoundError(QuoteServiceError):
    kind = NOT_FOUND


class QuoteNetworkError(QuoteServiceError):
    kind = NETWORK


class StorageUnavailableError(Exception):
    pass


def error_for_status(status_code: int, message: str = "") -> QuoteServiceError:
    if status_code == 429:
        return RateLimitedError(message, status_code=status_code)
    if status_code == 403:
        return ForbiddenError(message, status_code=status_code)
    if status_code == 404:
        return SymbolNotFoundError(message, status_code=status_code)
    return QuoteServiceError(message, status_code=status_code)


def classify_error(exc: BaseException) -> str:
    if isinstance(exc, QuoteServiceError):
        return exc.kind
    return NETWORK
