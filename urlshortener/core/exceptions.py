"""
Custom Exceptions

Exceptions raised by the lower layers of the service (row store, alias codec).

The service layer never lets these escape to its callers: `UrlService`
catches them at its boundary and converts them into typed `Result` values
(see urlshortener.core.result). They exist so the store and codec can fail the way
ordinary Python code fails, while keeping the original cause around for
diagnostics.
"""

from typing import Optional


class URLShortenerException(Exception):
    """Base exception for URL shortener service."""
    pass


class DatabaseError(URLShortenerException):
    """Raised when a row store operation fails."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        self.message = message
        self.original_error = original_error
        super().__init__(f"Database error: {message}")


class AliasDecodeError(URLShortenerException):
    """Raised when a url-safe token cannot be turned back into (alias, offset)."""

    def __init__(self, token: str, reason: str):
        self.token = token
        self.reason = reason
        super().__init__(reason)
