from __future__ import annotations

from typing import Optional


class LGrepError(Exception):
    """Base class for everything lgrep raises on purpose."""


# ---------- Configuration ----------

class ConfigurationError(LGrepError):
    """Raised synchronously, before any request or background work."""


class EmptySearchError(ConfigurationError):
    def __init__(self, message: str = "Empty search query, not submitting."):
        super().__init__(message)


class QueryError(ConfigurationError):
    """The query body could not be understood (bad JSON, wrong shape)."""


# ---------- Validation ----------

class ValidationError(LGrepError):
    pass


class InvalidIndexError(ValidationError):
    def __init__(self, message: str = "Invalid or nonexistent index specified."):
        super().__init__(message)


class InvalidQueryError(ValidationError):
    def __init__(self, message: str = "Query is invalid."):
        super().__init__(message)


class InvalidLuceneSyntaxError(ValidationError):
    def __init__(self, message: str = "Invalid lucene syntax in query."):
        super().__init__(message)


# ---------- Transport / stream ----------

class TransportError(LGrepError):
    """
    The server (or the network in between) failed a request.

    status is None when no HTTP response was received at all.
    """

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        error_type: Optional[str] = None,
    ):
        super().__init__(message)
        self.status = status
        self.error_type = error_type


class EndOfStream(LGrepError):
    """The scroll has no more pages. Not an error for callers."""

    def __init__(self, scroll_id: Optional[str] = None):
        super().__init__("End of stream")
        self.scroll_id = scroll_id


class ResultDecodeError(LGrepError):
    """A single hit could not be turned into a Result."""


class FormatError(LGrepError):
    pass


__all__ = [
    "LGrepError",
    "ConfigurationError",
    "EmptySearchError",
    "QueryError",
    "ValidationError",
    "InvalidIndexError",
    "InvalidQueryError",
    "InvalidLuceneSyntaxError",
    "TransportError",
    "EndOfStream",
    "ResultDecodeError",
    "FormatError",
]
