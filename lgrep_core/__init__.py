from __future__ import annotations

from .client import ClientConfig, LGrep
from .errors import (
    ConfigurationError,
    EmptySearchError,
    EndOfStream,
    FormatError,
    InvalidIndexError,
    InvalidLuceneSyntaxError,
    InvalidQueryError,
    LGrepError,
    QueryError,
    ResultDecodeError,
    TransportError,
    ValidationError,
)
from .format import Formatter
from .options import MAX_SEARCH_SIZE, SearchOptions, default_search_options
from .result import FieldResult, HitResult, Result, SourceResult
from .stream import SearchStream

__version__ = "0.1.0"

__all__ = [
    "LGrep",
    "ClientConfig",
    "SearchOptions",
    "default_search_options",
    "MAX_SEARCH_SIZE",
    "SearchStream",
    "Result",
    "FieldResult",
    "SourceResult",
    "HitResult",
    "Formatter",
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
