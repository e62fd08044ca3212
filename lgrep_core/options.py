from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple

from .errors import ConfigurationError
from .transport import ScrollRequest, SearchRequest, search_path

# Largest size a single search may ask for before a scroll is required.
MAX_SEARCH_SIZE = 10000
DEFAULT_SIZE = 100
SCROLL_CHUNK = 100
SCROLL_KEEPALIVE = "30s"

SORT_ASC = "asc"
SORT_DESC = "desc"

# Documents carry their time in one of these, in order of preference.
TIMESTAMP_FIELDS = ("@timestamp", "date")


@dataclass(frozen=True)
class SearchOptions:
    """
    Everything about a search other than the query itself.

    size None means "use DEFAULT_SIZE"; size 0 means "don't search at all".
    """

    size: Optional[int] = None
    offset: int = 0
    index: str = ""
    indices: List[str] = field(default_factory=list)
    doc_type: str = ""
    types: List[str] = field(default_factory=list)
    sort_time: Optional[str] = None
    fields: List[str] = field(default_factory=list)
    raw_result: bool = False
    query_debug: bool = False
    skip_validation: bool = False

    def __post_init__(self):
        if self.size is not None and self.size < 0:
            raise ConfigurationError(f"Size must not be negative (got {self.size})")
        if self.offset < 0:
            raise ConfigurationError(f"Offset must not be negative (got {self.offset})")
        if self.sort_time not in (None, SORT_ASC, SORT_DESC):
            raise ConfigurationError(
                f"Sort order must be {SORT_ASC!r} or {SORT_DESC!r}, not {self.sort_time!r}"
            )

    @property
    def effective_size(self) -> int:
        return DEFAULT_SIZE if self.size is None else self.size

    @property
    def index_names(self) -> List[str]:
        names = [self.index] if self.index else []
        return names + [i for i in self.indices if i]

    @property
    def type_names(self) -> List[str]:
        names = [self.doc_type] if self.doc_type else []
        return names + [t for t in self.types if t]

    @property
    def requires_scroll(self) -> bool:
        return self.effective_size > MAX_SEARCH_SIZE

    def with_overrides(self, **changes: Any) -> "SearchOptions":
        return replace(self, **changes)

    def sort_clauses(self) -> List[Dict[str, Any]]:
        if not self.sort_time:
            return []
        return [
            {
                name: {
                    # Indices without the field must not fail the sort
                    "unmapped_type": "boolean",
                    "order": self.sort_time,
                }
            }
            for name in TIMESTAMP_FIELDS
        ]

    def build_url(self, endpoint: str) -> Tuple[str, Dict[str, str]]:
        """
        Path for an index/type scoped endpoint, plus a params dict the
        caller may add to.
        """
        return search_path(self.index_names, self.type_names, endpoint), {}

    def configure_search(self, request: SearchRequest) -> SearchRequest:
        request.size = self.effective_size
        request.offset = self.offset
        request.indices = self.index_names
        request.types = self.type_names
        if self.sort_time:
            request.sort = self.sort_clauses()
        if self.fields:
            request.source_fields = list(self.fields)
        return request

    def configure_scroll(self, request: ScrollRequest) -> ScrollRequest:
        # Sort is left alone: a scroll can't change it once created.
        request.size = self.effective_size
        request.indices = self.index_names
        request.types = self.type_names
        return request

    def configure_query_map(self, body: Dict[str, Any]) -> Dict[str, Any]:
        """Merge field selection into a raw JSON query body."""
        if self.fields:
            body["_source"] = list(self.fields)
        return body

    def check(self) -> None:
        """Raise ConfigurationError for combinations that must not run."""
        if self.requires_scroll and not self.index_names:
            raise ConfigurationError(
                "An index pattern must be given for large requests "
                f"(more than {MAX_SEARCH_SIZE} results)"
            )
        if self.offset and self.requires_scroll:
            raise ConfigurationError("An offset can not be combined with a scrolled (large) request")
        if self.offset + self.effective_size > MAX_SEARCH_SIZE and not self.requires_scroll:
            raise ConfigurationError(
                f"Offset plus size must not go past {MAX_SEARCH_SIZE} results"
            )


def default_search_options(**overrides: Any) -> SearchOptions:
    """Fresh options with the standard defaults (newest documents first)."""
    defaults: Dict[str, Any] = {"size": DEFAULT_SIZE, "sort_time": SORT_DESC}
    defaults.update(overrides)
    return SearchOptions(**defaults)


__all__ = [
    "SearchOptions",
    "default_search_options",
    "MAX_SEARCH_SIZE",
    "DEFAULT_SIZE",
    "SCROLL_CHUNK",
    "SCROLL_KEEPALIVE",
    "SORT_ASC",
    "SORT_DESC",
    "TIMESTAMP_FIELDS",
]
