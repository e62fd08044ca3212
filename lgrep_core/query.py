from __future__ import annotations

import json
from typing import Any, Dict, Mapping, TextIO, Union

from .errors import EmptySearchError, QueryError

RawQuery = Union[bytes, str, Mapping[str, Any]]


def lucene_query(query: str) -> Dict[str, Any]:
    """Build the search body for a lucene query string."""
    query = (query or "").strip()
    if not query:
        raise EmptySearchError()
    return {
        "query": {
            "query_string": {
                # Expand wildcards
                "analyze_wildcard": True,
                "query": query,
            }
        }
    }


def parse_json_query(raw: RawQuery) -> Dict[str, Any]:
    """
    Accept a raw JSON search body as bytes, text or an already decoded
    mapping. The result is always a fresh dict the caller may modify.
    """
    if isinstance(raw, Mapping):
        return json.loads(json.dumps(raw))

    if isinstance(raw, bytes):
        raw = raw.decode("utf-8")
    if not raw or not raw.strip():
        raise EmptySearchError()

    try:
        body = json.loads(raw)
    except ValueError as e:
        raise QueryError(f"Query is not valid JSON: {e}") from e
    if not isinstance(body, dict):
        raise QueryError(
            f"Query must be a JSON object, not {type(body).__name__}"
        )
    return body


def dump_query(body: Any, out: TextIO) -> None:
    """Write a search body in a readable, quoted form for debugging."""
    text = json.dumps(body, indent=2, sort_keys=True)
    for line in text.splitlines():
        out.write(f"> {line}\n")


__all__ = ["lucene_query", "parse_json_query", "dump_query", "RawQuery"]
