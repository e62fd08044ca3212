from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import requests

from .errors import EndOfStream, TransportError

logger = logging.getLogger(__name__)

USER_AGENT = "lgrep/0.1"
DEFAULT_TIMEOUT = 30


# ---------- Request / response model ----------

@dataclass
class SearchRequest:
    """A single-page search, filled in by SearchOptions.configure_search()."""

    body: Dict[str, Any] = field(default_factory=dict)
    indices: List[str] = field(default_factory=list)
    types: List[str] = field(default_factory=list)
    size: Optional[int] = None
    offset: int = 0
    sort: List[Dict[str, Any]] = field(default_factory=list)
    source_fields: List[str] = field(default_factory=list)

    def to_body(self) -> Dict[str, Any]:
        body = dict(self.body)
        if self.size is not None:
            body["size"] = self.size
        if self.offset:
            body["from"] = self.offset
        if self.sort:
            body["sort"] = list(self.sort)
        if self.source_fields:
            body["_source"] = list(self.source_fields)
        return body


@dataclass
class ScrollRequest:
    """
    A scroll (cursor) search, filled in by SearchOptions.configure_scroll().

    scroll_id is None until the server hands one out; after that the
    request advances the existing scroll instead of starting a new one.
    """

    body: Dict[str, Any] = field(default_factory=dict)
    indices: List[str] = field(default_factory=list)
    types: List[str] = field(default_factory=list)
    size: Optional[int] = None
    keep_alive: str = "30s"
    scroll_id: Optional[str] = None

    def to_body(self) -> Dict[str, Any]:
        body = dict(self.body)
        if self.size is not None:
            body["size"] = self.size
        return body


@dataclass
class Page:
    hits: List[Dict[str, Any]]
    scroll_id: Optional[str] = None
    total: Optional[int] = None


def search_path(indices: List[str], types: List[str], endpoint: str) -> str:
    """
    /{index}/{type}/{endpoint}, /{index}/{endpoint}, /_all/{type}/{endpoint}
    or /{endpoint}, with multiple names comma-joined.
    """
    index = ",".join(i for i in indices if i)
    doc_type = ",".join(t for t in types if t)
    if index and doc_type:
        return f"/{index}/{doc_type}/{endpoint}"
    if index:
        return f"/{index}/{endpoint}"
    if doc_type:
        return f"/_all/{doc_type}/{endpoint}"
    return f"/{endpoint}"


def _parse_page(data: Dict[str, Any]) -> Page:
    hits_section = data.get("hits") or {}
    total = hits_section.get("total")
    if isinstance(total, dict):
        total = total.get("value")
    return Page(
        hits=list(hits_section.get("hits") or []),
        scroll_id=data.get("_scroll_id"),
        total=total,
    )


# ---------- Transport ----------

class ElasticTransport:
    """
    Talks to an Elasticsearch-style REST API over a requests.Session.

    Every failure (HTTP error status or no response at all) is raised as a
    TransportError so callers only ever handle one exception type.
    """

    def __init__(
        self,
        endpoint: str,
        timeout: float = DEFAULT_TIMEOUT,
        user_agent: str = USER_AGENT,
        session: Optional[requests.Session] = None,
    ):
        self.endpoint = endpoint.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Accept": "application/json",
                "User-Agent": user_agent,
            }
        )

    def perform_request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        body: Any = None,
    ) -> Dict[str, Any]:
        url = self.endpoint + path
        logger.debug("%s %s params=%s", method, url, params or {})
        try:
            resp = self.session.request(
                method,
                url,
                params=params or None,
                json=body,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise TransportError(f"Request to {url} failed: {e}") from e

        if resp.status_code >= 400:
            raise _error_from_response(resp)

        if not resp.content:
            return {}
        try:
            return resp.json()
        except ValueError as e:
            raise TransportError(
                f"Server returned invalid JSON from {url}: {e}",
                status=resp.status_code,
            ) from e

    def search(self, request: SearchRequest) -> Page:
        path = search_path(request.indices, request.types, "_search")
        data = self.perform_request("POST", path, body=request.to_body())
        return _parse_page(data)

    def scroll(self, request: ScrollRequest) -> Page:
        """
        Start the scroll (no scroll_id yet) or fetch its next page.

        Raises EndOfStream once a page comes back empty.
        """
        if request.scroll_id:
            data = self.perform_request(
                "POST",
                "/_search/scroll",
                body={"scroll": request.keep_alive, "scroll_id": request.scroll_id},
            )
        else:
            path = search_path(request.indices, request.types, "_search")
            data = self.perform_request(
                "POST",
                path,
                params={"scroll": request.keep_alive},
                body=request.to_body(),
            )

        page = _parse_page(data)
        if not page.hits:
            # The (possibly new) id still has to be retired by the caller.
            raise EndOfStream(page.scroll_id)
        return page

    def clear_scroll(self, *scroll_ids: str) -> None:
        ids = [s for s in scroll_ids if s]
        if not ids:
            return
        self.perform_request("DELETE", "/_search/scroll", body={"scroll_id": ids})

    def close(self) -> None:
        self.session.close()


def _error_from_response(resp: requests.Response) -> TransportError:
    error_type = None
    reason = resp.text.strip() or resp.reason
    try:
        payload = resp.json()
    except ValueError:
        payload = None

    if isinstance(payload, dict):
        err = payload.get("error")
        if isinstance(err, dict):
            error_type = err.get("type")
            root = (err.get("root_cause") or [{}])[0]
            reason = err.get("reason") or root.get("reason") or reason
            error_type = error_type or root.get("type")
        elif isinstance(err, str):
            reason = err

    message = f"HTTP {resp.status_code}"
    if error_type:
        message += f" [{error_type}]"
    message += f": {reason}"
    return TransportError(message, status=resp.status_code, error_type=error_type)


__all__ = [
    "ElasticTransport",
    "SearchRequest",
    "ScrollRequest",
    "Page",
    "search_path",
    "USER_AGENT",
    "DEFAULT_TIMEOUT",
]
