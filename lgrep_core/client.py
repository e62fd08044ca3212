from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .errors import ConfigurationError
from .execute import execute
from .options import SearchOptions, default_search_options
from .query import RawQuery, dump_query, lucene_query, parse_json_query
from .result import Result
from .stream import SearchStream
from .transport import DEFAULT_TIMEOUT, USER_AGENT, ElasticTransport, SearchRequest
from .validate import ValidationResponse, validate

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "http://localhost:9200/"


def _endpoint_from_env() -> str:
    return os.getenv("LGREP_ENDPOINT") or DEFAULT_ENDPOINT


@dataclass
class ClientConfig:
    endpoint: str = field(default_factory=_endpoint_from_env)
    timeout: float = DEFAULT_TIMEOUT
    user_agent: str = USER_AGENT


class LGrep:
    """
    Search client for an Elasticsearch-style endpoint.

    Every search returns a SearchStream; see SearchStream.each(),
    SearchStream.all() or iterate over it directly.
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        transport: Optional[ElasticTransport] = None,
    ):
        self.config = config or ClientConfig()
        if not (self.config.endpoint or "").strip():
            raise ConfigurationError("No endpoint configured (set LGREP_ENDPOINT or pass one)")
        self.transport = transport or ElasticTransport(
            self.config.endpoint,
            timeout=self.config.timeout,
            user_agent=self.config.user_agent,
        )

    @property
    def endpoint(self) -> str:
        return self.config.endpoint

    def new_search_body(self, query: str, options: Optional[SearchOptions] = None) -> Dict[str, Any]:
        """The full single-page search body a lucene query would send."""
        options = options or default_search_options()
        request = SearchRequest(body=lucene_query(query))
        options.configure_search(request)
        return request.to_body()

    def search_lucene(self, query: str, options: Optional[SearchOptions] = None) -> SearchStream:
        """Search with a lucene query string (`field:value AND ...`)."""
        options = options or default_search_options()
        body = lucene_query(query)
        return self._run(body, options)

    def search_json(self, query: RawQuery, options: Optional[SearchOptions] = None) -> SearchStream:
        """Search with a raw JSON body (bytes, text or a mapping)."""
        options = options or default_search_options()
        body = parse_json_query(query)
        return self._run(body, options)

    def simple_search(self, query: str, options: Optional[SearchOptions] = None) -> List[Result]:
        """Run a lucene search and read every result into memory."""
        return self.search_lucene(query, options).all()

    def validate(self, body: Dict[str, Any], options: Optional[SearchOptions] = None) -> ValidationResponse:
        return validate(self.transport, body, options or default_search_options())

    def execute(self, body: Dict[str, Any], options: SearchOptions) -> SearchStream:
        return execute(self.transport, body, options)

    def _run(self, body: Dict[str, Any], options: SearchOptions) -> SearchStream:
        if options.effective_size == 0:
            return SearchStream.empty()
        options.check()

        if options.query_debug:
            dump_query(body, sys.stderr)

        if options.skip_validation:
            logger.debug("Skipping query validation")
        else:
            self.validate(body, options)

        return self.execute(body, options)

    def close(self) -> None:
        self.transport.close()


__all__ = ["LGrep", "ClientConfig", "DEFAULT_ENDPOINT"]
