from __future__ import annotations

import logging
import sys
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .errors import (
    InvalidIndexError,
    InvalidLuceneSyntaxError,
    InvalidQueryError,
    QueryError,
    TransportError,
    ValidationError,
)
from .options import SearchOptions
from .query import dump_query
from .transport import ElasticTransport

logger = logging.getLogger(__name__)


# ------------------------------
# Models
# ------------------------------

class ShardCounts(BaseModel):
    total: int = 0
    successful: int = 0
    failed: int = 0


class ValidationExplanation(BaseModel):
    """Per-index explanation of why a query is invalid."""

    model_config = ConfigDict(populate_by_name=True)

    index: Optional[str] = None
    valid: bool = False
    message: Optional[str] = Field(default=None, alias="error")


class ValidationResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    valid: bool = False
    shards: ShardCounts = Field(default_factory=ShardCounts, alias="_shards")
    explanations: List[ValidationExplanation] = Field(default_factory=list)


# ------------------------------
# Validation
# ------------------------------

def validate(
    transport: ElasticTransport,
    body: Dict[str, Any],
    options: SearchOptions,
) -> ValidationResponse:
    """
    Ask the server whether `body` would run against the indices in
    `options`, raising a ValidationError describing why not.
    """
    if not isinstance(body, dict):
        raise QueryError("Cannot validate request body type")

    path, params = options.build_url("_validate/query")
    params["explain"] = "true"
    # The endpoint only accepts the query itself; no body validates match_all
    payload: Optional[Dict[str, Any]] = None
    if "query" in body:
        payload = {"query": body["query"]}

    logger.debug("Validating query at %s (params=%s)", path, params)
    if options.query_debug and payload is not None:
        dump_query(payload, sys.stderr)

    try:
        data = transport.perform_request("GET", path, params=params, body=payload)
    except TransportError as e:
        if "index_not_found_exception" in str(e) or e.error_type == "index_not_found_exception":
            raise InvalidIndexError() from e
        raise

    result = ValidationResponse.model_validate(data)
    if result.valid:
        return result

    errors: Dict[str, ValidationError] = {}
    for explanation in result.explanations:
        err = parse_validation_error(explanation.message or "", explanation.index or "")
        if err is not None:
            errors[str(err)] = err

    if len(errors) == 1:
        raise next(iter(errors.values()))
    raise InvalidQueryError()


def parse_validation_error(message: str, index: str = "") -> Optional[ValidationError]:
    """Turn one explanation message into the error it describes."""
    if not message:
        return None
    if "Cannot parse" in message:
        return InvalidLuceneSyntaxError()
    if index:
        message = message.replace(f"[{index}]", "", 1).strip()
    return ValidationError(message)


__all__ = [
    "validate",
    "parse_validation_error",
    "ValidationResponse",
    "ValidationExplanation",
    "ShardCounts",
]
