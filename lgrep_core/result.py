from __future__ import annotations

import json
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Mapping

from .errors import ResultDecodeError

if TYPE_CHECKING:
    from .options import SearchOptions


class Result:
    """
    A single search result.

    Only three shapes exist (FieldResult, SourceResult, HitResult); callers
    that need the raw hit should type check for HitResult.
    """

    def to_mapping(self) -> Dict[str, Any]:
        raise NotImplementedError

    def to_json(self) -> bytes:
        raise NotImplementedError

    def __str__(self) -> str:
        # Used for logging and untemplated output, must never raise.
        try:
            return self.to_json().decode("utf-8")
        except Exception as e:
            return str(e)


@dataclass(frozen=True)
class FieldResult(Result):
    """Returned when specific fields were requested and the server sent them."""

    fields: Dict[str, Any]

    def to_mapping(self) -> Dict[str, Any]:
        return dict(self.fields)

    def to_json(self) -> bytes:
        return json.dumps(self.fields).encode("utf-8")


@dataclass(frozen=True)
class SourceResult(Result):
    """An entire document, kept as the serialized JSON the server sent."""

    raw: bytes

    def to_mapping(self) -> Dict[str, Any]:
        try:
            data = json.loads(self.raw)
        except ValueError as e:
            raise ResultDecodeError(f"Error decoding document source: {e}") from e
        if not isinstance(data, dict):
            raise ResultDecodeError(
                f"Document source is a {type(data).__name__}, not an object"
            )
        return data

    def to_json(self) -> bytes:
        return self.raw


@dataclass(frozen=True)
class HitResult(Result):
    """
    The whole hit envelope (_index, _id, _score, _source, ...).

    These exist for raw output; the metadata is not otherwise exposed.
    """

    hit: Dict[str, Any]

    def to_mapping(self) -> Dict[str, Any]:
        return json.loads(self.to_json())

    def to_json(self) -> bytes:
        return json.dumps(self.hit).encode("utf-8")


def _unwrap_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    """The server returns every field as a list; single values are unwrapped."""
    out: Dict[str, Any] = {}
    for name, value in fields.items():
        if isinstance(value, list) and len(value) == 1:
            value = value[0]
        out[name] = value
    return out


def extract_result(hit: Dict[str, Any], options: "SearchOptions") -> Result:
    """
    Turn one hit from a search page into a Result.

    Raises ResultDecodeError when the hit holds no usable document; the
    caller reports it and moves on to the next hit.
    """
    if not isinstance(hit, Mapping):
        raise ResultDecodeError(f"Hit is not an object (got {type(hit).__name__})")

    if options.raw_result:
        return HitResult(hit)

    fields = hit.get("fields")
    if options.fields and isinstance(fields, dict):
        return FieldResult(_unwrap_fields(fields))

    if "_source" not in hit:
        raise ResultDecodeError(
            f"Hit {hit.get('_id', '<unknown>')!r} has no document source"
        )

    source = hit["_source"]
    if isinstance(source, dict):
        return SourceResult(json.dumps(source).encode("utf-8"))

    if isinstance(source, str):
        source = source.encode("utf-8")
    if isinstance(source, (bytes, bytearray)):
        try:
            json.loads(source)
        except ValueError as e:
            raise ResultDecodeError(
                f"Hit {hit.get('_id', '<unknown>')!r} has malformed source: {e}"
            ) from e
        return SourceResult(bytes(source))

    raise ResultDecodeError(
        f"Hit {hit.get('_id', '<unknown>')!r} has unsupported source type "
        f"{type(source).__name__}"
    )


__all__ = ["Result", "FieldResult", "SourceResult", "HitResult", "extract_result"]
