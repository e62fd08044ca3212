"""
Output formatting for search results.

Formats are templates in the style `{{.field}}`; the short form `.field`
(tokens starting with a dot, separated by whitespace) is expanded into the
long form first. `.` on its own, or `{{.}}` anywhere in the format, means
"print the raw JSON document".

Supported actions inside `{{ }}`:

    .                     the whole document as JSON
    .a.b                  nested lookup
    ."@timestamp"         quoted key (for names with dots or odd characters)
    ftime "%Y-%m-%d" .x   strftime formatting of a timestamp
"""
from __future__ import annotations

import json
import logging
import re
import shlex
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Union

from .errors import FormatError
from .options import TIMESTAMP_FIELDS
from .result import Result

logger = logging.getLogger(__name__)

NORMAL_TS_FIELD = "timestamp"

_ACTION = re.compile(r"{{([^{}]+)}}")
_PATH = re.compile(r'^(?:\.(?:"[^"]*"|[^."\s]+))+$')
_SEGMENT = re.compile(r'\.(?:"([^"]*)"|([^."\s]+))')

Part = Union[str, Callable[[Dict[str, Any]], str]]


# ---------- Format strings ----------

def curly_format(fmt: str) -> str:
    """
    Turn a jq-like format into template form: `.one .two` becomes
    `{{.one}} {{.two}}`. Formats that already use braces are returned as-is.
    """
    if "{{" in fmt and "}}" in fmt:
        return fmt

    out: List[str] = []
    in_token = False
    for ch in fmt:
        # Only open braces for the first dot of a token
        if ch == "." and not in_token:
            out.append("{{")
            in_token = True
        if ch.isspace():
            if in_token:
                out.append("}}")
            in_token = False
        out.append(ch)

    if in_token:
        out.append("}}")
    return "".join(out)


def is_raw_format(fmt: str) -> bool:
    """True when the format asks for the raw JSON document."""
    if fmt in (".", "{{.}}"):
        return True
    # Any use of the raw token makes the whole output raw.
    return "{{.}}" in fmt


def field_tokens(fmt: str) -> List[str]:
    """The actions used by a format, e.g. ['.one', '.two.three']."""
    return [m.strip() for m in _ACTION.findall(curly_format(fmt))]


def template_fields(fmt: str) -> List[str]:
    """
    Field names the server has to return for `fmt` to render. Empty when
    the whole document is needed.
    """
    fields: List[str] = []
    for token in field_tokens(fmt):
        if token == ".":
            return []
        for path in _paths_in(token):
            name = ".".join(path)
            if name == NORMAL_TS_FIELD:
                # timestamp is derived from one of these
                candidates = [name, *TIMESTAMP_FIELDS]
            else:
                candidates = [name]
            for candidate in candidates:
                if candidate not in fields:
                    fields.append(candidate)
    return fields


def _paths_in(token: str) -> List[List[str]]:
    paths = []
    for word in token.split():
        if word != "." and _PATH.match(word):
            paths.append(_split_path(word))
    return paths


def _split_path(word: str) -> List[str]:
    return [quoted if quoted else bare for quoted, bare in _SEGMENT.findall(word)]


# ---------- Timestamps ----------

def parse_timestamp(value: str) -> Optional[datetime]:
    """Parse an RFC3339 timestamp; None when it isn't one."""
    if not isinstance(value, str) or "T" not in value:
        return None
    text = value.strip()
    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def normalize_ts(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Some indices use `date`, others `@timestamp`; whichever parses first
    is stored as a datetime under `timestamp`.
    """
    if isinstance(data.get(NORMAL_TS_FIELD), datetime):
        return data

    for name in TIMESTAMP_FIELDS:
        ts = parse_timestamp(data.get(name))
        if ts is None:
            continue
        data = dict(data)
        data[NORMAL_TS_FIELD] = ts
        return data

    logger.debug("Timestamp could not be normalized from data")
    return data


# ---------- Templates ----------

def _lookup(data: Any, path: Sequence[str]) -> Any:
    for key in path:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


def _to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (dict, list, bool, int, float)):
        return json.dumps(value, default=str)
    return str(value)


def _ftime(fmt: str, value: Any) -> str:
    if isinstance(value, datetime):
        return value.strftime(fmt)
    if isinstance(value, str):
        ts = parse_timestamp(value)
        return ts.strftime(fmt) if ts else value
    return ""


def _compile_action(action: str) -> Callable[[Dict[str, Any]], str]:
    action = action.strip()
    if action == ".":
        return lambda data: json.dumps(data, default=str)

    if _PATH.match(action):
        path = _split_path(action)
        return lambda data: _to_text(_lookup(data, path))

    try:
        words = shlex.split(action)
    except ValueError as e:
        raise FormatError(f"Format template invalid: {{{{{action}}}}}: {e}") from e

    if len(words) == 3 and words[0] == "ftime" and _PATH.match(words[2]):
        fmt, path = words[1], _split_path(words[2])
        return lambda data: _ftime(fmt, _lookup(data, path))

    raise FormatError(f"Format template invalid: unsupported action {{{{{action}}}}}")


def compile_template(template: str) -> List[Part]:
    parts: List[Part] = []
    pos = 0
    for match in _ACTION.finditer(template):
        if match.start() > pos:
            parts.append(template[pos:match.start()])
        parts.append(_compile_action(match.group(1)))
        pos = match.end()
    if pos < len(template):
        parts.append(template[pos:])

    leftover = "".join(p for p in parts if isinstance(p, str))
    if "{{" in leftover or "}}" in leftover:
        raise FormatError(f"Format template invalid: unbalanced braces in {template!r}")
    return parts


class Formatter:
    """Renders results with a format string (see module docstring)."""

    def __init__(self, fmt: str):
        self.format = fmt
        self.raw = is_raw_format(fmt)
        self._parts: List[Part] = [] if self.raw else compile_template(curly_format(fmt))
        logger.debug("Using template format: %r (raw=%s)", fmt, self.raw)

    def render(self, result: Result) -> str:
        if self.raw:
            return result.to_json().decode("utf-8").strip()

        data = normalize_ts(result.to_mapping())
        out = [p if isinstance(p, str) else p(data) for p in self._parts]
        return "".join(out).strip()

    def render_all(self, results: Iterable[Result]) -> List[str]:
        return [self.render(r) for r in results]


def tabulate(lines: Iterable[str], padding: int = 2) -> List[str]:
    """Align tab-separated columns, like a tabwriter would."""
    rows = [line.split("\t") for line in lines]
    widths: List[int] = []
    for row in rows:
        for i, cell in enumerate(row[:-1]):
            if i == len(widths):
                widths.append(0)
            widths[i] = max(widths[i], len(cell))

    out = []
    for row in rows:
        cells = [cell.ljust(widths[i] + padding) for i, cell in enumerate(row[:-1])]
        cells.append(row[-1])
        out.append("".join(cells).rstrip())
    return out


__all__ = [
    "Formatter",
    "curly_format",
    "is_raw_format",
    "field_tokens",
    "template_fields",
    "normalize_ts",
    "parse_timestamp",
    "compile_template",
    "tabulate",
]
