#!/usr/bin/env python
from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path
from typing import List, Optional

from lgrep_core import __version__
from lgrep_core.client import DEFAULT_ENDPOINT, ClientConfig, LGrep
from lgrep_core.errors import ConfigurationError, FormatError, LGrepError, ResultDecodeError
from lgrep_core.format import Formatter, is_raw_format, tabulate, template_fields
from lgrep_core.logging_config import PACKAGE_LOGGER, get_logger, set_debug
from lgrep_core.options import SORT_ASC, SORT_DESC, SearchOptions, default_search_options
from lgrep_core.query import parse_json_query
from lgrep_core.result import Result

logger = get_logger(PACKAGE_LOGGER)

EXIT_CONFIG = 1
EXIT_SEARCH = 2
EXIT_INTERRUPTED = 130

DEFAULT_FORMAT = ".message"


# -----------------------------
# Option helpers
# -----------------------------
def split_fields(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [f.strip() for f in value.split(",") if f.strip()]


def build_options(args: argparse.Namespace) -> SearchOptions:
    """
    Translate command line flags into SearchOptions.

    Without --fields, a templated format only asks the server for the
    fields it actually prints.
    """
    fields = split_fields(args.fields)
    if not fields and not args.raw and not is_raw_format(args.format):
        fields = template_fields(args.format)

    sort = None if args.sort == "none" else args.sort
    return default_search_options(
        size=args.size,
        offset=args.offset,
        index=args.index or "",
        doc_type=args.type or "",
        sort_time=sort,
        fields=fields,
        raw_result=args.raw,
        query_debug=args.debug,
        skip_validation=args.skip_validation,
    )


def read_query_file(path: str) -> bytes:
    if path == "-":
        return sys.stdin.buffer.read()
    query_path = Path(path)
    if not query_path.exists():
        raise ConfigurationError(f"Query file not found: {query_path}")
    return query_path.read_bytes()


# -----------------------------
# Search
# -----------------------------
def run_search(args: argparse.Namespace) -> int:
    query_text = " ".join(args.query).strip()
    if args.query_file and query_text:
        raise ConfigurationError("Give either a query or --query-file, not both")
    if not args.query_file and not query_text:
        raise ConfigurationError("No query given")
    if not (args.endpoint or "").strip():
        raise ConfigurationError("No endpoint given (use -e or LGREP_ENDPOINT)")

    options = build_options(args)
    fmt = "." if args.raw else args.format
    formatter = Formatter(fmt)

    client = LGrep(ClientConfig(endpoint=args.endpoint))

    if args.query_debug:
        if args.query_file:
            body = parse_json_query(read_query_file(args.query_file))
        else:
            body = client.new_search_body(query_text, options)
        print(json.dumps(body, indent=2, sort_keys=True))
        return 0

    logger.debug("Searching %s (size=%d)", args.endpoint, options.effective_size)
    if args.query_file:
        stream = client.search_json(read_query_file(args.query_file), options)
    else:
        stream = client.search_lucene(query_text, options)

    count = 0
    interrupted = False
    lines: List[str] = []

    def on_result(result: Result) -> None:
        nonlocal count
        count += 1
        try:
            line = formatter.render(result)
        except LGrepError as e:
            # One bad document shouldn't hide the rest
            logger.error("Could not format result: %s", e)
            return None
        if args.tabulate:
            lines.append(line)
        else:
            print(line, flush=True)
        return None

    def on_error(err: BaseException) -> Optional[BaseException]:
        if isinstance(err, ResultDecodeError):
            logger.warning("Skipping result: %s", err)
            return None
        return err

    try:
        stream.each(on_result, on_error)
    except KeyboardInterrupt:
        logger.info("Interrupted, stopping search")
        interrupted = True
        stream.request_quit()
        stream.wait()
    finally:
        client.close()
        if lines:
            for line in tabulate(lines):
                print(line)

    if interrupted:
        return EXIT_INTERRUPTED
    if count == 0:
        logger.warning("No results found for query")
    return 0


# -----------------------------
# Argparse wiring
# -----------------------------
def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="lgrep",
        description="Search Elasticsearch/Logstash indices from the command line.",
    )
    p.add_argument("query", nargs="*", help="Lucene query (e.g. 'type:journald AND host:web*')")
    p.add_argument(
        "-Q",
        "--query-file",
        help="Read a raw JSON query from this file ('-' for stdin)",
    )
    p.add_argument(
        "-e",
        "--endpoint",
        default=os.getenv("LGREP_ENDPOINT") or DEFAULT_ENDPOINT,
        help="Search endpoint (default: $LGREP_ENDPOINT or %(default)s)",
    )
    p.add_argument(
        "-n",
        "--size",
        type=int,
        default=100,
        help="Number of results to fetch (default: %(default)s)",
    )
    p.add_argument(
        "-o",
        "--offset",
        type=int,
        default=0,
        help="Skip this many results, to page through a search with repeated runs",
    )
    p.add_argument("-i", "--index", help="Index or index pattern to search (e.g. 'logstash-*')")
    p.add_argument("-t", "--type", help="Document type to search")
    p.add_argument("-f", "--fields", help="Comma separated fields to return")
    p.add_argument(
        "-F",
        "--format",
        default=DEFAULT_FORMAT,
        help="Output format, '.field .other' or '{{.field}}' ('.' for raw JSON, default: %(default)s)",
    )
    p.add_argument(
        "-r",
        "--raw",
        action="store_true",
        help="Print the raw hits (with index, id and score) as JSON",
    )
    p.add_argument(
        "-T",
        "--tabulate",
        action="store_true",
        help="Align tab separated output into columns",
    )
    p.add_argument(
        "--sort",
        choices=[SORT_DESC, SORT_ASC, "none"],
        default=SORT_DESC,
        help="Sort results by time (default: %(default)s)",
    )
    p.add_argument(
        "--skip-validation",
        action="store_true",
        help="Do not ask the server to validate the query first",
    )
    p.add_argument(
        "--query-debug",
        action="store_true",
        help="Print the query that would be sent and exit",
    )
    p.add_argument("-D", "--debug", action="store_true", help="Debug logging")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return p


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.debug:
        set_debug(True)

    try:
        code = run_search(args)
    except (ConfigurationError, FormatError) as e:
        logger.error("%s", e)
        raise SystemExit(EXIT_CONFIG)
    except LGrepError as e:
        logger.error("Search failed: %s", e)
        raise SystemExit(EXIT_SEARCH)
    raise SystemExit(code)


if __name__ == "__main__":
    main()
