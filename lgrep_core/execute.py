from __future__ import annotations

import logging
import queue
from typing import Any, Dict, List, Optional, Tuple

from .errors import EndOfStream, QueryError, ResultDecodeError, TransportError
from .logging_config import set_debug
from .options import SCROLL_CHUNK, SCROLL_KEEPALIVE, SearchOptions
from .result import extract_result
from .stream import SearchStream
from .transport import ElasticTransport, ScrollRequest, SearchRequest

logger = logging.getLogger(__name__)


def execute(
    transport: ElasticTransport,
    body: Dict[str, Any],
    options: SearchOptions,
) -> SearchStream:
    """
    Start the search described by body + options and return its stream.

    Requests larger than MAX_SEARCH_SIZE go through a scroll; everything
    else is a single search. Configuration problems are raised here,
    before any background work starts.
    """
    if options.query_debug:
        set_debug(True)

    if options.effective_size == 0:
        logger.debug("Size is 0, not searching")
        return SearchStream.empty()

    options.check()
    if not isinstance(body, dict):
        raise QueryError(
            f"cannot execute search with a {type(body).__name__} query, expected an object"
        )

    stream = SearchStream(results_capacity=SCROLL_CHUNK, errors_capacity=1)

    if options.requires_scroll:
        logger.debug("searching with scroll for large size (%d)", options.effective_size)
        scroll = ScrollRequest(keep_alive=SCROLL_KEEPALIVE)
        options.configure_scroll(scroll)
        # Pages are always a chunk; the total is enforced by counting.
        scroll.size = SCROLL_CHUNK
        scroll.body = options.configure_query_map(dict(body))
        logger.debug("Scroll body: %r", scroll.body)
        stream.spawn(execute_scroll, transport, scroll, options, stream, name="lgrep-scroll", producer=True)
    else:
        logger.debug("searching with regular query for small size (%d)", options.effective_size)
        search = SearchRequest(body=dict(body))
        options.configure_search(search)
        stream.spawn(execute_searcher, transport, search, options, stream, name="lgrep-search", producer=True)

    return stream


def execute_searcher(
    transport: ElasticTransport,
    request: SearchRequest,
    options: SearchOptions,
    stream: SearchStream,
) -> None:
    """Issue one search and publish its hits. Failures are not retried."""
    try:
        page = transport.search(request)
    except Exception as e:
        logger.debug("Search failed: %s", e)
        stream.publish_error(_as_transport_error(e))
        return

    for hit in page.hits:
        if stream.quit_requested():
            logger.debug("Stream instructed to quit")
            return
        try:
            result = extract_result(hit, options)
        except ResultDecodeError as e:
            if not stream.publish_error(e):
                return
            continue
        if not stream.publish(result):
            return


def execute_scroll(
    transport: ElasticTransport,
    request: ScrollRequest,
    options: SearchOptions,
    stream: SearchStream,
) -> None:
    """
    Page through a scroll until options.effective_size results have been
    delivered, the scroll runs dry, an error occurs or quit is requested.

    Every scroll id the server hands out is retired by a helper thread;
    the last one is handed over when the loop ends.
    """
    retired: "queue.Queue[Optional[str]]" = queue.Queue()
    stream.spawn(retire_scrolls, transport, retired, name="lgrep-clear-scroll")

    size = options.effective_size
    result_count = 0
    scroll_id: Optional[str] = None

    try:
        while result_count < size:
            if scroll_id:
                logger.debug("Fetching next page using scroll id %s", scroll_id[:10])
            else:
                logger.debug("Fetching first page of scroll")
            request.scroll_id = scroll_id

            try:
                page = transport.scroll(request)
            except EndOfStream as eos:
                logger.debug("Scroll exhausted after %d results", result_count)
                scroll_id = _rotate(scroll_id, eos.scroll_id, retired)
                break
            except Exception as e:
                logger.debug("An error was returned during scroll after %d results", result_count)
                stream.publish_error(_as_transport_error(e, "Server responded with error while scrolling"))
                break

            scroll_id = _rotate(scroll_id, page.scroll_id, retired)

            published, keep_going = _publish_page(page.hits, options, stream, size - result_count)
            result_count += published
            if not keep_going:
                break
            if stream.quit_requested():
                break
    finally:
        if scroll_id:
            retired.put(scroll_id)
        retired.put(None)

    if result_count >= size:
        logger.debug("Scroll streamed the required amount of results")


def _publish_page(
    hits: List[Dict[str, Any]],
    options: SearchOptions,
    stream: SearchStream,
    wanted: int,
) -> Tuple[int, bool]:
    """
    Publish at most `wanted` results from one page, in order. Returns how
    many were published and False as the second item once told to quit.
    """
    published = 0
    for hit in hits:
        try:
            result = extract_result(hit, options)
        except ResultDecodeError as e:
            if not stream.publish_error(e):
                return published, False
            continue
        if not stream.publish(result):
            logger.debug("Stream instructed to quit")
            return published, False
        published += 1
        if published == wanted:
            break
    return published, True


def _rotate(current: Optional[str], new: Optional[str], retired: "queue.Queue[Optional[str]]") -> Optional[str]:
    if not new or new == current:
        return current
    if current:
        retired.put(current)
    return new


def retire_scrolls(transport: ElasticTransport, retired: "queue.Queue[Optional[str]]") -> None:
    """
    Clear scroll ids as they are retired until None arrives. Whatever has
    piled up is cleared in one request. Failures are only logged; the
    server drops the scroll itself once its keep-alive runs out.
    """
    done = False
    while not done:
        batch: List[str] = []
        item = retired.get()
        while True:
            if item is None:
                done = True
                break
            batch.append(item)
            try:
                item = retired.get_nowait()
            except queue.Empty:
                break
        if not batch:
            continue
        try:
            transport.clear_scroll(*batch)
            logger.debug("Cleared %d scroll id(s)", len(batch))
        except Exception as e:
            logger.warning("Could not clear scroll (it will expire on its own): %s", e)


def _as_transport_error(error: Exception, note: str = "") -> Exception:
    if isinstance(error, TransportError):
        if note:
            wrapped = TransportError(f"{note}: {error}", status=error.status, error_type=error.error_type)
            wrapped.__cause__ = error
            return wrapped
        return error
    wrapped = TransportError(f"{note or 'Search failed'}: {error}")
    wrapped.__cause__ = error
    return wrapped


__all__ = ["execute", "execute_searcher", "execute_scroll", "retire_scrolls"]
