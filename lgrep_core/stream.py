from __future__ import annotations

import logging
import threading
import time
from collections import deque
from typing import Any, Callable, Deque, Iterator, List, Optional, Tuple

from .errors import LGrepError
from .options import SCROLL_CHUNK
from .result import Result

logger = logging.getLogger(__name__)

# How long request_quit() waits for background work before giving up.
QUIT_TIMEOUT = 1.0

ResultFn = Callable[[Result], Optional[BaseException]]
ErrorFn = Callable[[BaseException], Optional[BaseException]]

_RESULT = "result"
_ERROR = "error"
_END = "end"


def _abort(error: BaseException) -> BaseException:
    return error


class SearchStream:
    """
    A stream of results read from the server by a background producer.

    The producer publishes into two bounded channels (results, errors) and
    closes them when it is done; the consumer drains them with each(),
    all() or plain iteration. Both channels share one condition so the
    consumer can block on "either of them" and the producer can be woken
    by a quit request while it is waiting for space.
    """

    def __init__(self, results_capacity: int = SCROLL_CHUNK, errors_capacity: int = 1):
        self._cond = threading.Condition()
        self._results: Deque[Result] = deque()
        self._errors: Deque[BaseException] = deque()
        self._results_capacity = results_capacity
        self._errors_capacity = errors_capacity
        self._closed = False
        self._quit = False
        self._prefer_errors = True

        self._threads: List[threading.Thread] = []
        self._quit_lock = threading.Lock()
        self._stopped = False
        self._finished = False

    @classmethod
    def empty(cls) -> "SearchStream":
        """A stream that is already finished and holds nothing."""
        stream = cls()
        stream.close()
        return stream

    # ---------- Lifecycle ----------

    @property
    def state(self) -> str:
        with self._cond:
            if not self._closed:
                return "running"
            if not self._finished:
                return "draining"
            return "stopped"

    def spawn(
        self,
        target: Callable[..., None],
        *args: Any,
        name: str = "lgrep-stream",
        producer: bool = False,
    ) -> threading.Thread:
        """
        Run target(*args) in a background thread that wait() tracks.

        A producer's unexpected failure is published on the errors channel
        and the stream is closed once it returns, however it returns.
        """

        def run() -> None:
            try:
                target(*args)
            except Exception as e:
                logger.exception("Background task %s failed", name)
                if producer:
                    err = LGrepError(f"Background task {name} failed: {e}")
                    err.__cause__ = e
                    self.publish_error(err)
            finally:
                if producer:
                    self.close()

        thread = threading.Thread(target=run, name=name, daemon=True)
        # Started under the lock so wait() only ever sees running threads
        with self._cond:
            self._threads.append(thread)
            thread.start()
        return thread

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block until every background task has exited. Returns False only
        when a timeout was given and ran out first.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        current = threading.current_thread()
        while True:
            with self._cond:
                pending = [t for t in self._threads if t.is_alive() and t is not current]
                if not pending and self._closed:
                    self._finished = True
                    return True
            if not pending:
                # Nothing started yet or the producer never closed; don't spin.
                return True
            for thread in pending:
                remaining = None
                if deadline is not None:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        return False
                thread.join(remaining)

    def request_quit(self) -> None:
        """
        Ask the producer to stop, then wait up to QUIT_TIMEOUT for it.
        Safe to call any number of times.
        """
        with self._quit_lock:
            if self._stopped:
                return
            logger.debug("Sending stream quit signal")
            with self._cond:
                self._quit = True
                self._cond.notify_all()
            if not self.wait(QUIT_TIMEOUT):
                logger.debug("Stream still cleaning up after %.1fs", QUIT_TIMEOUT)
            self._stopped = True

    # ---------- Producer side ----------

    def quit_requested(self) -> bool:
        with self._cond:
            return self._quit

    def publish(self, result: Result) -> bool:
        """Queue a result, blocking while full. False once quit was requested."""
        return self._put(self._results, self._results_capacity, result)

    def publish_error(self, error: BaseException) -> bool:
        return self._put(self._errors, self._errors_capacity, error)

    def _put(self, items: Deque[Any], capacity: int, item: Any) -> bool:
        with self._cond:
            while True:
                # Quit wins over publishing, even when there is room.
                if self._quit:
                    return False
                if self._closed:
                    raise RuntimeError("publish on a closed stream")
                if len(items) < capacity:
                    items.append(item)
                    self._cond.notify_all()
                    return True
                self._cond.wait()

    def close(self) -> None:
        """Close both channels. Only the first call has any effect."""
        with self._cond:
            if self._closed:
                return
            self._closed = True
            self._cond.notify_all()

    # ---------- Consumer side ----------

    def _next(self) -> Tuple[str, Any]:
        with self._cond:
            while True:
                if self._prefer_errors:
                    order = ((_ERROR, self._errors), (_RESULT, self._results))
                else:
                    order = ((_RESULT, self._results), (_ERROR, self._errors))
                self._prefer_errors = not self._prefer_errors

                for kind, items in order:
                    if items:
                        item = items.popleft()
                        self._cond.notify_all()
                        return kind, item
                if self._closed:
                    return _END, None
                self._cond.wait()

    def each(self, on_result: ResultFn, on_error: Optional[ErrorFn] = None) -> None:
        """
        Call on_result for every result and on_error for every error.

        A callback stops the stream by returning (or raising) an exception,
        which is then raised from here once background work has finished.
        on_error defaults to stopping on the first error.
        """
        on_error = on_error or _abort
        err: Optional[BaseException] = None
        try:
            err = self._consume(on_result, on_error)
        except Exception as e:
            err = e
        except BaseException:
            self.request_quit()
            raise

        if err is not None:
            self.request_quit()
        logger.debug("Exiting stream loop, waiting for stream to clean up")
        self.wait()
        if err is not None:
            raise err

    def _consume(self, on_result: ResultFn, on_error: ErrorFn) -> Optional[BaseException]:
        while True:
            kind, item = self._next()
            if kind == _END:
                logger.debug("Stream results dried up, breaking out")
                return None
            if kind == _ERROR:
                err = on_error(item)
                if err is not None:
                    logger.debug("Error encountered, stopping any ongoing search")
                    return err
                continue
            err = on_result(item)
            if err is not None:
                logger.debug("An error occurred with upstream handler, breaking out")
                return err

    def all(self) -> List[Result]:
        """Read the whole stream into memory, raising on the first error."""
        results: List[Result] = []

        def collect(result: Result) -> None:
            results.append(result)

        self.each(collect, _abort)
        return results

    def __iter__(self) -> Iterator[Result]:
        done = False
        try:
            while True:
                kind, item = self._next()
                if kind == _END:
                    done = True
                    return
                if kind == _ERROR:
                    raise item
                yield item
        finally:
            if not done:
                self.request_quit()
            self.wait()

    def __enter__(self) -> "SearchStream":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.request_quit()
        self.wait()


__all__ = ["SearchStream", "QUIT_TIMEOUT"]
