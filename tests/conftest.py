"""
Shared fixtures: an in-memory stand-in for the search server transport.
"""
import os
import tempfile
import threading

# Keep log files out of the real home directory
os.environ.setdefault("LGREP_HOME", tempfile.mkdtemp(prefix="lgrep-test-"))

import pytest

from lgrep_core.errors import EndOfStream, TransportError
from lgrep_core.transport import Page


def make_hits(count, start=0):
    return [
        {
            "_index": "logs-2016.05.08",
            "_type": "journald",
            "_id": str(i),
            "_score": 1.0,
            "_source": {"n": i, "message": f"message {i}"},
        }
        for i in range(start, start + count)
    ]


class FakeTransport:
    """
    Serves `hits` for single searches and scrolls. Each scroll page hands
    out a new scroll id (unless rotate_ids is False) so id retirement can
    be checked.
    """

    def __init__(self, hits=None):
        self.hits = list(hits or [])
        self.search_requests = []
        self.scroll_requests = []
        self.issued_ids = []
        self.cleared = []
        self.requests = []
        self.rotate_ids = True
        self.search_error = None
        self.scroll_error_on_page = None
        self.clear_error = None
        self.validation_response = {"valid": True, "_shards": {"total": 1, "successful": 1, "failed": 0}}
        self.validation_error = None
        self.closed = False
        self._offset = 0
        self._pages = 0
        self._lock = threading.Lock()

    def search(self, request):
        self.search_requests.append(request)
        if self.search_error is not None:
            raise self.search_error
        size = request.size if request.size is not None else 10
        return Page(hits=self.hits[:size], total=len(self.hits))

    def scroll(self, request):
        self.scroll_requests.append((request.scroll_id, request.size, dict(request.to_body())))
        self._pages += 1
        if self.scroll_error_on_page == self._pages:
            raise TransportError("HTTP 500: boom", status=500)

        if self.rotate_ids or not self.issued_ids:
            scroll_id = f"scroll-{self._pages:04d}"
            self.issued_ids.append(scroll_id)
        else:
            scroll_id = self.issued_ids[-1]

        chunk = self.hits[self._offset:self._offset + request.size]
        self._offset += len(chunk)
        if not chunk:
            raise EndOfStream(scroll_id)
        return Page(hits=chunk, scroll_id=scroll_id, total=len(self.hits))

    def clear_scroll(self, *scroll_ids):
        with self._lock:
            self.cleared.extend(scroll_ids)
        if self.clear_error is not None:
            raise self.clear_error

    def perform_request(self, method, path, params=None, body=None):
        self.requests.append((method, path, dict(params or {}), body))
        if self.validation_error is not None:
            raise self.validation_error
        return self.validation_response

    def close(self):
        self.closed = True

    @property
    def calls(self):
        return len(self.search_requests) + len(self.scroll_requests) + len(self.requests)


@pytest.fixture
def transport():
    return FakeTransport(make_hits(50))
