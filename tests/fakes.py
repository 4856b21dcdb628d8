"""In-memory stand-ins for HTTP sessions and the Paper client used across tests."""

import json
import threading
import time

from requests.structures import CaseInsensitiveDict


class FakeResponse:
    """Minimal ``requests.Response`` look-alike."""

    def __init__(self, status_code=200, body=b"", headers=None, json_data=None,
                 reason="", chunk_error=None, chunk_size=4):
        self.status_code = status_code
        self.body = body
        self.headers = CaseInsensitiveDict(headers or {})
        self.json_data = json_data
        self.reason = reason
        self.chunk_error = chunk_error
        self.chunk_size = chunk_size
        self.closed = False

    @property
    def content(self):
        return self.body

    @property
    def text(self):
        return self.body.decode('utf-8', errors='replace')

    def json(self):
        if self.json_data is None:
            raise ValueError("no JSON body")
        return self.json_data

    def iter_content(self, chunk_size=1):
        for i in range(0, len(self.body), self.chunk_size):
            yield self.body[i:i + self.chunk_size]
        if self.chunk_error is not None:
            raise self.chunk_error

    def close(self):
        self.closed = True


def image_response(body=b"\x89PNG fake image bytes", content_type='image/png', **kwargs):
    return FakeResponse(200, body=body, headers={'content-type': content_type}, **kwargs)


class FakeSession:
    """
    Records requests and answers them from per-URL queues.

    A route value is either a list of responses (consumed in order, the last
    one repeating) or a callable ``(url, kwargs) -> FakeResponse``.
    """

    def __init__(self, routes=None, delay=0.0):
        self.routes = dict(routes or {})
        self.delay = delay
        self.calls = []
        self.headers = {}
        self.verify = True
        self.mounted = {}
        self._lock = threading.Lock()

    def mount(self, prefix, adapter):
        self.mounted[prefix] = adapter

    def _respond(self, method, url, kwargs):
        with self._lock:
            self.calls.append((method, url, kwargs))
            route = self.routes.get(url)
            if route is None:
                response = FakeResponse(404, body=b"not found")
            elif callable(route):
                response = None
            elif len(route) > 1:
                response = route.pop(0)
            else:
                response = route[0]
        if self.delay:
            time.sleep(self.delay)
        if response is None:
            response = route(url, kwargs)
        if isinstance(response, Exception):
            raise response
        return response

    def get(self, url, **kwargs):
        return self._respond('GET', url, kwargs)

    def post(self, url, **kwargs):
        return self._respond('POST', url, kwargs)

    def calls_to(self, url):
        with self._lock:
            return [call for call in self.calls if call[1] == url]


class FakePaperClient:
    """
    Serves PaperDocuments by id.

    ``failures`` maps a doc id to an exception (or list of exceptions raised
    on successive calls before the doc is served).
    """

    def __init__(self, documents=None, failures=None, doc_ids=None, list_error=None):
        self.documents = dict(documents or {})
        self.failures = {key: list(value) if isinstance(value, list) else [value]
                         for key, value in (failures or {}).items()}
        self.doc_ids = doc_ids if doc_ids is not None else list(self.documents)
        self.list_error = list_error
        self.calls = []
        self._lock = threading.Lock()

    def list_doc_ids(self):
        if self.list_error is not None:
            raise self.list_error
        return list(self.doc_ids)

    def download_doc(self, doc_id, export=True):
        with self._lock:
            self.calls.append((doc_id, export))
            pending = self.failures.get(doc_id)
            error = pending.pop(0) if pending and len(pending) > 1 else (pending[0] if pending else None)
        if error is not None:
            raise error
        document = self.documents[doc_id]
        if not export:
            document = type(document)(
                doc_id=document.doc_id, title=document.title, owner=document.owner, body=b""
            )
        return document

    def downloaded_ids(self):
        with self._lock:
            return [doc_id for doc_id, _ in self.calls]


def paper_result_header(title, owner, revision=1):
    return json.dumps({'title': title, 'owner': owner, 'revision': revision, 'mime_type': 'text/html'})


def no_sleep(_seconds):
    pass

