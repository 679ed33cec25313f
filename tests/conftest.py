import hashlib
import logging
import threading
import time
from contextlib import contextmanager
from typing import Dict, Optional

import pytest

from aptsync.errors import ObjectNotFound, OriginError, StoreLookupError, StoreWriteError
from aptsync.store import ObjectStore, StoredObject, normalize_path


class FakeOrigin:
    """In-memory origin that records how many bodies are open at once."""

    def __init__(self, files: Optional[Dict[str, bytes]] = None, delay: float = 0.0,
                 chunk_size: int = 4):
        self.files = dict(files or {})
        self.delay = delay
        self.chunk_size = chunk_size
        self.base_url = "http://origin.test"
        self.opened = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    def url_for(self, path):
        return f"{self.base_url}/{path.lstrip('/')}"

    @contextmanager
    def open(self, path, chunk_size=None):
        if path not in self.files:
            raise OriginError(f"Failed to fetch {self.url_for(path)}: HTTP 404")
        with self._lock:
            self.opened.append(path)
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            yield self._chunks(self.files[path])
        finally:
            with self._lock:
                self.in_flight -= 1

    def _chunks(self, data):
        for i in range(0, len(data), self.chunk_size):
            if self.delay:
                time.sleep(self.delay)
            yield data[i:i + self.chunk_size]


class FakeStore(ObjectStore):
    """In-memory store keyed by normalized path."""

    def __init__(self):
        self.objects: Dict[str, StoredObject] = {}
        self.data: Dict[str, bytes] = {}
        self.writes = []
        self.broken_lookups = set()
        self._lock = threading.Lock()

    def put(self, path, checksum, size=0):
        path = normalize_path(path)
        self.objects[path] = StoredObject(path, size, checksum)

    def info(self, path):
        path = normalize_path(path)
        if path in self.broken_lookups:
            raise StoreLookupError(f"HEAD {path} returned HTTP 500")
        try:
            return self.objects[path]
        except KeyError:
            raise ObjectNotFound(path)

    def write(self, path, chunks, size=None, md5=None, mkdirs=True):
        path = normalize_path(path)
        data = b"".join(chunks)
        if size is not None and len(data) != size:
            raise StoreWriteError(f"Size mismatch for {path}")
        with self._lock:
            self.writes.append(path)
            self.data[path] = data
            self.objects[path] = StoredObject(path, len(data), hashlib.md5(data).hexdigest())
        return self.objects[path]


@pytest.fixture
def origin():
    return FakeOrigin()


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture(autouse=True)
def reset_aptsync_logger():
    yield
    logger = logging.getLogger("aptsync")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
