"""Target stores that receive mirrored artifacts and archived indexes."""

import base64
import hashlib
import logging
import os
import posixpath
import tempfile
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Optional
from urllib.parse import quote

import requests
from requests.adapters import HTTPAdapter

from .config import APTSYNC_USER_AGENT, CONNECT_TIMEOUT, DOWNLOAD_TIMEOUT
from .errors import ObjectNotFound, StoreLookupError, StoreWriteError

logger = logging.getLogger(__name__)

DIRECTORY_CONTENT_TYPE = "application/json; type=directory"


@dataclass
class StoredObject:
    """Metadata of an object held by a store. ``checksum`` is hex MD5."""

    path: str
    size: Optional[int]
    checksum: Optional[str] = None


def normalize_path(path: str) -> str:
    """Return an absolute, normalized store path that cannot climb above the root."""
    return posixpath.normpath('/' + path.lstrip('/'))


def join_path(base: str, relative: str) -> str:
    return normalize_path(posixpath.join(base or '/', relative.lstrip('/')))


class ObjectStore(ABC):
    """A path-keyed object store.

    Implementations must allow several outstanding requests at once: one
    store instance is shared by the existence checks and every transfer
    worker.
    """

    @abstractmethod
    def info(self, path: str) -> StoredObject:
        """Return metadata for ``path``.

        Raises:
            ObjectNotFound: the object does not exist.
            StoreLookupError: the store could not answer.
        """

    @abstractmethod
    def write(self, path: str, chunks: Iterable[bytes], size: Optional[int] = None,
              md5: Optional[str] = None, mkdirs: bool = True) -> StoredObject:
        """Stream ``chunks`` into ``path``.

        ``size`` is the expected length in bytes and ``md5`` the expected hex
        digest; a store verifies or forwards whichever it can. With
        ``mkdirs`` missing parent containers are created.

        Raises:
            StoreWriteError: the write failed or did not verify.
        """


class LocalStore(ObjectStore):
    """Store objects as files below a root directory."""

    def __init__(self, root):
        self.root = Path(root).resolve()
        self.root.mkdir(parents=True, exist_ok=True)

    def _resolve_path(self, path: str) -> Path:
        return self.root / normalize_path(path).lstrip('/')

    def info(self, path: str) -> StoredObject:
        target = self._resolve_path(path)
        if not target.is_file():
            raise ObjectNotFound(path)
        digest = hashlib.md5()
        try:
            with target.open("rb") as f:
                for block in iter(lambda: f.read(1024**2), b""):
                    digest.update(block)
            size = target.stat().st_size
        except FileNotFoundError:
            raise ObjectNotFound(path)
        except OSError as e:
            raise StoreLookupError(f"Cannot read {target}: {e}") from e
        return StoredObject(path, size, digest.hexdigest())

    def write(self, path: str, chunks: Iterable[bytes], size: Optional[int] = None,
              md5: Optional[str] = None, mkdirs: bool = True) -> StoredObject:
        target = self._resolve_path(path)
        if not target.parent.is_dir():
            if not mkdirs:
                raise StoreWriteError(f"Parent directory of {path} does not exist")
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise StoreWriteError(f"Cannot create {target.parent}: {e}") from e

        # Partial files never appear under the final name
        try:
            fd, tmp_name = tempfile.mkstemp(prefix='._syncing_.' + target.name + '.',
                                            dir=str(target.parent))
        except OSError as e:
            raise StoreWriteError(f"Cannot create temporary file for {target}: {e}") from e
        tmp = Path(tmp_name)
        digest = hashlib.md5()
        written = 0
        try:
            with os.fdopen(fd, 'wb') as f:
                for chunk in chunks:
                    if not chunk:
                        continue
                    f.write(chunk)
                    digest.update(chunk)
                    written += len(chunk)
            if size is not None and written != size:
                raise StoreWriteError(
                    f"Size mismatch for {path}. Expected {size}, got {written}")
            actual = digest.hexdigest()
            if md5 is not None and actual != md5.lower():
                raise StoreWriteError(
                    f"Checksum mismatch for {path}. Expected {md5}, got {actual}")
            tmp.replace(target)
        except OSError as e:
            tmp.unlink(missing_ok=True)
            raise StoreWriteError(f"Cannot write {target}: {e}") from e
        except BaseException:
            tmp.unlink(missing_ok=True)
            raise
        logger.debug("Wrote %s (%d bytes)", target, written)
        return StoredObject(path, written, actual)


class _SizedBody:
    """Chunk iterator with a known length, so requests sends Content-Length."""

    def __init__(self, chunks: Iterable[bytes], size: int):
        self._chunks = chunks
        self._size = size

    def __len__(self):
        return self._size

    def __iter__(self):
        return iter(self._chunks)


class HttpStore(ObjectStore):
    """Manta-style HTTP object store.

    Objects are read with HEAD (size in Content-Length, base64 MD5 in
    Content-MD5) and written with PUT. Directories are objects created by a
    PUT with a directory content type.
    """

    def __init__(self, url: str, session: Optional[requests.Session] = None,
                 headers: Optional[Dict[str, str]] = None,
                 timeout=(CONNECT_TIMEOUT, DOWNLOAD_TIMEOUT), pool_size: int = 10):
        self.url = url.rstrip('/')
        self.timeout = timeout
        if session is None:
            session = requests.Session()
            adapter = HTTPAdapter(pool_connections=pool_size, pool_maxsize=pool_size)
            session.mount('http://', adapter)
            session.mount('https://', adapter)
            session.headers['User-Agent'] = APTSYNC_USER_AGENT
        self.session = session
        if headers:
            self.session.headers.update(headers)
        self._dirs = set()
        self._dirs_lock = threading.Lock()

    def _url(self, path: str) -> str:
        return self.url + quote(normalize_path(path))

    def info(self, path: str) -> StoredObject:
        url = self._url(path)
        try:
            r = self.session.head(url, timeout=self.timeout)
        except requests.RequestException as e:
            raise StoreLookupError(f"HEAD {url} failed: {e}") from e
        if r.status_code == 404:
            raise ObjectNotFound(path)
        if not r.ok:
            raise StoreLookupError(f"HEAD {url} returned HTTP {r.status_code}")

        checksum = None
        content_md5 = r.headers.get('content-md5')
        if content_md5:
            try:
                checksum = base64.b64decode(content_md5).hex()
            except ValueError:
                logger.warning("Ignoring undecodable Content-MD5 %r for %s",
                               content_md5, path)
        length = r.headers.get('content-length')
        size = int(length) if length and length.isdigit() else None
        return StoredObject(path, size, checksum)

    def mkdirs(self, path: str):
        """Create every missing directory from the store root down to ``path``."""
        parts = [p for p in normalize_path(path).split('/') if p]
        current = ''
        for part in parts:
            current += '/' + part
            with self._dirs_lock:
                if current in self._dirs:
                    continue
            url = self._url(current)
            try:
                r = self.session.put(url, headers={'Content-Type': DIRECTORY_CONTENT_TYPE},
                                     timeout=self.timeout)
            except requests.RequestException as e:
                raise StoreWriteError(f"PUT {url} failed: {e}") from e
            if not r.ok:
                raise StoreWriteError(f"Cannot create directory {current}: HTTP {r.status_code}")
            with self._dirs_lock:
                self._dirs.add(current)

    def write(self, path: str, chunks: Iterable[bytes], size: Optional[int] = None,
              md5: Optional[str] = None, mkdirs: bool = True) -> StoredObject:
        path = normalize_path(path)
        if mkdirs:
            self.mkdirs(posixpath.dirname(path))
        headers = {'Content-Type': 'application/octet-stream'}
        if md5:
            headers['Content-MD5'] = base64.b64encode(bytes.fromhex(md5)).decode('ascii')
        body = _SizedBody(chunks, size) if size is not None else chunks

        url = self._url(path)
        try:
            r = self.session.put(url, data=body, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise StoreWriteError(f"PUT {url} failed: {e}") from e
        if not r.ok:
            raise StoreWriteError(f"PUT {url} returned HTTP {r.status_code}")
        return StoredObject(path, size, md5)


def make_store(target: str, authorization: str = "", **kwargs) -> ObjectStore:
    """Build a store from a URL (HTTP object store) or a directory path."""
    if target.startswith(('http://', 'https://')):
        headers = {'Authorization': authorization} if authorization else None
        return HttpStore(target, headers=headers, **kwargs)
    return LocalStore(target)
