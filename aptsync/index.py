"""Index file locations, streaming decode, and the raw-index archive tee."""

import bz2
import codecs
import logging
import lzma
import queue
import zlib
from concurrent.futures import ThreadPoolExecutor
from pathlib import PurePosixPath
from typing import Iterable, Iterator, Optional

from .errors import IndexDecodeError, SyncError
from .store import ObjectStore, StoredObject

logger = logging.getLogger(__name__)

INDEX_NAMES = {
    "packages": "Packages",
    "sources": "Sources",
}


def index_path(release: str, component: str, arch: Optional[str],
               index: str = "packages", compression: str = "") -> str:
    """Repository-relative path of an index file."""
    if index == "packages":
        subdir = f"binary-{arch}"
    else:
        subdir = "source"
    return str(PurePosixPath("dists") / release / component / subdir
               / (INDEX_NAMES[index] + compression))


class _GzipDecompressor:
    """Incremental gzip decoder that also accepts concatenated members."""

    def __init__(self):
        self._d = zlib.decompressobj(16 + zlib.MAX_WBITS)

    @property
    def eof(self):
        return self._d.eof

    def decompress(self, data: bytes) -> bytes:
        out = []
        while data:
            out.append(self._d.decompress(data))
            if not self._d.eof:
                break
            data = self._d.unused_data
            if data:
                self._d = zlib.decompressobj(16 + zlib.MAX_WBITS)
        return b"".join(out)


def make_decompressor(compression: str):
    if compression == ".gz":
        return _GzipDecompressor()
    if compression == ".xz":
        return lzma.LZMADecompressor()
    if compression == ".bz2":
        return bz2.BZ2Decompressor()
    if compression == "":
        return None
    raise ValueError(f"Unsupported compression format: {compression!r}")


def iter_lines(chunks: Iterable[bytes], compression: str = "") -> Iterator[str]:
    """Decompress and split a byte stream into text lines, lazily.

    Lines are yielded without their terminator. Invalid UTF-8 is replaced
    rather than rejected.
    """
    decompressor = make_decompressor(compression)
    decoder = codecs.getincrementaldecoder('utf-8')(errors='replace')
    pending = ''
    for chunk in chunks:
        if decompressor is not None:
            try:
                chunk = decompressor.decompress(chunk)
            except (OSError, EOFError, zlib.error, lzma.LZMAError) as e:
                raise IndexDecodeError(f"Cannot decompress {compression} index: {e}") from e
        lines = (pending + decoder.decode(chunk)).split('\n')
        pending = lines.pop()
        for line in lines:
            yield line.rstrip('\r')
    if decompressor is not None and not decompressor.eof:
        raise IndexDecodeError(f"Truncated {compression} index")
    pending += decoder.decode(b'', final=True)
    if pending:
        yield pending.rstrip('\r')


class ArchiveAborted(SyncError):
    pass


_END = object()
_ABORT = object()


class ArchiveTee:
    """Write a copy of the raw index into the store while it is being parsed.

    The store write runs on its own thread and pulls chunks from a bounded
    window, so a slow archive write slows the download rather than letting
    the index pile up in memory.
    """

    def __init__(self, store: ObjectStore, path: str, window: int = 8):
        self.path = path
        self._store = store
        self._chunks = queue.Queue(maxsize=window)
        self._finished = False
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix='archive')
        self._future = self._executor.submit(self._write)

    def _iter_chunks(self):
        while True:
            item = self._chunks.get()
            if item is _END:
                self._finished = True
                return
            if item is _ABORT:
                self._finished = True
                raise ArchiveAborted(f"Archive of {self.path} aborted")
            yield item

    def _write(self) -> StoredObject:
        try:
            return self._store.write(self.path, self._iter_chunks(), mkdirs=True)
        finally:
            # The producer must never block on a writer that stopped reading
            while not self._finished:
                if self._chunks.get() in (_END, _ABORT):
                    self._finished = True

    def feed(self, chunk: bytes):
        self._chunks.put(chunk)

    def tee(self, chunks: Iterable[bytes]) -> Iterator[bytes]:
        for chunk in chunks:
            self.feed(chunk)
            yield chunk

    def close(self) -> StoredObject:
        """Finish the archive write and return the stored object."""
        self._chunks.put(_END)
        try:
            return self._future.result()
        finally:
            self._executor.shutdown()

    def abort(self):
        self._chunks.put(_ABORT)
        try:
            self._future.result()
        except Exception as e:
            logger.debug("Archive write of %s stopped: %s", self.path, e)
        finally:
            self._executor.shutdown()
