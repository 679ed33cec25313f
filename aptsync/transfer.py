"""Bounded pool of origin-to-store artifact transfers."""

import concurrent.futures
import logging
import threading
from dataclasses import dataclass
from typing import Callable, List, Optional

from .origin import Origin
from .resolver import Candidate
from .store import ObjectStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransferJob:
    candidate: Candidate
    destination: str


@dataclass
class TransferOutcome:
    job: TransferJob
    written: int = 0
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class TransferQueue:
    """Run transfer jobs on at most ``concurrency`` workers.

    Jobs start in the order they were submitted. ``submit`` blocks once
    ``concurrency + backlog`` jobs are admitted but unfinished, so the
    producer can never run far ahead of the transfers. A failed job is
    logged and recorded; the remaining jobs still run unless ``fail_fast``
    is set, in which case no new jobs are admitted after the first failure.
    """

    def __init__(self, origin: Origin, store: ObjectStore, concurrency: int = 1,
                 backlog: int = 0, fail_fast: bool = False,
                 on_done: Optional[Callable[[TransferOutcome], None]] = None):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.concurrency = concurrency
        self.fail_fast = fail_fast
        self._origin = origin
        self._store = store
        self._on_done = on_done
        self._executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=concurrency, thread_name_prefix='transfer')
        self._slots = threading.BoundedSemaphore(concurrency + backlog)
        self._lock = threading.Lock()
        self._failed = threading.Event()
        self.submitted = 0
        self.completed = 0
        self.bytes_written = 0
        self.failures: List[TransferOutcome] = []

    @property
    def failed(self) -> bool:
        return self._failed.is_set()

    def submit(self, job: TransferJob) -> bool:
        """Queue ``job``; returns False if it was refused after a failure."""
        if self.fail_fast and self.failed:
            return False
        self._slots.acquire()
        if self.fail_fast and self.failed:
            self._slots.release()
            return False
        try:
            future = self._executor.submit(self._run, job)
        except BaseException:
            self._slots.release()
            raise
        self.submitted += 1
        future.add_done_callback(self._finished)
        return True

    def _run(self, job: TransferJob) -> TransferOutcome:
        if self.fail_fast and self.failed:
            return TransferOutcome(job, error=RuntimeError("skipped after earlier failure"))
        url = self._origin.url_for(job.candidate.path)
        logger.info("Syncing %s to %s (%d bytes)", url, job.destination, job.candidate.size)
        try:
            with self._origin.open(job.candidate.path) as chunks:
                stored = self._store.write(job.destination, chunks,
                                           size=job.candidate.size,
                                           md5=job.candidate.checksum,
                                           mkdirs=True)
        except Exception as e:
            logger.error("Failed to sync %s to %s: %s", url, job.destination, e)
            return TransferOutcome(job, error=e)
        logger.info("Successfully put %s", job.destination)
        return TransferOutcome(job, written=stored.size or 0)

    def _finished(self, future: concurrent.futures.Future):
        try:
            outcome = future.result()
            with self._lock:
                self.completed += 1
                self.bytes_written += outcome.written
                if not outcome.ok:
                    self.failures.append(outcome)
                    self._failed.set()
            if self._on_done is not None:
                self._on_done(outcome)
        finally:
            self._slots.release()

    def close(self) -> List[TransferOutcome]:
        """Wait for every admitted job and return the failed outcomes."""
        self._executor.shutdown(wait=True)
        return list(self.failures)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
