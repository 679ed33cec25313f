"""Mirror one or more repository indexes into a target store."""

import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .checker import CheckResult, check
from .config import STORE_AUTHORIZATION, SyncConfig
from .control import ParseStats, Record, parse_records
from .errors import (ExitStatus, IndexDecodeError, MalformedLineError, OriginError, StoreError,
                     StoreLookupError, worst_status)
from .index import ArchiveTee, index_path, iter_lines
from .origin import Origin
from .resolver import resolve
from .store import ObjectStore, join_path, make_store
from .transfer import TransferJob, TransferQueue

logger = logging.getLogger(__name__)

# log transfer progress every this many completed jobs
PROGRESS_INTERVAL = 100


class _Stop(Exception):
    """Raised inside the pipeline to abandon an index under --fail-fast."""


@dataclass
class SyncReport:
    target: str
    records: int = 0
    dropped: int = 0
    candidates: int = 0
    current: int = 0
    missing: int = 0
    mismatched: int = 0
    scheduled: int = 0
    duplicates: int = 0
    collisions: int = 0
    transferred: int = 0
    bytes_written: int = 0
    archived: bool = False
    parse_error: Optional[str] = None
    index_error: Optional[str] = None
    archive_error: Optional[str] = None
    check_failures: List[Tuple[str, str]] = field(default_factory=list)
    transfer_failures: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def status(self) -> ExitStatus:
        statuses = []
        if self.parse_error:
            statuses.append(ExitStatus.PARSE_FAILED)
        if self.index_error:
            statuses.append(ExitStatus.INDEX_FAILED)
        if self.check_failures:
            statuses.append(ExitStatus.CHECK_FAILED)
        if self.transfer_failures or self.archive_error:
            statuses.append(ExitStatus.WRITE_FAILED)
        return worst_status(statuses)

    @property
    def ok(self) -> bool:
        return self.status is ExitStatus.OK


class Mirror:
    """Synchronize the indexes named by a SyncConfig into a store."""

    def __init__(self, config: SyncConfig, origin: Optional[Origin] = None,
                 store: Optional[ObjectStore] = None):
        self.config = config
        pool_size = config.concurrency + 2
        self.origin = origin or Origin(config.origin, timeout=config.timeout,
                                       pool_size=pool_size)
        self.store = store or make_store(config.store, STORE_AUTHORIZATION,
                                         timeout=config.timeout, pool_size=pool_size)
        # destination -> checksum of every transfer scheduled during this run
        self._scheduled: Dict[str, str] = {}

    def destination(self, path: str) -> str:
        return join_path(self.config.store_base, path)

    def run(self) -> List[SyncReport]:
        targets = self.config.targets()
        logger.info("Starting sync for %d combinations...", len(targets))
        reports = []
        for count, (release, component, arch) in enumerate(targets, 1):
            name = "/".join(p for p in (release, component, arch) if p)
            logger.info("--- [%d/%d] Syncing: %s ---", count, len(targets), name)
            start = time.time()
            report = self.sync_index(release, component, arch)
            logger.info("--- Finished %s in %.2f seconds. Result: %s ---", name,
                        time.time() - start, 'Success' if report.ok else 'Failed')
            reports.append(report)
            if report.parse_error:
                # An unparseable index means the upstream format changed
                logger.error("Stopping run after parse error in %s", report.target)
                break
            if self.config.fail_fast and not report.ok:
                logger.error("Stopping after first failure (--fail-fast)")
                break
        return reports

    def sync_index(self, release: str, component: str, arch: Optional[str]) -> SyncReport:
        config = self.config
        rel_path = index_path(release, component, arch, config.index, config.compression)
        report = SyncReport(target=rel_path)
        stats = ParseStats()

        def progress(outcome):
            done = queue.completed
            if done % PROGRESS_INTERVAL == 0:
                logger.info("Transfer progress: %d/%d completed. Failures: %d",
                            done, queue.submitted, len(queue.failures))

        queue = TransferQueue(self.origin, self.store, config.concurrency,
                              fail_fast=config.fail_fast, on_done=progress)
        try:
            self._pump(rel_path, report, stats, queue)
        finally:
            failures = queue.close()
            report.records = stats.records
            report.dropped = stats.dropped

        for outcome in failures:
            report.transfer_failures.append((outcome.job.destination, str(outcome.error)))
            # let a later index retry it
            self._scheduled.pop(outcome.job.destination, None)
        report.transferred = queue.completed - len(failures)
        report.bytes_written = queue.bytes_written

        if report.dropped:
            logger.info("Skipped %d incomplete records in %s", report.dropped, rel_path)
        logger.info("Identified %d files in %d records (%d up to date, %d missing, "
                    "%d mismatched); transferred %d (%.2f MB), %d failed",
                    report.candidates, report.records, report.current, report.missing,
                    report.mismatched, report.transferred,
                    report.bytes_written / (1024 * 1024), len(failures))
        return report

    def _pump(self, rel_path: str, report: SyncReport, stats: ParseStats,
              queue: TransferQueue):
        config = self.config
        try:
            with self.origin.open(rel_path) as body:
                logger.info("Parsing %s", self.origin.url_for(rel_path))
                archive = ArchiveTee(self.store, self.destination(rel_path))
                try:
                    lines = iter_lines(archive.tee(body), config.compression)
                    for record in parse_records(lines, config.effective_boundary, stats=stats):
                        self._schedule(record, report, queue)
                except BaseException:
                    archive.abort()
                    raise
                archive.close()
                report.archived = True
                logger.info("Archived index to %s", archive.path)
        except MalformedLineError as e:
            logger.error("Fatal parse error in %s: %s", rel_path, e)
            report.parse_error = str(e)
        except (OriginError, IndexDecodeError) as e:
            logger.error("Cannot read index %s: %s", rel_path, e)
            report.index_error = str(e)
        except StoreError as e:
            logger.error("Failed to archive index %s: %s", rel_path, e)
            report.archive_error = str(e)
        except _Stop:
            logger.error("Abandoning %s after failure", rel_path)

    def _schedule(self, record: Record, report: SyncReport, queue: TransferQueue):
        for candidate in resolve(record):
            report.candidates += 1
            destination = self.destination(candidate.path)

            known = self._scheduled.get(destination)
            if known is not None:
                if known == candidate.checksum:
                    report.duplicates += 1
                    logger.debug("Already scheduled: %s", destination)
                else:
                    report.collisions += 1
                    logger.warning("Destination collision for %s: scheduled with MD5 %s, "
                                   "index also lists MD5 %s; keeping the first",
                                   destination, known, candidate.checksum)
                continue

            try:
                result = check(self.store, candidate, destination)
            except StoreLookupError as e:
                logger.error("Existence check failed for %s: %s", destination, e)
                report.check_failures.append((destination, str(e)))
                if self.config.fail_fast:
                    raise _Stop() from e
                continue

            if not result.needs_transfer:
                report.current += 1
                continue
            if result is CheckResult.MISSING:
                report.missing += 1
            else:
                report.mismatched += 1

            self._scheduled[destination] = candidate.checksum
            if not queue.submit(TransferJob(candidate, destination)):
                raise _Stop()
            report.scheduled += 1


def run_status(reports: List[SyncReport]) -> ExitStatus:
    return worst_status(r.status for r in reports)
