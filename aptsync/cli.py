import argparse
import logging
import sys
import time

from . import config as settings
from .config import SyncConfig, split_list
from .control import Boundary
from .errors import ExitStatus
from .log import setup_logging
from .sync import Mirror, run_status

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="apt-store-sync",
        description="Mirror an APT repository index and its files into an object store.")
    parser.add_argument("base_url", type=str,
                        help="Base URL of the APT repository (e.g., http://ddebs.ubuntu.com)")
    parser.add_argument("release", type=str,
                        help="Comma-separated list of releases (e.g., trusty,xenial)")
    parser.add_argument("component", type=str,
                        help="Comma-separated list of components (e.g., main,universe)")
    parser.add_argument("arch", type=str, nargs='?', default="",
                        help="Comma-separated list of architectures (e.g., amd64,i386); "
                             "not used for Sources indexes")
    parser.add_argument("--store", required=True,
                        help="Target store: a directory, or the URL of an HTTP object store")
    parser.add_argument("--store-base", default="/",
                        help="Path inside the store under which the mirror is kept")
    parser.add_argument("--index", choices=settings.INDEX_KINDS, default="packages",
                        help="Index to mirror: binary Packages or Sources")
    parser.add_argument("--compression", choices=settings.COMPRESSIONS, default=".gz",
                        help="Compression suffix of the index file to fetch ('' for none)")
    parser.add_argument("--boundary", choices=[b.value for b in Boundary], default=None,
                        help="Record boundary convention (default: key-recurrence for "
                             "Packages, blank-line for Sources)")
    parser.add_argument("-j", "--parallel", type=int, default=settings.PARALLEL_DOWNLOADS,
                        help="Maximum number of concurrent transfers")
    parser.add_argument("--fail-fast", action='store_true',
                        help="Stop at the first failed check or transfer")
    parser.add_argument("--log-level", default=settings.LOG_LEVEL,
                        help="Logging level (default from LOG_LEVEL, 'info')")
    return parser


def config_from_args(args: argparse.Namespace) -> SyncConfig:
    archs = split_list("arch", args.arch) if args.arch else []
    return SyncConfig(
        origin=args.base_url,
        store=args.store,
        releases=split_list("release", args.release),
        components=split_list("component", args.component),
        archs=archs,
        store_base=args.store_base,
        index=args.index,
        compression=args.compression,
        boundary=Boundary(args.boundary) if args.boundary else None,
        concurrency=args.parallel,
        fail_fast=args.fail_fast,
    )


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        config = config_from_args(args)
    except ValueError as e:
        parser.error(str(e))

    setup_logging(args.log_level, debug=settings.INDEX_DEBUG)
    logger.info("Mirroring %s releases=%s components=%s archs=%s into %s%s",
                config.origin, config.releases, config.components, config.archs,
                config.store, config.store_base)

    start_time = time.time()
    reports = Mirror(config).run()
    status = run_status(reports)

    logger.info("--- Final Summary ---")
    logger.info("Total sync time: %.2f seconds.", time.time() - start_time)
    for report in reports:
        if report.ok:
            continue
        logger.error("%s: %s", report.target, report.status.name)
        for destination, error in report.check_failures + report.transfer_failures:
            logger.error("  - %s: %s", destination, error)
    if status is ExitStatus.OK:
        logger.info("All indexes synced successfully.")
    logger.info("Exiting with status code: %d", status)
    return int(status)


if __name__ == "__main__":
    sys.exit(main())
