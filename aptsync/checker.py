import logging
from enum import Enum

from .errors import ObjectNotFound
from .resolver import Candidate
from .store import ObjectStore

logger = logging.getLogger(__name__)


class CheckResult(Enum):
    MISSING = "missing"
    MISMATCH = "mismatch"
    CURRENT = "current"

    @property
    def needs_transfer(self) -> bool:
        return self is not CheckResult.CURRENT


def check(store: ObjectStore, candidate: Candidate, destination: str) -> CheckResult:
    """Decide whether ``candidate`` has to be copied to ``destination``.

    Only a missing object or a checksum (or, when the store has no
    checksum, size) mismatch calls for a transfer. Lookup failures other
    than "not found" propagate as StoreLookupError.
    """
    try:
        stored = store.info(destination)
    except ObjectNotFound:
        logger.debug("Missing: %s", destination)
        return CheckResult.MISSING

    if stored.checksum is not None:
        if stored.checksum.lower() != candidate.checksum.lower():
            logger.info("MD5 mismatch for %s: stored %s, index %s",
                        destination, stored.checksum, candidate.checksum)
            return CheckResult.MISMATCH
    elif stored.size is not None and stored.size != candidate.size:
        logger.info("Size mismatch for %s: stored %d, index %d",
                    destination, stored.size, candidate.size)
        return CheckResult.MISMATCH

    logger.debug("Up to date: %s", destination)
    return CheckResult.CURRENT
