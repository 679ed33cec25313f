"""Exception types and process exit statuses."""

from enum import IntEnum


class ExitStatus(IntEnum):
    OK = 0
    WRITE_FAILED = 1
    # 2 is left to argparse for usage errors
    CHECK_FAILED = 3
    PARSE_FAILED = 4
    INDEX_FAILED = 5


# Most severe first
EXIT_PRECEDENCE = [
    ExitStatus.PARSE_FAILED,
    ExitStatus.INDEX_FAILED,
    ExitStatus.CHECK_FAILED,
    ExitStatus.WRITE_FAILED,
]


def worst_status(statuses) -> ExitStatus:
    statuses = set(statuses)
    for status in EXIT_PRECEDENCE:
        if status in statuses:
            return status
    return ExitStatus.OK


class SyncError(Exception):
    """Base class for all mirror errors."""


class MalformedLineError(SyncError):
    """An index line matched none of the control-file line forms."""

    def __init__(self, line_no: int, line: str):
        super().__init__(f"Malformed index line {line_no}: {line!r}")
        self.line_no = line_no
        self.line = line


class OriginError(SyncError):
    """The origin repository could not serve a file."""


class IndexDecodeError(SyncError):
    """The index body could not be decompressed."""


class StoreError(SyncError):
    pass


class ObjectNotFound(StoreError):
    """The path does not exist in the target store. Not a failure."""


class StoreLookupError(StoreError):
    pass


class StoreWriteError(StoreError):
    pass
