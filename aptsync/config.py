import os
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .control import Boundary

# Number of concurrent artifact transfers
PARALLEL_DOWNLOADS = int(os.getenv('PARALLEL_DOWNLOADS', '1'))
DOWNLOAD_TIMEOUT = int(os.getenv('DOWNLOAD_TIMEOUT', '7200'))
CONNECT_TIMEOUT = 10
APTSYNC_USER_AGENT = os.getenv("APTSYNC_USER_AGENT", "APT-Mirror-Tool/1.0")
LOG_LEVEL = os.getenv("LOG_LEVEL", "info")
# Show index debugging output
INDEX_DEBUG = os.getenv('INDEX_DEBUG', '').lower() in ('true', '1', 'yes', 'y')
# Optional Authorization header for HTTP object stores
STORE_AUTHORIZATION = os.getenv("STORE_AUTHORIZATION", "")

INDEX_KINDS = ("packages", "sources")
COMPRESSIONS = ("", ".gz", ".xz", ".bz2")

# Boundary convention used for each index kind unless overridden
DEFAULT_BOUNDARY = {
    "packages": Boundary.KEY_RECURRENCE,
    "sources": Boundary.BLANK_LINE,
}


def check_args(prop: str, lst: List[str]):
    for s in lst:
        if len(s) == 0 or ' ' in s:
            raise ValueError(f"Invalid item in {prop}: {repr(s)}")


def split_list(prop: str, value: str) -> List[str]:
    items = value.split(',')
    check_args(prop, items)
    return items


@dataclass
class SyncConfig:
    """Everything a run needs to know, resolved from the command line and env."""

    origin: str
    store: str
    releases: List[str]
    components: List[str]
    archs: List[str] = field(default_factory=list)
    store_base: str = "/"
    index: str = "packages"
    compression: str = ".gz"
    boundary: Optional[Boundary] = None
    concurrency: int = PARALLEL_DOWNLOADS
    fail_fast: bool = False
    timeout: Tuple[int, int] = (CONNECT_TIMEOUT, DOWNLOAD_TIMEOUT)

    def __post_init__(self):
        self.origin = self.origin.rstrip('/')
        if self.index not in INDEX_KINDS:
            raise ValueError(f"Unknown index kind: {self.index!r}")
        if self.compression not in COMPRESSIONS:
            raise ValueError(f"Unsupported index compression: {self.compression!r}")
        if self.concurrency < 1:
            raise ValueError("Transfer concurrency must be at least 1")
        if self.index == "packages" and not self.archs:
            raise ValueError("At least one architecture is required for Packages indexes")

    @property
    def effective_boundary(self) -> Boundary:
        return self.boundary or DEFAULT_BOUNDARY[self.index]

    def targets(self) -> List[Tuple[str, str, Optional[str]]]:
        """Expand release x component x arch; Sources indexes have no arch."""
        archs = self.archs if self.index == "packages" else [None]
        return [(release, component, arch)
                for release in self.releases
                for component in self.components
                for arch in archs]
