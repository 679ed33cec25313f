"""Incremental parser for Debian control-file indexes (Packages, Sources).

The parser never holds more than one record in memory. Each line is fed to
``step`` together with an explicit ``ParserState``; a finished record is
returned from the step that completes it. ``parse_records`` drives ``step``
over a lazy line iterator.
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, Iterator, List, Optional, Tuple, Union

from .errors import MalformedLineError

logger = logging.getLogger(__name__)

Record = Dict[str, Union[str, List[str]]]

_FIELD = r"[A-Za-z0-9][A-Za-z0-9_.-]*"
pattern_scalar = re.compile(rf"^({_FIELD}):[ \t]+(\S.*?)\s*$")
pattern_list_open = re.compile(rf"^({_FIELD}):[ \t]*$")
pattern_continuation = re.compile(r"^[ \t](.*)$")
pattern_manifest_entry = re.compile(r"^\s*(\S+)\s+(\d+)\s+(\S+)\s*$", re.ASCII)
pattern_size = re.compile(r"^\s*\d+\s*$", re.ASCII)

FILE_FIELDS = ("Filename", "MD5sum", "Size")
DIRECTORY_FIELD = "Directory"
MANIFEST_FIELD = "Files"


class Boundary(Enum):
    """How one record is told apart from the next."""

    BLANK_LINE = "blank-line"
    KEY_RECURRENCE = "key-recurrence"


@dataclass
class ParserState:
    key: str = "Package"
    record: Record = field(default_factory=dict)
    last_field: Optional[str] = None
    line_no: int = 0

    def fresh(self) -> "ParserState":
        return ParserState(key=self.key, line_no=self.line_no)


@dataclass
class ParseStats:
    lines: int = 0
    records: int = 0
    dropped: int = 0


def record_kind(record: Record, key: str = "Package") -> Optional[str]:
    """Return "file", "directory" or None for a record lacking identity."""
    if all(isinstance(record.get(f), str) for f in (key,) + FILE_FIELDS) \
            and pattern_size.match(record["Size"]):
        return "file"
    manifest = record.get(MANIFEST_FIELD)
    if isinstance(record.get(DIRECTORY_FIELD), str) and isinstance(manifest, list) \
            and manifest and all(pattern_manifest_entry.match(e) for e in manifest):
        return "directory"
    return None


def _flush(state: ParserState, stats: Optional[ParseStats]) -> Optional[Record]:
    record = state.record
    if not record:
        return None
    if record_kind(record, state.key) is None:
        logger.warning("Dropping incomplete record (line %d): %s",
                       state.line_no, record.get(state.key, record))
        if stats is not None:
            stats.dropped += 1
        return None
    if stats is not None:
        stats.records += 1
    return record


def step(state: ParserState, line: str, boundary: Boundary,
         stats: Optional[ParseStats] = None) -> Tuple[ParserState, Optional[Record]]:
    """Apply one line to the parser state.

    Returns the (possibly new) state and the record completed by this line,
    if any. Raises MalformedLineError when the line has no recognized form.
    """
    state.line_no += 1
    if stats is not None:
        stats.lines += 1
    emitted = None

    m = pattern_scalar.match(line)
    if m:
        name, value = m.group(1), m.group(2)
        if boundary is Boundary.KEY_RECURRENCE and name == state.key \
                and state.record:
            emitted = _flush(state, stats)
            state = state.fresh()
        previous = state.record.get(name)
        if isinstance(previous, str):
            state.record[name] = previous + value
        elif isinstance(previous, list):
            previous.append(value)
        else:
            state.record[name] = value
        state.last_field = name
        return state, emitted

    m = pattern_list_open.match(line)
    if m:
        name = m.group(1)
        if not isinstance(state.record.get(name), list):
            state.record[name] = []
        state.last_field = name
        return state, None

    m = pattern_continuation.match(line)
    if m and line.strip():
        if state.last_field is None:
            raise MalformedLineError(state.line_no, line)
        value = m.group(1).rstrip()
        current = state.record[state.last_field]
        if isinstance(current, list):
            current.append(value)
        else:
            state.record[state.last_field] = current + value
        return state, None

    if not line.strip():
        if boundary is Boundary.BLANK_LINE:
            emitted = _flush(state, stats)
            return state.fresh(), emitted
        return state, None

    raise MalformedLineError(state.line_no, line)


def finish(state: ParserState, stats: Optional[ParseStats] = None) -> Optional[Record]:
    """Flush whatever is left at end of input."""
    return _flush(state, stats)


def parse_records(lines: Iterable[str], boundary: Boundary, key: str = "Package",
                  stats: Optional[ParseStats] = None) -> Iterator[Record]:
    state = ParserState(key=key)
    for line in lines:
        state, record = step(state, line, boundary, stats)
        if record is not None:
            yield record
    record = finish(state, stats)
    if record is not None:
        yield record
