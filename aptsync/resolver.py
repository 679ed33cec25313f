"""Expand index records into the concrete files they reference."""

from dataclasses import dataclass
from typing import List

from .control import (DIRECTORY_FIELD, MANIFEST_FIELD, Record,
                      pattern_manifest_entry, record_kind)


@dataclass(frozen=True)
class Candidate:
    path: str      # relative to the repository root
    size: int
    checksum: str  # hex MD5, as listed in the index


def resolve(record: Record, key: str = "Package") -> List[Candidate]:
    """Return the candidates described by one record.

    A binary package names a single file (Filename/Size/MD5sum). A source
    package names a directory and lists its member files in the Files
    manifest, one "md5 size name" entry per line.
    """
    kind = record_kind(record, key)
    if kind == "file":
        return [Candidate(record["Filename"].strip(), int(record["Size"]),
                          record["MD5sum"].strip().lower())]
    if kind == "directory":
        directory = record[DIRECTORY_FIELD].strip().rstrip('/')
        candidates = []
        for entry in record[MANIFEST_FIELD]:
            checksum, size, filename = pattern_manifest_entry.match(entry).groups()
            candidates.append(Candidate(f"{directory}/{filename}", int(size),
                                        checksum.lower()))
        return candidates
    raise ValueError(f"Record has neither a file nor a directory identity: {record!r}")
