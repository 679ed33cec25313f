import pytest

from aptsync.checker import CheckResult, check
from aptsync.errors import StoreLookupError
from aptsync.resolver import Candidate

CANDIDATE = Candidate("pool/foo_1.deb", 10, "abc123")


def test_missing_object_needs_transfer(store):
    result = check(store, CANDIDATE, "/mirror/pool/foo_1.deb")

    assert result is CheckResult.MISSING
    assert result.needs_transfer


def test_matching_checksum_is_current(store):
    store.put("/mirror/pool/foo_1.deb", "ABC123", size=10)

    result = check(store, CANDIDATE, "/mirror/pool/foo_1.deb")

    assert result is CheckResult.CURRENT
    assert not result.needs_transfer


def test_mismatched_checksum_needs_transfer(store):
    store.put("/mirror/pool/foo_1.deb", "ffffff", size=10)

    assert check(store, CANDIDATE, "/mirror/pool/foo_1.deb") is CheckResult.MISMATCH


def test_size_decides_when_store_has_no_checksum(store):
    store.put("/mirror/pool/foo_1.deb", None, size=9)
    assert check(store, CANDIDATE, "/mirror/pool/foo_1.deb") is CheckResult.MISMATCH

    store.put("/mirror/pool/foo_1.deb", None, size=10)
    assert check(store, CANDIDATE, "/mirror/pool/foo_1.deb") is CheckResult.CURRENT


def test_lookup_failure_propagates(store):
    store.broken_lookups.add("/mirror/pool/foo_1.deb")

    with pytest.raises(StoreLookupError):
        check(store, CANDIDATE, "/mirror/pool/foo_1.deb")
