import copy

import pytest

from aptsync.resolver import Candidate, resolve


def test_binary_package_yields_one_candidate():
    record = {"Package": "foo", "Filename": "pool/foo_1.deb", "MD5sum": "ABC123", "Size": "10"}

    assert resolve(record) == [Candidate("pool/foo_1.deb", 10, "abc123")]


def test_source_package_yields_one_candidate_per_manifest_entry():
    record = {
        "Package": "foo",
        "Directory": "pool/main/f/foo/",
        "Files": ["0123 1234 foo_1.0.dsc", "4567  56789  foo_1.0.tar.gz"],
    }
    before = copy.deepcopy(record)

    candidates = resolve(record)

    assert candidates == [
        Candidate("pool/main/f/foo/foo_1.0.dsc", 1234, "0123"),
        Candidate("pool/main/f/foo/foo_1.0.tar.gz", 56789, "4567"),
    ]
    assert record == before


def test_file_identity_takes_precedence():
    record = {"Package": "foo", "Filename": "pool/foo.deb", "MD5sum": "m", "Size": "1",
              "Directory": "pool", "Files": ["x 2 other"]}

    assert resolve(record) == [Candidate("pool/foo.deb", 1, "m")]


def test_record_without_identity_is_rejected():
    with pytest.raises(ValueError):
        resolve({"Package": "foo", "Version": "1.0"})


def test_padded_filename_resolves_to_clean_path():
    record = {"Package": "foo", "Filename": "pool/foo.deb ", "MD5sum": "m", "Size": " 3 "}

    assert resolve(record) == [Candidate("pool/foo.deb", 3, "m")]


def test_superscript_size_is_rejected_not_converted():
    with pytest.raises(ValueError):
        resolve({"Package": "foo", "Filename": "f", "MD5sum": "m", "Size": "²"})
