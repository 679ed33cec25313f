import pytest

from aptsync.config import SyncConfig, check_args, split_list
from aptsync.control import Boundary


def make_config(**kwargs):
    options = dict(origin="http://origin.test/", store="/srv/mirror",
                   releases=["trusty", "xenial"], components=["main"], archs=["i386", "amd64"])
    options.update(kwargs)
    return SyncConfig(**options)


def test_check_args_rejects_empty_and_spaced_items():
    check_args("arch", ["i386", "amd64"])
    with pytest.raises(ValueError):
        check_args("arch", ["i386", ""])
    with pytest.raises(ValueError):
        check_args("component", ["main contrib"])


def test_split_list():
    assert split_list("release", "trusty,xenial") == ["trusty", "xenial"]
    with pytest.raises(ValueError):
        split_list("release", "trusty,,xenial")


def test_targets_expand_every_combination():
    config = make_config()

    assert config.origin == "http://origin.test"
    assert config.targets() == [
        ("trusty", "main", "i386"), ("trusty", "main", "amd64"),
        ("xenial", "main", "i386"), ("xenial", "main", "amd64"),
    ]


def test_sources_targets_have_no_arch():
    config = make_config(index="sources")

    assert config.targets() == [("trusty", "main", None), ("xenial", "main", None)]


def test_boundary_defaults_follow_index_kind():
    assert make_config().effective_boundary is Boundary.KEY_RECURRENCE
    assert make_config(index="sources").effective_boundary is Boundary.BLANK_LINE
    assert make_config(boundary=Boundary.BLANK_LINE).effective_boundary is Boundary.BLANK_LINE


@pytest.mark.parametrize("kwargs", [
    {"index": "contents"},
    {"compression": ".zst"},
    {"concurrency": 0},
    {"archs": []},
])
def test_invalid_configuration(kwargs):
    with pytest.raises(ValueError):
        make_config(**kwargs)
