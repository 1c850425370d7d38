"""Tests for BranchCatalog and upgrade checks."""

import json

import pytest
import requests
from fakes import MockResponse
from fakes import MockSession
from fakes import version_source
from wire_releases import AcquisitionConfig
from wire_releases import BranchCatalog
from wire_releases import NetworkError
from wire_releases import ReleaseRef
from wire_releases import VersionTriple

CONFIG = AcquisitionConfig()


def version_url(name: str) -> str:
    return CONFIG.branch_url(CONFIG.version_url, name)


def make_session(branches: list[str], versions: dict[str, str]) -> MockSession:
    routes = {CONFIG.branches_url: MockResponse(text=json.dumps([{"name": name} for name in branches]))}
    for name, content in versions.items():
        routes[version_url(name)] = MockResponse(text=content)
    return MockSession(get=routes)


def test_master_branch_version():
    """Listing [master] with version constants 3/0/184 yields master 3.0.184."""
    session = make_session(["master"], {"master": version_source(3, 0, 184)})

    branches = BranchCatalog(session, CONFIG).list_branches(ReleaseRef.branch("master"))

    assert list(branches) == ["master"]
    master = branches["master"]
    assert master.version == VersionTriple(major=3, minor=0, revision=184)
    assert master.title == "Stable/Master"
    assert master.zip_url == "https://github.com/processwire/processwire/archive/master.zip"
    assert master.version_url == version_url("master")


def test_unknown_version_when_descriptor_does_not_match():
    session = make_session(["master", "dev"], {"master": version_source(3, 0, 184), "dev": "<?php // moved"})

    branches = BranchCatalog(session, CONFIG).list_branches()

    assert branches["dev"].version is None
    assert branches["dev"].title == "Dev"
    assert branches["dev"].label == "dev ?"


def test_unreachable_branch_descriptor_is_unknown():
    """A branch whose descriptor 404s is still listed, with unknown version."""
    session = make_session(["master", "dev"], {"master": version_source(3, 0, 184)})

    branches = BranchCatalog(session, CONFIG).list_branches()

    assert branches["dev"].version is None


def test_commit_hash_added_under_sha_key():
    session = make_session(["master"], {"master": version_source(3, 0, 184), "a1b2c3": version_source(3, 0, 190)})

    branches = BranchCatalog(session, CONFIG).list_branches(ReleaseRef.commit("a1b2c3"))

    assert set(branches) == {"master", "sha"}
    sha = branches["sha"]
    assert sha.name == "a1b2c3"
    assert sha.title == "Specific commit sha"
    assert sha.version == VersionTriple(major=3, minor=0, revision=190)
    assert sha.zip_url.endswith("/archive/a1b2c3.zip")
    # Descriptor fetched exactly once for the commit
    assert [url for _, url, _ in session.calls].count(version_url("a1b2c3")) == 1


def test_unreachable_commit_raises():
    session = make_session(["master"], {"master": version_source(3, 0, 184)})

    with pytest.raises(NetworkError):
        BranchCatalog(session, CONFIG).list_branches(ReleaseRef.commit("deadbeef"))


def test_listing_failure_raises_network_error():
    session = MockSession(get={CONFIG.branches_url: requests.ConnectionError("offline")})

    with pytest.raises(NetworkError):
        BranchCatalog(session, CONFIG).list_branches()


@pytest.mark.parametrize("payload", ["not json", json.dumps({"message": "API rate limit exceeded"})])
def test_malformed_listing_raises_network_error(payload):
    session = MockSession(get={CONFIG.branches_url: MockResponse(text=payload)})

    with pytest.raises(NetworkError):
        BranchCatalog(session, CONFIG).list_branches()


def test_listing_without_master_raises():
    session = make_session(["dev"], {"dev": version_source(3, 0, 190)})

    with pytest.raises(NetworkError, match="does not include 'master'"):
        BranchCatalog(session, CONFIG).list_branches()


def test_upgrade_available_on_master():
    session = make_session(["master"], {"master": version_source(3, 0, 184)})

    check = BranchCatalog(session, CONFIG).check_for_upgrade(None, VersionTriple.parse("3.0.165"))

    assert check.upgrade
    assert check.determinable
    assert check.branch.name == "master"


def test_up_to_date_on_master():
    session = make_session(["master"], {"master": version_source(3, 0, 184)})

    check = BranchCatalog(session, CONFIG).check_for_upgrade(ReleaseRef.branch("master"), VersionTriple.parse("3.0.184"))

    assert not check.upgrade
    assert check.determinable


def test_upgrade_compares_requested_branch_not_master():
    """The comparison target is the requested branch."""
    session = make_session(
        ["master", "dev"],
        {"master": version_source(3, 0, 184), "dev": version_source(3, 0, 200)},
    )

    check = BranchCatalog(session, CONFIG).check_for_upgrade(ReleaseRef.branch("dev"), VersionTriple.parse("3.0.184"))

    assert check.upgrade
    assert check.branch.name == "dev"


def test_commit_is_always_an_upgrade():
    session = make_session(["master"], {"master": version_source(3, 0, 184), "a1b2c3": version_source(3, 0, 100)})

    check = BranchCatalog(session, CONFIG).check_for_upgrade(ReleaseRef.commit("a1b2c3"), VersionTriple.parse("3.0.184"))

    assert check.upgrade
    assert check.branch.name == "a1b2c3"


def test_unknown_version_is_not_reported_as_upgrade():
    session = make_session(["master"], {"master": "<?php // nothing here"})

    check = BranchCatalog(session, CONFIG).check_for_upgrade(None, VersionTriple.parse("0.0.0"))

    assert not check.upgrade
    assert not check.determinable
