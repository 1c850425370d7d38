"""Tests for module version reconciliation."""

import json

import pytest
import requests
from fakes import MockResponse
from fakes import MockSession
from wire_releases import AcquisitionConfig
from wire_releases import CatalogUnavailableError
from wire_releases import LocalComponent
from wire_releases import LocalSnapshotProvider
from wire_releases import ModuleDirectoryClient
from wire_releases import VersionReconciler
from wire_releases import VersionTriple

CONFIG = AcquisitionConfig(module_service_key="key")


class StaticSnapshot:
    """Fixed installed state for tests."""

    def __init__(self, components: list[LocalComponent], version: str | None = "3.0.184"):
        self.components = components
        self.version = VersionTriple.parse(version)

    def installed_version(self) -> VersionTriple | None:
        return self.version

    def installed_components(self) -> list[LocalComponent]:
        return self.components


def v(text: str) -> VersionTriple:
    version = VersionTriple.parse(text)
    assert version is not None
    return version


def catalog_session(components: list[LocalComponent], items: list[dict]) -> MockSession:
    client = ModuleDirectoryClient(MockSession(), CONFIG)
    url = client.bulk_url([c.name for c in components if not c.core])
    return MockSession(get={url: MockResponse(text=json.dumps({"items": items}))})


def make_reconciler(components: list[LocalComponent], items: list[dict]) -> tuple[VersionReconciler, MockSession]:
    session = catalog_session(components, items)
    return VersionReconciler(StaticSnapshot(components), ModuleDirectoryClient(session, CONFIG)), session


def test_snapshot_satisfies_protocol():
    assert isinstance(StaticSnapshot([]), LocalSnapshotProvider)


def test_bulk_url_lists_class_names():
    url = ModuleDirectoryClient(MockSession(), CONFIG).bulk_url(["Foo", "Bar"])

    assert url.startswith(CONFIG.module_service_url + "?")
    assert "apikey=key" in url
    assert "limit=100" in url
    assert "field=module_version,version,requires_versions" in url
    assert "class_name=Foo,Bar" in url


def test_item_url_sanitizes_key():
    config = AcquisitionConfig(module_service_key="ab c&d")
    url = ModuleDirectoryClient(MockSession(), config).item_url("Foo")

    assert url == "https://modules.processwire.com/export-json/Foo/?apikey=abcd"


def test_newer_remote_is_reported():
    """Local 1.2.3 vs remote 1.3.0 is included with is_newer 1."""
    components = [LocalComponent(name="Foo", title="Foo Module", version="1.2.3")]
    reconciler, _ = make_reconciler(components, [{"class_name": "Foo", "module_version": "1.3.0"}])

    records = reconciler.reconcile(only_new=True)

    record = records["Foo"]
    assert record.is_newer == 1
    assert record.local_version == v("1.2.3")
    assert record.remote_version == v("1.3.0")
    assert record.title == "Foo Module"
    assert record.upgradable


def test_equal_versions_excluded_when_only_new():
    components = [LocalComponent(name="Foo", version="2.0.0")]
    reconciler, _ = make_reconciler(components, [{"class_name": "Foo", "module_version": "2.0.0"}])

    assert reconciler.reconcile(only_new=True) == {}

    record = reconciler.reconcile()["Foo"]
    assert record.is_newer == 0
    assert not record.upgradable


def test_local_ahead_of_catalog():
    components = [LocalComponent(name="Foo", version="2.1.0")]
    reconciler, _ = make_reconciler(components, [{"class_name": "Foo", "module_version": "2.0.0"}])

    assert reconciler.reconcile()["Foo"].is_newer == -1
    assert reconciler.reconcile(only_new=True) == {}


def test_packed_integer_versions_compare_numerically():
    """Catalog versions are often packed integers (130 = 1.3.0)."""
    components = [LocalComponent(name="Foo", version=123)]
    reconciler, _ = make_reconciler(components, [{"class_name": "Foo", "module_version": 130}])

    assert reconciler.reconcile(only_new=True)["Foo"].remote_version == v("1.3.0")


def test_unknown_versions_never_reported_as_newer():
    components = [
        LocalComponent(name="Unlisted", version="1.0.0"),
        LocalComponent(name="NoRemoteVersion", version="1.0.0"),
        LocalComponent(name="NoLocalVersion"),
    ]
    items = [
        {"class_name": "NoRemoteVersion", "module_version": "dev"},
        {"class_name": "NoLocalVersion", "module_version": "9.9.9"},
    ]
    reconciler, _ = make_reconciler(components, items)

    assert reconciler.reconcile(only_new=True) == {}

    records = reconciler.reconcile()
    assert set(records) == {"Unlisted", "NoRemoteVersion", "NoLocalVersion"}
    assert all(record.is_newer == 0 for record in records.values())
    assert records["Unlisted"].remote_version is None


def test_requirements_come_from_remote_only_when_upgradable():
    components = [
        LocalComponent(name="Newer", version="1.0.0", required_versions={"ProcessWire": [">=", "3.0.0"]}),
        LocalComponent(name="Same", version="1.0.0", required_versions={"ProcessWire": [">=", "3.0.0"]}),
    ]
    items = [
        {"class_name": "Newer", "module_version": "2.0.0", "requires_versions": {"ProcessWire": [">=", "3.0.150"]}},
        {"class_name": "Same", "module_version": "1.0.0", "requires_versions": {"ProcessWire": [">=", "3.0.200"]}},
    ]
    reconciler, _ = make_reconciler(components, items)

    records = reconciler.reconcile()

    assert records["Newer"].required_versions["ProcessWire"].version == v("3.0.150")
    assert records["Same"].required_versions["ProcessWire"].version == v("3.0.0")
    assert records["Newer"].unmet_requirements({"ProcessWire": v("3.0.184")}) == {}


def test_core_components_are_skipped():
    components = [
        LocalComponent(name="Foo", version="1.0.0"),
        LocalComponent(name="ProcessPageEdit", version="1.0.0", core=True),
    ]
    reconciler, session = make_reconciler(components, [{"class_name": "Foo", "module_version": "1.0.1"}])

    records = reconciler.reconcile()

    assert set(records) == {"Foo"}
    assert "ProcessPageEdit" not in session.calls[0][1]


def test_no_components_makes_no_request():
    session = MockSession()
    reconciler = VersionReconciler(StaticSnapshot([]), ModuleDirectoryClient(session, CONFIG))

    assert reconciler.reconcile() == {}
    assert session.calls == []


def test_explicit_local_list_overrides_snapshot():
    components = [LocalComponent(name="Bar", version="0.1.0")]
    session = catalog_session(components, [{"class_name": "Bar", "module_version": "0.2.0"}])
    reconciler = VersionReconciler(StaticSnapshot([]), ModuleDirectoryClient(session, CONFIG))

    assert set(reconciler.reconcile(local=components)) == {"Bar"}


def test_malformed_catalog_items_are_ignored():
    components = [LocalComponent(name="Foo", version="1.0.0"), LocalComponent(name="Bar", version="1.0.0")]
    items = [
        "junk",
        {"module_version": "2.0.0"},
        {"class_name": "Bar", "module_version": "2.0.0", "requires_versions": "not a mapping"},
        {"class_name": "Foo", "module_version": "2.0.0"},
    ]
    reconciler, _ = make_reconciler(components, items)

    records = reconciler.reconcile(only_new=True)

    assert set(records) == {"Foo"}


@pytest.mark.parametrize(
    "response",
    [
        requests.ConnectionError("offline"),
        MockResponse(500),
        MockResponse(text="<html>maintenance</html>"),
        MockResponse(text=json.dumps({"error": "bad key"})),
    ],
)
def test_catalog_failure_fails_whole_call(response):
    components = [LocalComponent(name="Foo", version="1.0.0")]
    url = ModuleDirectoryClient(MockSession(), CONFIG).bulk_url(["Foo"])
    session = MockSession(get={url: response})
    reconciler = VersionReconciler(StaticSnapshot(components), ModuleDirectoryClient(session, CONFIG))

    with pytest.raises(CatalogUnavailableError):
        reconciler.reconcile()


def test_reconcile_one_adds_download_url():
    components = [LocalComponent(name="TracyDebugger", version="4.20.0")]
    client = ModuleDirectoryClient(MockSession(), CONFIG)
    payload = {
        "status": "success",
        "module_version": "4.23.0",
        "project_url": "https://github.com/adrianbj/TracyDebugger/",
    }
    session = MockSession(get={client.item_url("TracyDebugger"): MockResponse(text=json.dumps(payload))})
    reconciler = VersionReconciler(StaticSnapshot(components), ModuleDirectoryClient(session, CONFIG))

    record = reconciler.reconcile_one("TracyDebugger")

    assert record.is_newer == 1
    assert record.download_url == "https://github.com/adrianbj/TracyDebugger/archive/master.zip"


def test_reconcile_one_for_module_not_installed():
    client = ModuleDirectoryClient(MockSession(), CONFIG)
    payload = {"status": "success", "module_version": "1.0.0"}
    session = MockSession(get={client.item_url("NewModule"): MockResponse(text=json.dumps(payload))})
    reconciler = VersionReconciler(StaticSnapshot([]), ModuleDirectoryClient(session, CONFIG))

    record = reconciler.reconcile_one("NewModule")

    assert record.local_version is None
    assert record.remote_version == v("1.0.0")
    assert record.download_url is None
    assert reconciler.reconcile_one("NewModule", only_new=True) is None


def test_reconcile_one_service_error():
    client = ModuleDirectoryClient(MockSession(), CONFIG)
    payload = {"status": "error", "error": "Unknown module"}
    session = MockSession(get={client.item_url("Nope"): MockResponse(text=json.dumps(payload))})
    reconciler = VersionReconciler(StaticSnapshot([]), ModuleDirectoryClient(session, CONFIG))

    with pytest.raises(CatalogUnavailableError, match="Error reported by web service: Unknown module"):
        reconciler.reconcile_one("Nope")


@pytest.mark.parametrize("local,remote", [(5, "5"), ("5", 5), (130, "130")])
def test_int_and_string_versions_of_same_value_are_equal(local, remote):
    """Host ints and catalog strings for the same release never look newer."""
    components = [LocalComponent(name="Foo", version=local)]
    reconciler, _ = make_reconciler(components, [{"class_name": "Foo", "module_version": remote}])

    assert reconciler.reconcile(only_new=True) == {}
    assert reconciler.reconcile()["Foo"].is_newer == 0
