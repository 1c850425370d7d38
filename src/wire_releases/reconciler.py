"""Module version reconciliation against the remote module catalog.

Compares installed (non-core) modules with the catalog and reports which ones
have newer releases. The installed snapshot is injected; a catalog outage fails
the whole call rather than individual records.
"""

import logging
import re
from urllib.parse import urlencode

from pydantic import ValidationError

from .config import AcquisitionConfig
from .exceptions import CatalogUnavailableError
from .http import get_json
from .protocols import HttpSession
from .protocols import LocalSnapshotProvider
from .schema import LocalComponent
from .schema import ModuleVersionRecord
from .schema import RemoteModuleInfo
from .schema import compare_versions

logger = logging.getLogger(__name__)

_CATALOG_FIELDS = "module_version,version,requires_versions"
_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9_.\-]")


class ModuleDirectoryClient:
    """Client for the module catalog web service (with injected session and config)."""

    def __init__(self, session: HttpSession, config: AcquisitionConfig):
        self.session = session
        self.config = config

    def bulk_url(self, names: list[str]) -> str:
        query = urlencode(
            {
                "apikey": self.config.module_service_key,
                "limit": self.config.module_service_limit,
                "field": _CATALOG_FIELDS,
                "class_name": ",".join(names),
            },
            safe=",",
        )
        return f"{self.config.module_service_url}?{query}"

    def item_url(self, name: str) -> str:
        key = _UNSAFE_KEY_CHARS.sub("", self.config.module_service_key)
        return f"{self.config.module_service_url.rstrip('/')}/{name}/?apikey={key}"

    def fetch_many(self, names: list[str]) -> dict[str, RemoteModuleInfo]:
        """
        Catalog entries for several modules in one request.

        Modules the catalog doesn't know are simply absent from the result.

        Raises:
            CatalogUnavailableError: If the request fails or the payload has no items list
        """
        url = self.bulk_url(names)
        data = get_json(
            self.session,
            url,
            timeout=self.config.lookup_timeout,
            context="modules directory data",
            error_cls=CatalogUnavailableError,
        )
        if not isinstance(data, dict) or not isinstance(data.get("items"), list):
            raise CatalogUnavailableError("Error retrieving modules directory data", context={"url": url})

        entries = {}
        for item in data["items"]:
            if not isinstance(item, dict) or not item.get("class_name"):
                continue
            try:
                info = RemoteModuleInfo(
                    name=item["class_name"],
                    module_version=item.get("module_version"),
                    required_versions=item.get("requires_versions"),
                    project_url=item.get("project_url"),
                )
            except ValidationError as e:
                logger.warning(f"Ignoring malformed catalog entry for {item['class_name']}: {e}")
                continue
            entries[info.name] = info
        return entries

    def fetch_one(self, name: str) -> RemoteModuleInfo:
        """
        Catalog entry for one module from the per-item endpoint.

        Raises:
            CatalogUnavailableError: If the request fails or the service reports an error
        """
        url = self.item_url(name)
        data = get_json(
            self.session,
            url,
            timeout=self.config.lookup_timeout,
            context="module data",
            error_cls=CatalogUnavailableError,
        )
        if not isinstance(data, dict) or not data:
            raise CatalogUnavailableError("Error retrieving data from web service URL", context={"url": url})

        if data.get("status") != "success":
            raise CatalogUnavailableError(
                f"Error reported by web service: {data.get('error') or 'unknown error'}",
                context={"url": url, "module": name},
            )

        try:
            return RemoteModuleInfo(
                name=name,
                module_version=data.get("module_version"),
                required_versions=data.get("requires_versions"),
                project_url=data.get("project_url"),
            )
        except ValidationError as e:
            raise CatalogUnavailableError(f"Malformed catalog data for {name}: {e}", context={"url": url}) from e


class VersionReconciler:
    """
    Compare installed modules with the catalog.

    Example:
        >>> reconciler = VersionReconciler(snapshot, ModuleDirectoryClient(session, config))
        >>> for name, record in reconciler.reconcile(only_new=True).items():
        ...     print(name, record.local_version, "->", record.remote_version)
    """

    def __init__(self, snapshot: LocalSnapshotProvider, client: ModuleDirectoryClient):
        self.snapshot = snapshot
        self.client = client

    def reconcile(
        self,
        only_new: bool = False,
        local: list[LocalComponent] | None = None,
    ) -> dict[str, ModuleVersionRecord]:
        """
        Version report for all installed non-core modules.

        Args:
            only_new: Only keep modules with a newer catalog release
            local: Components to check; defaults to the snapshot's components

        Returns:
            Records keyed by module name

        Raises:
            CatalogUnavailableError: If the catalog cannot be queried
        """
        components = local if local is not None else self.snapshot.installed_components()
        components = [component for component in components if not component.core]
        if not components:
            return {}

        remote = self.client.fetch_many([component.name for component in components])
        logger.debug(f"Catalog knows {len(remote)} of {len(components)} modules")

        records = {}
        for component in components:
            record = _build_record(component, remote.get(component.name), only_new)
            if record is not None:
                records[component.name] = record
        return records

    def reconcile_one(self, name: str, only_new: bool = False) -> ModuleVersionRecord | None:
        """
        Version report for a single module, including its download URL.

        Returns:
            The record, or None when only_new filtered it out

        Raises:
            CatalogUnavailableError: If the catalog cannot be queried
        """
        component = next(
            (c for c in self.snapshot.installed_components() if c.name == name),
            LocalComponent(name=name),
        )
        remote = self.client.fetch_one(name)
        download_url = f"{remote.project_url.rstrip('/')}/archive/master.zip" if remote.project_url else None
        return _build_record(component, remote, only_new, download_url=download_url)


def _build_record(
    component: LocalComponent,
    remote: RemoteModuleInfo | None,
    only_new: bool,
    download_url: str | None = None,
) -> ModuleVersionRecord | None:
    remote_version = remote.module_version if remote is not None else None
    comparison = compare_versions(remote_version, component.version)

    if comparison is None or comparison <= 0:
        # Up to date, ahead of the catalog, or undeterminable
        if only_new:
            return None
        requirements = component.required_versions
    else:
        requirements = remote.required_versions

    return ModuleVersionRecord(
        name=component.name,
        title=component.title,
        local_version=component.version,
        remote_version=remote_version,
        is_newer=comparison or 0,
        required_versions=requirements,
        download_url=download_url,
    )
