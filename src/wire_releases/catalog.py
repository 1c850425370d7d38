"""Release branch catalog.

Lists the upstream release branches, annotates each with its version and
archive URL, and decides whether the installed core can be upgraded.
"""

import logging

from .config import AcquisitionConfig
from .exceptions import NetworkError
from .http import get_json
from .probe import VersionProbe
from .protocols import HttpSession
from .resolver import preferred_archive_url
from .schema import BranchInfo
from .schema import ReleaseKind
from .schema import ReleaseRef
from .schema import UpgradeCheck
from .schema import VersionTriple
from .schema import compare_versions

logger = logging.getLogger(__name__)

SHA_KEY = "sha"
_PROBE = object()


class BranchCatalog:
    """Release branches of the upstream repository (with injected session and config)."""

    def __init__(self, session: HttpSession, config: AcquisitionConfig, probe: VersionProbe | None = None):
        self.session = session
        self.config = config
        self.probe = probe or VersionProbe(session, config)

    def branch_info(self, name: str, *, is_commit: bool = False, version: object = _PROBE) -> BranchInfo:
        """Build the BranchInfo for a branch or commit.

        The version is probed quietly unless one is passed in.
        """
        if is_commit:
            title = "Specific commit sha"
        elif name == self.config.default_branch:
            title = "Stable/Master"
        else:
            title = name[:1].upper() + name[1:]

        return BranchInfo(
            name=name,
            title=title,
            zip_url=preferred_archive_url(self.config, name),
            version_url=self.config.branch_url(self.config.version_url, name),
            version=self.probe.probe_quietly(name) if version is _PROBE else version,
        )

    def branch_names(self) -> list[str]:
        """Names from the branch listing endpoint.

        Raises:
            NetworkError: If the listing is unreachable or malformed
        """
        data = get_json(
            self.session,
            self.config.branches_url,
            timeout=self.config.lookup_timeout,
            context="release branches",
        )
        if not isinstance(data, list):
            raise NetworkError(
                f"Unexpected branch listing from {self.config.branches_url}",
                context={"url": self.config.branches_url},
            )

        names = []
        for entry in data:
            if isinstance(entry, dict) and entry.get("name"):
                names.append(str(entry["name"]))
        return names

    def list_branches(self, target: ReleaseRef | None = None) -> dict[str, BranchInfo]:
        """
        Known branches keyed by name, plus a "sha" entry for non-branch targets.

        Args:
            target: Requested release; defaults to the default branch

        Returns:
            Mapping that always contains the default branch

        Raises:
            NetworkError: If the listing fails, lacks the default branch, or a
                commit target's descriptor cannot be fetched
        """
        target = target or ReleaseRef.branch(self.config.default_branch)
        names = self.branch_names()
        logger.debug(f"Found {len(names)} release branches")

        if self.config.default_branch not in names:
            raise NetworkError(
                f"Branch listing from {self.config.branches_url} does not include '{self.config.default_branch}'",
                context={"url": self.config.branches_url, "branches": names},
            )

        branches = {name: self.branch_info(name) for name in names}

        if target.identifier not in branches:
            # Not a branch, assume a commit hash; it must be reachable
            version = self.probe.probe(target.identifier)
            branches[SHA_KEY] = self.branch_info(target.identifier, is_commit=True, version=version)
            logger.debug(f"Treating '{target.identifier}' as a commit hash")

        return branches

    def check_for_upgrade(self, target: ReleaseRef | None, installed_version: VersionTriple | None) -> UpgradeCheck:
        """
        Decide whether the target release is an upgrade over the installed core.

        The comparison target is always the release that would be installed:
        the requested branch itself, or the "sha" entry for a commit, which is
        always reported as an upgrade because it was requested explicitly.

        Raises:
            NetworkError: Propagated from list_branches()
        """
        target = target or ReleaseRef.branch(self.config.default_branch)
        branches = self.list_branches(target)

        if target.identifier not in branches or target.kind == ReleaseKind.COMMIT_SHA:
            branch = branches.get(SHA_KEY) or branches[target.identifier]
            result = UpgradeCheck(upgrade=True, branch=branch, installed_version=installed_version)
        else:
            branch = branches[target.identifier]
            comparison = compare_versions(branch.version, installed_version)
            result = UpgradeCheck(
                upgrade=bool(comparison and comparison > 0),
                branch=branch,
                installed_version=installed_version,
                determinable=comparison is not None,
            )

        if result.upgrade:
            logger.info(f"A core upgrade is available: {branch.label}")
        elif result.determinable:
            logger.info(f"Core is up-to-date: {branch.label}")
        else:
            logger.warning(f"Cannot determine whether {branch.label} is newer than the installed core")
        return result
