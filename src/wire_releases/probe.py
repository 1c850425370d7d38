"""Remote version descriptor probing.

The release's core source file declares its version as three integer constants
(versionMajor, versionMinor, versionRevision). Content that lacks any of them
yields an unknown version rather than an error.
"""

import logging
import re

from .config import AcquisitionConfig
from .exceptions import NetworkError
from .http import get_text
from .protocols import HttpSession
from .schema import VersionTriple

logger = logging.getLogger(__name__)

_VERSION_CONSTANT = re.compile(r"const\s+version(Major|Minor|Revision)\s*=\s*(\d+)")


def parse_version(content: str) -> VersionTriple | None:
    """Extract the version triple from descriptor source text.

    Returns:
        VersionTriple, or None if any of the three constants is missing
    """
    found: dict[str, int] = {}
    for label, value in _VERSION_CONSTANT.findall(content or ""):
        found.setdefault(label, int(value))

    if len(found) < 3:
        return None
    return VersionTriple(major=found["Major"], minor=found["Minor"], revision=found["Revision"])


class VersionProbe:
    """Fetches and parses version descriptors for branches or commits."""

    def __init__(self, session: HttpSession, config: AcquisitionConfig):
        self.session = session
        self.config = config

    def descriptor_url(self, identifier: str) -> str:
        return self.config.branch_url(self.config.version_url, identifier)

    def parse(self, content: str) -> VersionTriple | None:
        return parse_version(content)

    def probe(self, identifier: str | None = None, content: str | None = None) -> VersionTriple | None:
        """
        Version of a branch or commit.

        Args:
            identifier: Branch or commit to fetch; defaults to the default branch
            content: Already fetched descriptor text, skips the network call

        Raises:
            NetworkError: If the descriptor cannot be fetched
        """
        if content is None:
            url = self.descriptor_url(identifier or self.config.default_branch)
            content = get_text(self.session, url, timeout=self.config.lookup_timeout, context="version descriptor")

        version = parse_version(content)
        if version is None:
            logger.warning(f"No version constants found for '{identifier or self.config.default_branch}'")
        return version

    def probe_quietly(self, identifier: str) -> VersionTriple | None:
        """Like probe(), but an unreachable descriptor also means unknown."""
        try:
            return self.probe(identifier)
        except NetworkError as e:
            logger.warning(f"Could not determine version of '{identifier}': {e.message}")
            return None
