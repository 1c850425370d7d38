"""Archive resolver - Turn a release ref into a download URL.

Resolution itself is pure templating. The mandatory pre-flight request checks
that the release exists before any bandwidth is spent on the archive.
"""

import logging

import requests

from .config import AcquisitionConfig
from .exceptions import ResolutionError
from .protocols import HttpSession
from .schema import ArchiveFormat
from .schema import ReleaseRef

logger = logging.getLogger(__name__)


def choose_preferred(urls: list[str], identifier: str = "") -> str:
    """Pick the smallest archive format among equivalent downloads.

    Formats rank tar.gz < zip < tar; URLs without a recognised archive
    extension are ignored.

    Raises:
        ResolutionError: If no URL names a supported archive
    """
    candidates = []
    for url in urls:
        archive_format = ArchiveFormat.from_name(url)
        if archive_format is not None:
            candidates.append((archive_format, url))

    if not candidates:
        raise ResolutionError(
            identifier or ", ".join(urls),
            message=f"No supported archive among: {', '.join(urls) or '(none)'}",
        )
    candidates.sort(key=lambda item: item[0].size_rank)
    return candidates[0][1]


def preferred_archive_url(config: AcquisitionConfig, identifier: str) -> str:
    """Template every configured archive URL and keep the smallest format.

    A single template is used as-is, even without a recognised extension.
    """
    urls = [config.branch_url(template, identifier) for template in config.archive_urls]
    if len(urls) == 1:
        return urls[0]
    return choose_preferred(urls, identifier)


class ArchiveResolver:
    """
    Resolve release refs to archive URLs (with injected session and config).

    Example:
        >>> resolver = ArchiveResolver(session, AcquisitionConfig())
        >>> download_url, check_url = resolver.resolve(ReleaseRef.branch("dev"))
        >>> resolver.preflight(ReleaseRef.branch("dev"), check_url)
    """

    def __init__(self, session: HttpSession, config: AcquisitionConfig):
        self.session = session
        self.config = config

    def resolve(self, target: ReleaseRef) -> tuple[str, str]:
        """
        Template the download and check URLs for a target.

        When several archive formats are configured the smallest one wins.

        Returns:
            (download_url, check_url)
        """
        download_url = preferred_archive_url(self.config, target.identifier)
        check_url = self.config.branch_url(self.config.version_url, target.identifier)
        return download_url, check_url

    def preflight(self, target: ReleaseRef, check_url: str) -> None:
        """
        HEAD the check URL; anything but 200 means the target is unusable.

        Raises:
            ResolutionError: On non-200 status or transport failure
        """
        logger.debug(f"Pre-flight check for '{target.identifier}': {check_url}")
        try:
            response = self.session.head(check_url, allow_redirects=True, timeout=self.config.lookup_timeout)
        except requests.RequestException as e:
            raise ResolutionError(target.identifier, status_code=None, transport_error=str(e)) from e

        if response.status_code != 200:
            raise ResolutionError(
                target.identifier,
                status_code=response.status_code,
                message=(
                    f"Error loading `{target.identifier}`, request failed "
                    f"(status code: {response.status_code}, url: {check_url})."
                ),
            )

    def resolve_checked(self, target: ReleaseRef) -> str:
        """Resolve and pre-flight a target, returning the download URL."""
        download_url, check_url = self.resolve(target)
        self.preflight(target, check_url)
        logger.debug(f"Resolved '{target.identifier}' to {download_url}")
        return download_url
