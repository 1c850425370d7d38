"""Archive download into an exclusive staging area.

The fetcher creates a fresh, randomly named staging directory per acquisition
attempt and streams the archive body into it. Removing the staging area is the
caller's job (the pipeline does it on every exit path).
"""

import logging
import shutil
import tempfile
from pathlib import Path

import requests

from .config import AcquisitionConfig
from .exceptions import DownloadError
from .exceptions import NotFoundError
from .protocols import HttpSession
from .protocols import ProgressCallback
from .schema import ArchiveFormat
from .schema import ArchiveHandle
from .utils import format_size

logger = logging.getLogger(__name__)


class StagingArea:
    """A temporary directory owned by exactly one acquisition attempt."""

    def __init__(self, path: Path):
        self.path = path

    @classmethod
    def create(cls, root: Path | None = None, prefix: str = ".staging-") -> "StagingArea":
        if root is not None:
            root.mkdir(parents=True, exist_ok=True)
        path = Path(tempfile.mkdtemp(prefix=prefix, dir=root))
        logger.debug(f"Created staging area {path}")
        return cls(path)

    def exists(self) -> bool:
        return self.path.exists()

    def destroy(self) -> None:
        """Remove the staging directory and everything in it."""
        if self.path.exists():
            shutil.rmtree(self.path)
            logger.debug(f"Removed staging area {self.path}")

    def __repr__(self) -> str:
        return f"StagingArea({self.path})"


def _content_length(response) -> int | None:
    value = response.headers.get("Content-Length")
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


class ArchiveFetcher:
    """Streams release archives over HTTP (with injected session and config)."""

    def __init__(self, session: HttpSession, config: AcquisitionConfig):
        self.session = session
        self.config = config

    def open_staging(self) -> StagingArea:
        return StagingArea.create(self.config.staging_root)

    def archive_format(self, url: str, response) -> ArchiveFormat:
        """Format from the requested URL, the final URL, then Content-Type; zip otherwise."""
        return (
            ArchiveFormat.from_name(url)
            or ArchiveFormat.from_name(getattr(response, "url", None) or "")
            or ArchiveFormat.from_content_type(response.headers.get("Content-Type"))
            or ArchiveFormat.ZIP
        )

    def fetch(
        self,
        url: str,
        staging: StagingArea,
        identifier: str,
        progress: ProgressCallback | None = None,
    ) -> ArchiveHandle:
        """
        Download an archive into the staging area.

        Redirects are followed by the session; only the final response body is
        counted, so progress is never reported for a 3xx response. The body
        transfer has no timeout.

        Args:
            url: Archive URL
            staging: Staging area from open_staging()
            identifier: Release identifier, used in error messages
            progress: Optional callback receiving (total_bytes, downloaded_bytes)

        Returns:
            ArchiveHandle pointing at the downloaded file

        Raises:
            NotFoundError: On HTTP 403/404
            DownloadError: On any other HTTP or transport failure
        """
        logger.info(f"Downloading {identifier} from {url}")
        try:
            response = self.session.get(url, stream=True, timeout=None)
        except requests.RequestException as e:
            raise DownloadError(identifier, e) from e

        try:
            status = response.status_code
            if status in (403, 404):
                raise NotFoundError(identifier, url)
            if not 200 <= status < 300:
                raise DownloadError(identifier, f"HTTP {status} for {url}")

            archive_format = self.archive_format(url, response)
            path = staging.path / f"{self.config.archive_basename}.{archive_format.extension}"
            total = _content_length(response)
            downloaded = 0

            with open(path, "wb") as f:
                for chunk in response.iter_content(chunk_size=self.config.chunk_size):
                    if not chunk:
                        continue
                    f.write(chunk)
                    downloaded += len(chunk)
                    if progress is not None:
                        progress(total, downloaded)

        except (requests.RequestException, OSError) as e:
            raise DownloadError(identifier, e) from e
        finally:
            response.close()

        logger.debug(f"Downloaded {format_size(downloaded)} to {path}")
        return ArchiveHandle(source_path=path, format=archive_format)
