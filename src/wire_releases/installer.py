"""Acquisition pipeline - resolve, fetch, extract, clean up.

The pipeline is a small state machine. Every run owns one staging area, which
is removed on every exit path; cosmetic project cleanup is best effort and
never changes the outcome.

Idempotency: a destination that already carries the installed marker is left
alone without any network activity.
"""

import logging
from dataclasses import dataclass
from dataclasses import field
from datetime import datetime
from enum import Enum
from pathlib import Path

from .config import AcquisitionConfig
from .exceptions import AcquisitionError
from .exceptions import DestinationNotEmptyError
from .exceptions import ExtractionFailedError
from .exceptions import ResolutionError
from .extractor import ArchiveExtractor
from .fetcher import ArchiveFetcher
from .fetcher import StagingArea
from .http import build_session
from .protocols import HttpSession
from .protocols import ProgressCallback
from .resolver import ArchiveResolver
from .schema import ArchiveHandle
from .schema import ReleaseRef
from .utils import best_effort
from .utils import find_installation_root
from .utils import is_empty_directory
from .utils import mirror_directory
from .utils import remove_path

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    START = "start"
    CHECK_PREEXISTING = "check_preexisting"
    RESOLVED = "resolved"
    ALREADY_PRESENT = "already_present"
    DOWNLOADING = "downloading"
    DOWNLOADED = "downloaded"
    EXTRACTING = "extracting"
    EXTRACTED = "extracted"
    CLEANING_UP = "cleaning_up"
    DONE = "done"
    FAILED = "failed"


@dataclass
class AcquisitionResult:
    """Outcome of one pipeline run."""

    destination: Path
    state: PipelineState = PipelineState.START
    history: list[PipelineState] = field(default_factory=lambda: [PipelineState.START])
    handle: ArchiveHandle | None = None
    skipped: bool = False

    def advance(self, state: PipelineState) -> None:
        logger.debug(f"{self.destination}: {self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)


def _readme_contents(project_name: str, now: datetime) -> str:
    hour = now.hour % 12 or 12
    created = f"{now:%B} {now.day}, {now.year}, {hour}:{now:%M} {now:%p}".replace("AM", "am").replace("PM", "pm")
    return f"{project_name}\n{'=' * len(project_name)}\n\nA ProcessWire project created on {created}.\n"


class AcquisitionPipeline:
    """
    Orchestrates ArchiveResolver -> ArchiveFetcher -> ArchiveExtractor.

    Apps provide the collaborators (or use from_config()) and decide where to
    install; retrying with another identifier is the caller's decision.

    Example:
        >>> pipeline = AcquisitionPipeline.from_config(AcquisitionConfig())
        >>> result = pipeline.acquire(Path("my-site"), target=ReleaseRef.branch("master"))
        >>> result.state
        <PipelineState.DONE: 'done'>
    """

    def __init__(
        self,
        resolver: ArchiveResolver,
        fetcher: ArchiveFetcher,
        extractor: ArchiveExtractor | None = None,
        config: AcquisitionConfig | None = None,
    ):
        self.resolver = resolver
        self.fetcher = fetcher
        self.extractor = extractor or ArchiveExtractor()
        self.config = config or fetcher.config

    @classmethod
    def from_config(cls, config: AcquisitionConfig, session: HttpSession | None = None) -> "AcquisitionPipeline":
        """Build a pipeline with default collaborators sharing one session."""
        session = session or build_session(config)
        return cls(
            resolver=ArchiveResolver(session, config),
            fetcher=ArchiveFetcher(session, config),
            extractor=ArchiveExtractor(),
            config=config,
        )

    def is_installed(self, destination: Path) -> bool:
        return (destination / self.config.installed_marker).exists()

    def acquire(
        self,
        destination: Path,
        target: ReleaseRef | None = None,
        source: Path | None = None,
        progress: ProgressCallback | None = None,
        project_name: str | None = None,
    ) -> AcquisitionResult:
        """
        Populate destination with a release.

        Args:
            destination: Project directory to populate
            target: Release to download; defaults to the default branch
            source: Pre-downloaded directory, zip or tar archive used instead of a download
            progress: Optional download progress callback
            project_name: Name for the generated README; defaults to the directory name

        Returns:
            AcquisitionResult with the final state and the visited states

        Raises:
            ResolutionError, NotFoundError, DownloadError, DestinationNotEmptyError,
            or any ExtractionError subclass, after the staging area is removed;
            the error's context carries the visited states under "history"
        """
        result = AcquisitionResult(destination=destination)
        staging: StagingArea | None = None

        try:
            result.advance(PipelineState.CHECK_PREEXISTING)
            if self.is_installed(destination):
                logger.info(f"Release already present in {destination}, skipping download")
                result.skipped = True
                result.advance(PipelineState.DONE)
                return result

            if source is not None:
                result.handle = self._classify_source(source, destination)
                if result.handle is None:
                    result.advance(PipelineState.ALREADY_PRESENT)
            else:
                target = target or ReleaseRef.branch(self.config.default_branch)
                self._check_destination(destination)
                url = self.resolver.resolve_checked(target)
                result.advance(PipelineState.RESOLVED)

                staging = self.fetcher.open_staging()
                result.advance(PipelineState.DOWNLOADING)
                result.handle = self.fetcher.fetch(url, staging, target.identifier, progress)
                result.advance(PipelineState.DOWNLOADED)

            if result.handle is not None:
                result.advance(PipelineState.EXTRACTING)
                self.extractor.extract(result.handle, destination, strip_root_dir=True)
                result.advance(PipelineState.EXTRACTED)

            result.advance(PipelineState.CLEANING_UP)
            if staging is not None:
                staging.destroy()
            self._tidy_project(destination, project_name or destination.name)
            result.advance(PipelineState.DONE)
            logger.info(f"Release acquired into {destination}")
            return result

        except Exception as e:
            logger.error(f"Acquisition into {destination} failed: {e}")
            if result.state != PipelineState.CLEANING_UP:
                result.advance(PipelineState.CLEANING_UP)
            if staging is not None:
                best_effort(staging.destroy, f"remove staging area {staging.path}")
            result.advance(PipelineState.FAILED)
            if isinstance(e, AcquisitionError):
                e.context.setdefault("history", list(result.history))
            raise

    def _classify_source(self, source: Path, destination: Path) -> ArchiveHandle | None:
        """Mirror a source directory, or return a handle for a source archive."""
        if source.is_dir():
            logger.info(f"Copying pre-extracted source {source} to {destination}")
            mirror_directory(source, destination)
            return None

        if source.is_file():
            handle = ArchiveHandle.for_path(source)
            if handle is not None:
                logger.info(f"Using pre-downloaded archive {source}")
                return handle

        raise ResolutionError(
            str(source),
            message=f"Source {source} is not a directory, zip or tar archive.",
        )

    def _check_destination(self, destination: Path) -> None:
        if destination.exists() and (not destination.is_dir() or not is_empty_directory(destination)):
            raise DestinationNotEmptyError(
                f"There is already a '{destination.name}' project in this directory ({destination}).",
                context={"destination": str(destination)},
            )

    def _tidy_project(self, destination: Path, project_name: str) -> None:
        """Drop upstream-only files and write the project README (best effort)."""
        for pattern in self.config.extraneous_patterns:
            for path in destination.glob(pattern):
                best_effort(lambda path=path: remove_path(path), f"remove {path}")

        readme = destination / self.config.readme_name
        best_effort(
            lambda: readme.write_text(_readme_contents(project_name, datetime.now())),
            f"write {readme}",
        )

    def acquire_profile(self, profile: str | None, destination: Path) -> str | None:
        """
        Install a site profile archive into the project.

        Non-zip profile names (built-in profiles) are returned unchanged.

        Returns:
            Name of the profile's top-level directory (e.g. "site-blog")

        Raises:
            Any ExtractionError subclass
        """
        if not profile or not profile.lower().endswith(".zip"):
            return profile

        handle = ArchiveHandle.for_path(Path(profile).expanduser())
        staging = self.fetcher.open_staging()
        logger.info(f"Extracting profile {profile}")

        try:
            extract_path = staging.path / "profile"
            self.extractor.extract(handle, extract_path, strip_root_dir=True)
            site_dirs = sorted(p.name for p in extract_path.iterdir() if p.is_dir())
            try:
                mirror_directory(extract_path, destination)
            except OSError as e:
                raise ExtractionFailedError(
                    f"Could not copy profile into {destination}: {e}",
                    context={"destination": str(destination)},
                ) from e
        except Exception:
            best_effort(staging.destroy, f"remove staging area {staging.path}")
            raise

        staging.destroy()
        return site_dirs[0] if site_dirs else None

    def acquire_module(
        self,
        name: str,
        url: str,
        project_root: Path | None = None,
        progress: ProgressCallback | None = None,
    ) -> Path:
        """
        Download a module archive into the project's modules directory.

        Args:
            name: Module class name; becomes the directory name
            url: Archive URL (e.g. ModuleVersionRecord.download_url)
            project_root: Installation root; searched upward from the cwd if omitted

        Returns:
            Path of the installed module directory

        Raises:
            ResolutionError: If no installation root can be found
            NotFoundError, DownloadError, or any ExtractionError subclass
        """
        if project_root is None:
            project_root = find_installation_root(
                Path.cwd(), self.config.installation_root_marker, self.config.max_root_ascent
            )
            if project_root is None:
                raise ResolutionError(name, message="No installation found.")

        module_dir = project_root / self.config.modules_dir / name
        staging = self.fetcher.open_staging()

        try:
            handle = self.fetcher.fetch(url, staging, name, progress)
            self.extractor.extract(handle, module_dir, strip_root_dir=True)
            if module_dir.is_dir():
                module_dir.chmod(self.config.module_dir_mode)
        except Exception:
            best_effort(staging.destroy, f"remove staging area {staging.path}")
            raise

        staging.destroy()
        logger.info(f"Module {name} downloaded successfully")
        return module_dir
