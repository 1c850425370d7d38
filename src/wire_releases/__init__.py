"""wire-releases - Release acquisition and module version reconciliation.

Public API exports.

This is library mechanism: apps inject policy (configuration, HTTP session,
installed-state snapshot, progress rendering).
"""

from .catalog import BranchCatalog
from .config import AcquisitionConfig
from .exceptions import AcquisitionError
from .exceptions import CatalogUnavailableError
from .exceptions import CorruptedArchiveError
from .exceptions import DestinationNotEmptyError
from .exceptions import DownloadError
from .exceptions import EmptyArchiveError
from .exceptions import ExtractionError
from .exceptions import ExtractionFailedError
from .exceptions import ExtractionPermissionError
from .exceptions import NetworkError
from .exceptions import NotFoundError
from .exceptions import ResolutionError
from .extractor import ArchiveExtractor
from .fetcher import ArchiveFetcher
from .fetcher import StagingArea
from .http import build_session
from .installer import AcquisitionPipeline
from .installer import AcquisitionResult
from .installer import PipelineState
from .probe import VersionProbe
from .probe import parse_version
from .protocols import LocalSnapshotProvider
from .protocols import ProgressCallback
from .reconciler import ModuleDirectoryClient
from .reconciler import VersionReconciler
from .resolver import ArchiveResolver
from .resolver import choose_preferred
from .resolver import preferred_archive_url
from .schema import ArchiveFormat
from .schema import ArchiveHandle
from .schema import BranchInfo
from .schema import LocalComponent
from .schema import ModuleVersionRecord
from .schema import ReleaseKind
from .schema import ReleaseRef
from .schema import RemoteModuleInfo
from .schema import UpgradeCheck
from .schema import VersionRequirement
from .schema import VersionTriple
from .schema import compare_versions
from .utils import best_effort
from .utils import find_installation_root

__all__ = [
    # Configuration
    "AcquisitionConfig",
    "build_session",
    # Data model
    "ArchiveFormat",
    "ArchiveHandle",
    "BranchInfo",
    "LocalComponent",
    "ModuleVersionRecord",
    "ReleaseKind",
    "ReleaseRef",
    "RemoteModuleInfo",
    "UpgradeCheck",
    "VersionRequirement",
    "VersionTriple",
    "compare_versions",
    # Release catalog
    "VersionProbe",
    "parse_version",
    "BranchCatalog",
    # Acquisition
    "ArchiveResolver",
    "choose_preferred",
    "preferred_archive_url",
    "ArchiveFetcher",
    "StagingArea",
    "ArchiveExtractor",
    "AcquisitionPipeline",
    "AcquisitionResult",
    "PipelineState",
    # Reconciliation
    "ModuleDirectoryClient",
    "VersionReconciler",
    # Protocols
    "LocalSnapshotProvider",
    "ProgressCallback",
    # Exceptions
    "AcquisitionError",
    "CatalogUnavailableError",
    "CorruptedArchiveError",
    "DestinationNotEmptyError",
    "DownloadError",
    "EmptyArchiveError",
    "ExtractionError",
    "ExtractionFailedError",
    "ExtractionPermissionError",
    "NetworkError",
    "NotFoundError",
    "ResolutionError",
    # Utilities
    "best_effort",
    "find_installation_root",
]

__version__ = "0.1.0"
