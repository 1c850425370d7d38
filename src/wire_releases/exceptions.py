"""Acquisition and reconciliation exceptions.

Every failure surfaced to callers is one of the kinds below. Each kind carries
a remediation hint so apps can render a useful message instead of a traceback.
"""


class AcquisitionError(Exception):
    """Base exception for acquisition and reconciliation operations."""

    remediation = ""

    def __init__(self, message: str, context: dict | None = None):
        """Initialize with message and optional context.

        Args:
            message: Human-readable error message
            context: Optional dict with additional context (identifiers, paths, etc.)
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def render(self) -> str:
        """Message followed by the remediation hint, if any."""
        if not self.remediation:
            return self.message
        return f"{self.message}\n{self.remediation}"


class NetworkError(AcquisitionError):
    """Release listing or version descriptor unreachable."""

    remediation = "Check your network connection and that the release endpoints are reachable."


class ResolutionError(AcquisitionError):
    """Target identifier does not resolve to a downloadable archive."""

    remediation = 'Try another branch or commit, or the special "latest" version.'

    def __init__(
        self,
        identifier: str,
        status_code: int | None = None,
        transport_error: str = "",
        message: str | None = None,
    ):
        if message is None:
            message = f"Error loading `{identifier}` (status code: {status_code})."
            if transport_error:
                message += f"\nTransport error: {transport_error}"
        super().__init__(
            message,
            context={"identifier": identifier, "status_code": status_code, "transport_error": transport_error},
        )
        self.identifier = identifier
        self.status_code = status_code
        self.transport_error = transport_error


class NotFoundError(AcquisitionError):
    """Archive download answered 403 or 404."""

    remediation = 'Try the special "latest" version to install the latest stable release.'

    def __init__(self, identifier: str, url: str = ""):
        super().__init__(
            f"The selected version ({identifier}) cannot be installed because it does not exist.",
            context={"identifier": identifier, "url": url},
        )
        self.identifier = identifier


class DownloadError(AcquisitionError):
    """Archive download failed for any other HTTP or transport reason."""

    remediation = "Re-run the command; if the problem persists choose another version."

    def __init__(self, identifier: str, cause: object):
        super().__init__(
            f"The selected version ({identifier}) couldn't be downloaded because of the following error:\n{cause}",
            context={"identifier": identifier, "cause": str(cause)},
        )
        self.identifier = identifier
        self.cause = cause


class ExtractionError(AcquisitionError):
    """Base for extraction-stage failures."""


class CorruptedArchiveError(ExtractionError):
    """Archive is unreadable or fails integrity checks."""

    remediation = "The downloaded package is corrupted. Try downloading it again."


class EmptyArchiveError(ExtractionError):
    """Archive is zero bytes or has no members."""

    remediation = "The package is empty. Check the source and try downloading it again."


class ExtractionPermissionError(ExtractionError):
    """Destination directory is not writable."""

    def __init__(self, destination: object):
        super().__init__(
            f"The installer doesn't have enough permissions to uncompress the package into {destination}.",
            context={"destination": str(destination)},
        )
        self.destination = destination

    @property
    def remediation(self) -> str:  # type: ignore[override]
        return f"Check the permissions of the {self.destination} directory and try again."


class ExtractionFailedError(ExtractionError):
    """Extraction could not complete (tooling or environment problem)."""

    remediation = "Check that the archive format is supported on this system and try again."


class CatalogUnavailableError(AcquisitionError):
    """Module catalog could not be queried."""

    remediation = "Check the module service URL and API key, then try again."


class DestinationNotEmptyError(AcquisitionError):
    """Destination already holds a project."""

    remediation = "Change your project name or create it in another directory."
