"""Protocols for collaborators injected by the hosting app.

The library never reaches into the host runtime or the console: apps hand in
objects implementing these interfaces.
"""

from typing import Any
from typing import Protocol
from typing import runtime_checkable

from .schema import LocalComponent
from .schema import VersionTriple


class ProgressCallback(Protocol):
    """Receives download progress, once per received chunk.

    Must return quickly: it runs on the thread doing the transfer.
    """

    def __call__(self, total_bytes: int | None, downloaded_bytes: int) -> None: ...


@runtime_checkable
class LocalSnapshotProvider(Protocol):
    """Snapshot of the installed application.

    Example implementations:
    - A bootstrap adapter reading the host's module registry
    - A static snapshot for tests or offline reports
    """

    def installed_version(self) -> VersionTriple | None:
        """Version of the installed core, None if unknown."""
        ...

    def installed_components(self) -> list[LocalComponent]:
        """All installed modules, core ones flagged with ``core=True``."""
        ...


class HttpSession(Protocol):
    """The subset of ``requests.Session`` the library uses."""

    headers: Any

    def get(self, url: str, **kwargs: Any) -> Any: ...

    def head(self, url: str, **kwargs: Any) -> Any: ...
