"""Archive validation and extraction.

Every failure is reported as one of four kinds so callers can show the right
remediation: corrupted, empty, destination not writable, or extraction failed.
The archive is validated before the destination is touched.
"""

import logging
import os
import shutil
import stat
import tarfile
import zipfile
import zlib
from dataclasses import dataclass
from pathlib import Path
from pathlib import PurePosixPath

from .exceptions import CorruptedArchiveError
from .exceptions import EmptyArchiveError
from .exceptions import ExtractionError
from .exceptions import ExtractionFailedError
from .exceptions import ExtractionPermissionError
from .schema import ArchiveFormat
from .schema import ArchiveHandle

logger = logging.getLogger(__name__)

_READ_ERRORS = (zipfile.BadZipFile, tarfile.TarError, zlib.error, EOFError, OSError, ValueError)


@dataclass
class _Entry:
    """One archive member, with its path split into safe components."""

    parts: tuple[str, ...]
    is_dir: bool
    mode: int
    member: object


def _split_member_name(name: str) -> tuple[str, ...]:
    normalized = name.replace("\\", "/")
    if normalized.startswith("/") or (len(normalized) > 1 and normalized[1] == ":"):
        raise CorruptedArchiveError(f"Archive member has an absolute path: {name}", context={"member": name})

    parts = tuple(part for part in PurePosixPath(normalized).parts if part not in ("", "."))
    if ".." in parts:
        raise CorruptedArchiveError(f"Archive member escapes the destination: {name}", context={"member": name})
    return parts


def _strip_root(entries: list[_Entry]) -> list[_Entry]:
    """Drop a single top-level directory shared by every member."""
    roots = {entry.parts[0] for entry in entries}
    if len(roots) != 1 or not any(len(entry.parts) > 1 for entry in entries):
        return entries

    root = roots.pop()
    logger.debug(f"Stripping archive root directory '{root}'")
    return [
        _Entry(parts=entry.parts[1:], is_dir=entry.is_dir, mode=entry.mode, member=entry.member)
        for entry in entries
        if len(entry.parts) > 1
    ]


class ArchiveExtractor:
    """Validates and extracts zip and tar archives."""

    def extract(self, handle: ArchiveHandle, destination: Path, strip_root_dir: bool = False) -> None:
        """
        Extract an archive into destination.

        Args:
            handle: Archive to extract
            destination: Target directory (created if needed)
            strip_root_dir: Elide a single top-level directory shared by all members

        Raises:
            EmptyArchiveError: Zero-byte file or no members
            CorruptedArchiveError: Unreadable archive, failed CRC, or unsafe member path
            ExtractionPermissionError: Destination not writable
            ExtractionFailedError: Anything else, including an extraction that wrote nothing
        """
        logger.info(f"Extracting {handle.source_path.name} into {destination}")
        path = handle.source_path

        if not path.is_file() or path.stat().st_size == 0:
            raise EmptyArchiveError(
                f"The package {path} is empty.",
                context={"archive": str(path)},
            )

        if handle.format == ArchiveFormat.ZIP:
            entries = self._zip_entries(path)
        else:
            entries = self._tar_entries(path)

        if not entries:
            raise EmptyArchiveError(f"The package {path} contains no files.", context={"archive": str(path)})

        if strip_root_dir:
            entries = _strip_root(entries)

        self._prepare_destination(destination)

        try:
            if handle.format == ArchiveFormat.ZIP:
                written = self._write_zip(path, entries, destination)
            else:
                written = self._write_tar(path, entries, destination)
        except ExtractionError:
            raise
        except PermissionError as e:
            raise ExtractionPermissionError(destination) from e
        except Exception as e:
            raise ExtractionFailedError(
                f"Failed to extract {path} into {destination}: {e}",
                context={"archive": str(path), "destination": str(destination)},
            ) from e

        if not written:
            raise ExtractionFailedError(
                f"Extracting {path} produced no files.",
                context={"archive": str(path), "destination": str(destination)},
            )
        logger.debug(f"Extracted {written} entries into {destination}")

    def _prepare_destination(self, destination: Path) -> None:
        try:
            destination.mkdir(parents=True, exist_ok=True)
        except PermissionError as e:
            raise ExtractionPermissionError(destination) from e
        except OSError as e:
            raise ExtractionFailedError(
                f"Cannot create {destination}: {e}", context={"destination": str(destination)}
            ) from e

        if not destination.is_dir() or not os.access(destination, os.W_OK | os.X_OK):
            raise ExtractionPermissionError(destination)

    def _zip_entries(self, path: Path) -> list[_Entry]:
        if not zipfile.is_zipfile(path):
            raise CorruptedArchiveError(f"The package {path} is not a valid zip archive.", context={"archive": str(path)})
        try:
            with zipfile.ZipFile(path) as archive:
                bad_member = archive.testzip()
                infos = archive.infolist()
        except _READ_ERRORS as e:
            raise CorruptedArchiveError(f"The package {path} is corrupted: {e}", context={"archive": str(path)}) from e

        if bad_member is not None:
            raise CorruptedArchiveError(
                f"The package {path} is corrupted (bad member: {bad_member}).",
                context={"archive": str(path), "member": bad_member},
            )

        entries = []
        for info in infos:
            parts = _split_member_name(info.filename)
            if not parts:
                continue
            mode = (info.external_attr >> 16) & 0xFFFF
            if stat.S_ISLNK(mode):
                logger.debug(f"Skipping symlink {info.filename}")
                continue
            entries.append(_Entry(parts=parts, is_dir=info.is_dir(), mode=stat.S_IMODE(mode), member=info))
        return entries

    def _tar_entries(self, path: Path) -> list[_Entry]:
        try:
            with tarfile.open(path, "r:*") as archive:
                members = archive.getmembers()
        except _READ_ERRORS as e:
            raise CorruptedArchiveError(f"The package {path} is corrupted: {e}", context={"archive": str(path)}) from e

        entries = []
        for member in members:
            parts = _split_member_name(member.name)
            if not parts:
                continue
            if not (member.isdir() or member.isfile()):
                logger.debug(f"Skipping non-regular member {member.name}")
                continue
            entries.append(_Entry(parts=parts, is_dir=member.isdir(), mode=member.mode & 0o777, member=member))
        return entries

    def _target(self, destination: Path, entry: _Entry) -> Path:
        return destination.joinpath(*entry.parts)

    def _write_zip(self, path: Path, entries: list[_Entry], destination: Path) -> int:
        written = 0
        with zipfile.ZipFile(path) as archive:
            for entry in entries:
                target = self._target(destination, entry)
                if entry.is_dir:
                    target.mkdir(parents=True, exist_ok=True)
                else:
                    target.parent.mkdir(parents=True, exist_ok=True)
                    with archive.open(entry.member) as source, open(target, "wb") as out:
                        shutil.copyfileobj(source, out)
                    if entry.mode:
                        target.chmod(entry.mode)
                written += 1
        return written

    def _write_tar(self, path: Path, entries: list[_Entry], destination: Path) -> int:
        written = 0
        with tarfile.open(path, "r:*") as archive:
            for entry in entries:
                target = self._target(destination, entry)
                if entry.is_dir:
                    target.mkdir(parents=True, exist_ok=True)
                else:
                    source = archive.extractfile(entry.member)
                    if source is None:
                        continue
                    target.parent.mkdir(parents=True, exist_ok=True)
                    with source, open(target, "wb") as out:
                        shutil.copyfileobj(source, out)
                    if entry.mode:
                        target.chmod(entry.mode)
                written += 1
        return written
