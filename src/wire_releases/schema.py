"""Release and version data models.

Plain pydantic records shared by the catalog, the acquisition pipeline and the
reconciler. Unknown versions are represented by ``None`` everywhere; use
``compare_versions`` rather than comparing optional values directly.
"""

import re
from enum import Enum
from functools import total_ordering
from pathlib import Path
from typing import Any

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import field_validator

_DOTTED = re.compile(r"^\s*v?(\d+)(?:\.(\d+))?(?:\.(\d+))?")


@total_ordering
class VersionTriple(BaseModel):
    """Three-part release version, ordered field by field."""

    model_config = ConfigDict(frozen=True)

    major: int = Field(ge=0)
    minor: int = Field(ge=0)
    revision: int = Field(ge=0)

    @classmethod
    def parse(cls, value: Any) -> "VersionTriple | None":
        """Parse a version from the forms the host application and catalogs emit.

        Accepts dotted strings ("1.2.3", "1.2", "v3.0.184") and the packed integer
        form used by module info (123 -> 1.2.3, 1234 -> 12.3.4), whether it
        arrives as an int or a digit string.

        Returns:
            VersionTriple, or None when the value cannot be interpreted
        """
        if isinstance(value, VersionTriple):
            return value
        if isinstance(value, bool) or value is None:
            return None
        if isinstance(value, int):
            return cls._from_packed(str(value)) if value >= 0 else None

        text = str(value).strip()
        if text.isascii() and text.isdigit():
            return cls._from_packed(text)

        match = _DOTTED.match(text)
        if not match:
            return None
        major, minor, revision = (int(part) if part else 0 for part in match.groups())
        return cls(major=major, minor=minor, revision=revision)

    @classmethod
    def _from_packed(cls, digits: str) -> "VersionTriple":
        digits = digits.rjust(3, "0")
        return cls(major=int(digits[:-2]), minor=int(digits[-2]), revision=int(digits[-1]))

    def as_tuple(self) -> tuple[int, int, int]:
        return (self.major, self.minor, self.revision)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, VersionTriple):
            return NotImplemented
        return self.as_tuple() < other.as_tuple()

    def __hash__(self) -> int:
        return hash(self.as_tuple())

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.revision}"


def compare_versions(a: VersionTriple | None, b: VersionTriple | None) -> int | None:
    """Compare two versions.

    Returns:
        -1, 0 or 1 like a classic cmp(), or None when either side is unknown
    """
    if a is None or b is None:
        return None
    return (a > b) - (a < b)


def format_version(version: VersionTriple | None) -> str:
    """Display form of a possibly unknown version."""
    return str(version) if version is not None else "?"


class ReleaseKind(str, Enum):
    BRANCH = "branch"
    COMMIT_SHA = "sha"


class ReleaseRef(BaseModel):
    """Target release: a named branch or a commit hash."""

    model_config = ConfigDict(frozen=True)

    identifier: str = Field(min_length=1)
    kind: ReleaseKind = ReleaseKind.BRANCH

    @classmethod
    def branch(cls, name: str) -> "ReleaseRef":
        return cls(identifier=name, kind=ReleaseKind.BRANCH)

    @classmethod
    def commit(cls, sha: str) -> "ReleaseRef":
        return cls(identifier=sha, kind=ReleaseKind.COMMIT_SHA)

    @classmethod
    def from_option(cls, sha: str | None, default_branch: str = "master") -> "ReleaseRef":
        """Ref for a `--sha` style option, falling back to the default branch."""
        if sha:
            return cls.commit(sha)
        return cls.branch(default_branch)


class ArchiveFormat(str, Enum):
    """Supported archive formats, listed smallest-first."""

    TAR_GZ = "tar.gz"
    ZIP = "zip"
    TAR = "tar"

    @property
    def extension(self) -> str:
        return self.value

    @property
    def size_rank(self) -> int:
        """Lower ranks usually produce smaller downloads for the same tree."""
        return list(ArchiveFormat).index(self)

    @classmethod
    def from_name(cls, name: str) -> "ArchiveFormat | None":
        """Detect format from a file name or URL path, None when unrecognised."""
        lowered = name.lower().split("?", 1)[0].split("#", 1)[0]
        if lowered.endswith((".tar.gz", ".tgz")):
            return cls.TAR_GZ
        if lowered.endswith(".zip"):
            return cls.ZIP
        if lowered.endswith(".tar"):
            return cls.TAR
        return None

    @classmethod
    def from_content_type(cls, content_type: str | None) -> "ArchiveFormat | None":
        if not content_type:
            return None
        content_type = content_type.split(";", 1)[0].strip().lower()
        if content_type in ("application/zip", "application/x-zip-compressed"):
            return cls.ZIP
        if content_type in ("application/gzip", "application/x-gzip", "application/x-tar+gzip"):
            return cls.TAR_GZ
        if content_type == "application/x-tar":
            return cls.TAR
        return None


class BranchInfo(BaseModel):
    """A release branch (or commit) annotated with its version and download URL."""

    model_config = ConfigDict(frozen=True)

    name: str
    title: str
    zip_url: str
    version_url: str
    version: VersionTriple | None = None

    @property
    def label(self) -> str:
        return f"{self.name} {format_version(self.version)}"


class ArchiveHandle(BaseModel):
    """A downloaded or caller-supplied compressed archive."""

    model_config = ConfigDict(frozen=True)

    source_path: Path
    format: ArchiveFormat

    @classmethod
    def for_path(cls, path: Path) -> "ArchiveHandle | None":
        archive_format = ArchiveFormat.from_name(path.name)
        if archive_format is None:
            return None
        return cls(source_path=path, format=archive_format)


_OPERATORS = ("==", "!=", "<=", ">=", "=", "<", ">")


class VersionRequirement(BaseModel):
    """A declared dependency constraint such as ('>=', 1.2.0)."""

    model_config = ConfigDict(frozen=True)

    operator: str = ">="
    version: VersionTriple | None = None

    @classmethod
    def from_raw(cls, raw: Any) -> "VersionRequirement":
        """Build from catalog data: ['>=', '1.2.3'], ('>=', 123) or '>=1.2.3'."""
        if isinstance(raw, VersionRequirement):
            return raw
        if isinstance(raw, dict):
            return cls.model_validate(raw)
        if isinstance(raw, (list, tuple)):
            if len(raw) >= 2:
                return cls(operator=str(raw[0]).strip() or ">=", version=VersionTriple.parse(raw[1]))
            if len(raw) == 1:
                return cls.from_raw(raw[0])
            return cls()
        text = str(raw).strip()
        for operator in _OPERATORS:
            if text.startswith(operator):
                return cls(operator=operator, version=VersionTriple.parse(text[len(operator) :]))
        return cls(version=VersionTriple.parse(text))

    def is_satisfied_by(self, version: VersionTriple | None) -> bool | None:
        """Check a version against this requirement, None when undeterminable."""
        result = compare_versions(version, self.version)
        if result is None:
            return None
        if self.operator in ("=", "=="):
            return result == 0
        if self.operator == "!=":
            return result != 0
        if self.operator == "<":
            return result < 0
        if self.operator == "<=":
            return result <= 0
        if self.operator == ">":
            return result > 0
        return result >= 0


def _coerce_requirements(value: Any) -> dict[str, VersionRequirement]:
    if not value:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"required versions must be a mapping, got {type(value).__name__}")
    return {str(name): VersionRequirement.from_raw(raw) for name, raw in value.items()}


class LocalComponent(BaseModel):
    """An installed module as reported by the host application."""

    model_config = ConfigDict(frozen=True)

    name: str
    title: str = ""
    version: VersionTriple | None = None
    core: bool = False
    required_versions: dict[str, VersionRequirement] = Field(default_factory=dict)

    @field_validator("version", mode="before")
    @classmethod
    def _parse_version(cls, value: Any) -> VersionTriple | None:
        return VersionTriple.parse(value)

    @field_validator("required_versions", mode="before")
    @classmethod
    def _parse_requirements(cls, value: Any) -> dict[str, VersionRequirement]:
        return _coerce_requirements(value)


class RemoteModuleInfo(BaseModel):
    """Catalog entry for one module."""

    model_config = ConfigDict(frozen=True)

    name: str
    module_version: VersionTriple | None = None
    required_versions: dict[str, VersionRequirement] = Field(default_factory=dict)
    project_url: str | None = None

    @field_validator("module_version", mode="before")
    @classmethod
    def _parse_version(cls, value: Any) -> VersionTriple | None:
        return VersionTriple.parse(value)

    @field_validator("required_versions", mode="before")
    @classmethod
    def _parse_requirements(cls, value: Any) -> dict[str, VersionRequirement]:
        return _coerce_requirements(value)


class ModuleVersionRecord(BaseModel):
    """Result of comparing one installed module with the catalog."""

    model_config = ConfigDict(frozen=True)

    name: str
    title: str = ""
    local_version: VersionTriple | None = None
    remote_version: VersionTriple | None = None
    is_newer: int = 0
    required_versions: dict[str, VersionRequirement] = Field(default_factory=dict)
    download_url: str | None = None

    @property
    def upgradable(self) -> bool:
        return self.remote_version is not None and self.is_newer > 0

    def unmet_requirements(self, installed: dict[str, VersionTriple | None]) -> dict[str, VersionRequirement]:
        """Requirements an upgrade would violate given installed versions.

        Names absent from `installed` or with unknown versions are reported as unmet.
        """
        unmet = {}
        for name, requirement in self.required_versions.items():
            if requirement.is_satisfied_by(installed.get(name)) is not True:
                unmet[name] = requirement
        return unmet


class UpgradeCheck(BaseModel):
    """Outcome of comparing the installed core with a release branch."""

    model_config = ConfigDict(frozen=True)

    upgrade: bool
    branch: BranchInfo
    installed_version: VersionTriple | None = None
    determinable: bool = True
