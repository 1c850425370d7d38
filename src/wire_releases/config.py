"""Acquisition configuration.

Endpoints, timeouts and filesystem conventions live in one immutable object
that apps build (or load from TOML) and inject into each component.
"""

import tomllib
from pathlib import Path

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field

BRANCH_PLACEHOLDER = "{branch}"


class AcquisitionConfig(BaseModel):
    """
    Settings shared by the catalog, resolver, fetcher, pipeline and reconciler.

    URL templates contain a ``{branch}`` placeholder that is replaced with a
    branch name or commit hash. ``archive_urls`` lists equivalent downloads of
    one release in different formats; the smallest format is used.
    """

    model_config = ConfigDict(frozen=True)

    # Remote release endpoints
    branches_url: str = "https://api.github.com/repos/processwire/processwire/branches"
    version_url: str = "https://raw.githubusercontent.com/processwire/processwire/{branch}/wire/core/ProcessWire.php"
    archive_urls: list[str] = Field(
        default_factory=lambda: ["https://github.com/processwire/processwire/archive/{branch}.zip"],
        min_length=1,
    )
    default_branch: str = "master"
    fallback_alias: str = "latest"

    # Module catalog
    module_service_url: str = "https://modules.processwire.com/export-json/"
    module_service_key: str = ""
    module_service_limit: int = 100

    # HTTP
    user_agent: str = "wire-releases"
    lookup_timeout: float = 4.5
    chunk_size: int = 64 * 1024

    # Filesystem conventions
    installed_marker: str = "site/install"
    modules_dir: str = "site/modules"
    installation_root_marker: str = "wire"
    max_root_ascent: int = 32
    archive_basename: str = "release"
    staging_root: Path | None = None
    extraneous_patterns: list[str] = Field(default_factory=lambda: ["LICENSE", "UPGRADE*.md", "CHANGELOG*.md"])
    readme_name: str = "README.md"
    module_dir_mode: int = 0o755

    def branch_url(self, template: str, identifier: str) -> str:
        """Substitute a branch name or commit hash into a URL template."""
        return template.replace(BRANCH_PLACEHOLDER, identifier)

    @classmethod
    def from_toml(cls, path: Path, table: str = "wire-releases") -> "AcquisitionConfig":
        """
        Load configuration overrides from a TOML file.

        Reads ``[tool.<table>]`` (pyproject.toml style) or a top-level ``[<table>]``.
        Missing tables give the defaults.

        Raises:
            FileNotFoundError: If the file doesn't exist
            tomllib.TOMLDecodeError: If invalid TOML
            pydantic.ValidationError: If a value has the wrong type
        """
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        with open(path, "rb") as f:
            data = tomllib.load(f)

        section = data.get("tool", {}).get(table) or data.get(table, {})
        return cls(**{key.replace("-", "_"): value for key, value in section.items()})
