"""
Pydantic models for gardenia.

This module defines the data models used throughout the application, including:
- Desired bundles parsed from the declaration file
- Installed-version records persisted between runs
- Hosting-service API payloads
- Run settings and the per-pass report

All models use Pydantic for validation, serialization, and type safety.
"""

from __future__ import annotations

from pathlib import Path, PurePosixPath, PureWindowsPath
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_PRIMARY_BRANCH = "master"
DEFAULT_API_BASE_URL = "https://api.github.com"
DEFAULT_ARCHIVE_BASE_URL = "https://github.com"
DEFAULT_MAX_CONCURRENCY = 8
DEFAULT_TIMEOUT = 60.0

RESERVED_COMPONENTS = (".", "..")


# ---------------------------------------------------------------------------
# Bundle Models
# ---------------------------------------------------------------------------


def check_subdir(subdir: str) -> str:
    """
    Validate a '/'-separated install subdirectory.

    Raises ValueError for absolute paths and for '.' or '..' components,
    which would place a bundle outside the install root.
    """
    if PurePosixPath(subdir).is_absolute() or PureWindowsPath(subdir).is_absolute():
        raise ValueError(f"{subdir}: install directory must be relative")
    if any(part in RESERVED_COMPONENTS for part in subdir.replace("\\", "/").split("/")):
        raise ValueError(f"{subdir}: install directory must not contain '.' or '..'")
    return subdir


class BundleDescriptor(BaseModel):
    """
    One desired bundle from the declaration file.

    The same owner/name pair may appear under two different subdirectories.
    Version lookup uses ``identity`` alone; cleanup matching uses
    ``identity`` together with ``install_subdir``.
    """

    model_config = ConfigDict(frozen=True)

    install_subdir: str = Field(
        default="",
        description="Subdirectory of the install root, '/'-separated (may be empty).",
    )
    owner: str = Field(description="Repository owner on the hosting service.")
    name: str = Field(description="Repository name on the hosting service.")

    @classmethod
    def parse(cls, owner_repo: str, install_subdir: str = "") -> "BundleDescriptor":
        """
        Build a descriptor from an ``"owner/repo"`` string.

        Raises ValueError unless the string holds exactly one '/' with
        non-empty text on both sides, or when either side or
        ``install_subdir`` would escape the install root.
        """
        parts = owner_repo.split("/")
        if len(parts) != 2 or not parts[0] or not parts[1]:
            raise ValueError(f"{owner_repo}: plugin should be style of :owner/:repo")
        if any(part in RESERVED_COMPONENTS or "\\" in part for part in parts):
            raise ValueError(f"{owner_repo}: invalid owner or repository name")
        return cls(install_subdir=check_subdir(install_subdir), owner=parts[0], name=parts[1])

    @property
    def identity(self) -> str:
        return f"{self.owner}/{self.name}"

    def install_path(self, install_root: Path) -> Path:
        """Directory the bundle is installed into."""
        return install_root / self.install_subdir / self.name


class InstallRecord(BaseModel):
    """
    Last known installed state of a bundle.

    Serialized with the ``Dir``/``SHA`` keys of the version-record file.
    An empty marker means the bundle was never installed.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    subdir: str = Field(
        default="",
        alias="Dir",
        serialization_alias="Dir",
        description="Subdirectory of the install root the bundle was installed under.",
    )
    marker: str = Field(
        default="",
        alias="SHA",
        serialization_alias="SHA",
        description="Commit marker of the installed snapshot.",
    )


def split_identity(identity: str) -> tuple[str, str]:
    """Split an ``owner/repo`` identity, raising ValueError when malformed."""
    bundle = BundleDescriptor.parse(identity)
    return bundle.owner, bundle.name


# ---------------------------------------------------------------------------
# Hosting Service Models
# ---------------------------------------------------------------------------


class BranchCommit(BaseModel):
    """Commit reference attached to a branch listing entry."""

    sha: str = Field(description="Commit hash at the tip of the branch.")
    url: str = Field(default="", description="API URL of the commit.")


class Branch(BaseModel):
    """
    Single entry of the branch-listing endpoint.

    Extra keys returned by the API (e.g. ``protected``) are ignored.
    """

    name: str = Field(description="Branch name.")
    commit: BranchCommit = Field(description="Commit at the tip of the branch.")


# ---------------------------------------------------------------------------
# Run Settings
# ---------------------------------------------------------------------------


class SyncSettings(BaseModel):
    """
    Immutable configuration for one synchronization run.

    Built once by the CLI and passed explicitly to every component.
    """

    model_config = ConfigDict(frozen=True)

    cache_dir: Path = Field(description="Root of the cache (version records, archives).")
    install_root: Path = Field(description="Directory all bundle subdirectories live under.")
    declaration_file: Optional[Path] = Field(
        default=None,
        description="Declaration file; defaults to <install_root>/gardenia.json.",
    )
    list_only: bool = Field(
        default=False,
        description="Report bundles that would be installed without changing anything.",
    )
    force: bool = Field(
        default=False,
        description="Discard the version-record file and reinstall every bundle.",
    )
    clean: bool = Field(
        default=False,
        description="Remove installs of bundles that are no longer declared.",
    )
    max_concurrency: int = Field(
        default=DEFAULT_MAX_CONCURRENCY,
        ge=1,
        description="Maximum number of network operations in flight.",
    )
    primary_branch: str = Field(
        default=DEFAULT_PRIMARY_BRANCH,
        description="Name of the branch whose tip is treated as latest.",
    )
    api_base_url: str = Field(default=DEFAULT_API_BASE_URL)
    archive_base_url: str = Field(default=DEFAULT_ARCHIVE_BASE_URL)
    timeout: float = Field(default=DEFAULT_TIMEOUT, description="HTTP timeout in seconds.")
    api_token: Optional[str] = Field(
        default=None,
        repr=False,
        description="Optional bearer token for the hosting-service API.",
    )

    @property
    def archives_dir(self) -> Path:
        return self.cache_dir / "archives"

    @property
    def version_file(self) -> Path:
        return self.cache_dir / "installed.json"

    @property
    def resolved_declaration_file(self) -> Path:
        return self.declaration_file or self.install_root / "gardenia.json"


# ---------------------------------------------------------------------------
# Pass Report
# ---------------------------------------------------------------------------


class SyncReport(BaseModel):
    """
    Outcome of one synchronization pass.

    ``records`` is the new version-store content; the lists name bundle
    identities by what happened to them.
    """

    records: Dict[str, InstallRecord] = Field(default_factory=dict)
    installed: List[str] = Field(default_factory=list)
    up_to_date: List[str] = Field(default_factory=list)
    pending: List[str] = Field(
        default_factory=list,
        description="Bundles that would be installed (list-only mode).",
    )
    carried_over: List[str] = Field(
        default_factory=list,
        description="Bundles whose previous record was kept after a missing primary branch.",
    )
    failed: Dict[str, str] = Field(
        default_factory=dict,
        description="Bundle identity -> error message.",
    )
    removed: List[str] = Field(
        default_factory=list,
        description="Identities removed (or that would be removed) by the cleaner.",
    )
