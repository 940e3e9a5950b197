"""
Exception hierarchy for gardenia.

Setup, declaration, version-store and clean errors are fatal to a run.
Resolution, fetch, unpack and install errors only affect a single bundle.
"""
from __future__ import annotations


class GardeniaError(Exception):
    """Base class for all gardenia errors."""


# ---------------------------------------------------------------------------
# Fatal errors
# ---------------------------------------------------------------------------


class SetupError(GardeniaError):
    """The install root or cache directories cannot be used."""


class DeclarationError(GardeniaError):
    """The desired-bundle declaration is missing or malformed."""


class VersionStoreError(GardeniaError):
    """The version-record file cannot be read or written."""


class CleanError(GardeniaError):
    """An unmanaged bundle could not be removed."""


# ---------------------------------------------------------------------------
# Per-bundle errors
# ---------------------------------------------------------------------------


class ResolutionError(GardeniaError):
    """Branch listing failed (transport, HTTP status or decoding)."""


class BranchNotFoundError(ResolutionError):
    """The bundle has no branch with the configured primary name."""

    def __init__(self, identity: str, branch: str):
        super().__init__(f"[{identity}] {branch} branch not found")
        self.identity = identity
        self.branch = branch


class FetchError(GardeniaError):
    """The snapshot archive could not be downloaded."""


class UnpackError(GardeniaError):
    """The snapshot archive is malformed or an entry could not be written."""


class InstallError(GardeniaError):
    """The staged snapshot could not be moved into its install location."""
