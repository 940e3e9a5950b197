"""
Remove installs of bundles that are no longer declared.
"""
from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Dict, Iterable, List

from gardenia.domain.errors import CleanError
from gardenia.domain.models import BundleDescriptor, InstallRecord, split_identity

logger = logging.getLogger(__name__)


def _prune_empty_parents(path: Path, install_root: Path) -> None:
    """Remove empty directories from ``path`` upward, stopping below the install root."""
    root = install_root.resolve()
    current = path.resolve()
    while current != root and root in current.parents:
        try:
            current.rmdir()
        except OSError:
            # not empty (or already gone)
            break
        current = current.parent


def find_unmanaged(
    bundles: Iterable[BundleDescriptor],
    records: Dict[str, InstallRecord],
) -> List[str]:
    """
    Identities whose record matches no desired bundle.

    A record only matches a bundle with the same identity *and* the same
    subdirectory, so moving a bundle to a new subdirectory orphans the old one.
    """
    declared = {(bundle.identity, bundle.install_subdir) for bundle in bundles}
    return [identity for identity, record in records.items() if (identity, record.subdir) not in declared]


def clean(
    bundles: Iterable[BundleDescriptor],
    records: Dict[str, InstallRecord],
    install_root: Path,
    dry_run: bool = False,
) -> List[str]:
    """
    Delete the install directory of every unmanaged record.

    Returns the identities removed (or, with ``dry_run``, that would be).

    Raises:
        CleanError: on a malformed identity, a target outside
            ``install_root``, or a failed removal.
    """
    removed: List[str] = []

    for identity in find_unmanaged(bundles, records):
        record = records[identity]
        try:
            _, repo = split_identity(identity)
        except ValueError as e:
            raise CleanError(str(e)) from e

        target = install_root / record.subdir / repo
        root = install_root.resolve()
        parent = target.parent.resolve()
        if parent != root and root not in parent.parents:
            raise CleanError(f"refusing to remove {target}: outside the install root {install_root}")

        if dry_run:
            logger.info(f"Would remove {identity} ({target})")
            removed.append(identity)
            continue

        try:
            if target.is_symlink() or target.is_file():
                target.unlink()
            elif target.exists():
                shutil.rmtree(target)
        except OSError as e:
            raise CleanError(f"cannot remove {target}: {e}") from e

        _prune_empty_parents(target.parent, install_root)
        logger.info(f"Removed {identity} ({target})")
        removed.append(identity)

    return removed
