"""
Move staged snapshots into their install location.
"""
from __future__ import annotations

import logging
import shutil
import uuid
from pathlib import Path

from gardenia.domain.errors import InstallError

logger = logging.getLogger(__name__)


def install(staged_dir: Path, destination: Path) -> None:
    """
    Replace ``destination`` with the contents of ``staged_dir``.

    An existing destination is first renamed to a hidden sibling, the staged
    directory is moved into place, and only then is the old copy deleted.
    If the move fails the old copy is put back. ``staged_dir`` no longer
    exists afterwards.

    Raises:
        InstallError: if the staged directory is missing or cannot be moved.
    """
    if not staged_dir.is_dir():
        raise InstallError(f"staged snapshot not found: {staged_dir}")

    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise InstallError(f"cannot create {destination.parent}: {e}") from e

    backup = None
    if destination.exists() or destination.is_symlink():
        backup = destination.with_name(f".{destination.name}.old-{uuid.uuid4().hex[:8]}")
        try:
            destination.rename(backup)
        except OSError as e:
            raise InstallError(f"cannot move aside {destination}: {e}") from e

    try:
        shutil.move(str(staged_dir), str(destination))
    except OSError as e:
        if backup is not None:
            if destination.exists():
                shutil.rmtree(destination, ignore_errors=True)
            try:
                backup.rename(destination)
            except OSError as restore_error:
                raise InstallError(
                    f"cannot install {staged_dir} to {destination}: {e}; "
                    f"previous copy left at {backup}: {restore_error}"
                ) from e
        raise InstallError(f"cannot install {staged_dir} to {destination}: {e}") from e

    if backup is not None:
        if backup.is_dir() and not backup.is_symlink():
            shutil.rmtree(backup, ignore_errors=True)
        else:
            backup.unlink(missing_ok=True)

    logger.debug(f"Installed {staged_dir} to {destination}")
