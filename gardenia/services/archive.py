"""
Extract downloaded source archives into the staging area.
"""
from __future__ import annotations

import logging
import shutil
import stat
import zipfile
from pathlib import Path

from gardenia.domain.errors import UnpackError

logger = logging.getLogger(__name__)


def _entry_target(output_dir: Path, name: str) -> Path:
    """Resolve where an archive entry lands, rejecting paths outside ``output_dir``."""
    root = output_dir.resolve()
    target = (root / name).resolve()
    if target != root and root not in target.parents:
        raise UnpackError(f"archive entry escapes the output directory: {name}")
    return target


def _entry_mode(info: zipfile.ZipInfo) -> int:
    """Permission bits stored in the entry, 0 when the archive carries none."""
    return stat.S_IMODE(info.external_attr >> 16)


def unpack(archive_path: Path, output_dir: Path) -> None:
    """
    Extract every entry of a zip archive into ``output_dir``.

    Nested directories are recreated and Unix permission bits are applied
    when the archive records them.

    Raises:
        UnpackError: if the archive is malformed or uses an unsupported
            feature, an entry points outside ``output_dir``, or an entry
            cannot be written.
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    try:
        with zipfile.ZipFile(archive_path, "r") as zip_ref:
            for info in zip_ref.infolist():
                target = _entry_target(output_dir, info.filename)
                mode = _entry_mode(info)

                if info.is_dir():
                    target.mkdir(parents=True, exist_ok=True)
                else:
                    target.parent.mkdir(parents=True, exist_ok=True)
                    with zip_ref.open(info, "r") as src, open(target, "wb") as dst:
                        shutil.copyfileobj(src, dst)

                if mode:
                    # Keep directories traversable so later entries can be written.
                    if info.is_dir():
                        mode |= stat.S_IRWXU
                    target.chmod(mode)
    except (zipfile.BadZipFile, zipfile.LargeZipFile) as e:
        raise UnpackError(f"malformed archive {archive_path}: {e}") from e
    except (RuntimeError, NotImplementedError) as e:
        # encrypted entries and unsupported compression methods
        raise UnpackError(f"unsupported archive {archive_path}: {e}") from e
    except OSError as e:
        raise UnpackError(f"cannot extract {archive_path}: {e}") from e

    logger.debug(f"Extracted {archive_path} into {output_dir}")


def locate_snapshot(output_dir: Path, repo: str, marker: str) -> Path:
    """
    Find the top-level directory of an extracted snapshot.

    GitHub names it ``<repo>-<marker>``; when that is absent the single
    top-level directory of ``output_dir`` is used.

    Raises:
        UnpackError: if no unambiguous snapshot directory exists.
    """
    expected = output_dir / f"{repo}-{marker}"
    if expected.is_dir():
        return expected

    entries = [p for p in output_dir.iterdir() if p.is_dir()] if output_dir.is_dir() else []
    if len(entries) == 1:
        return entries[0]
    raise UnpackError(f"no snapshot directory for {repo}@{marker} in {output_dir}")
