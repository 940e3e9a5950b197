import os
import sys
from pathlib import Path
from typing import Optional, Union

from gardenia.domain.errors import SetupError
from gardenia.domain.models import SyncSettings

CACHE_DIR_ENV_VAR = "GARDENIA_CACHE_DIR"
INSTALL_ROOT_ENV_VAR = "GARDENIA_INSTALL_ROOT"
TOKEN_ENV_VAR = "GITHUB_TOKEN"
DEFAULT_CACHE_DIR = "~/.cache/gardenia"


def _expand(path: Union[Path, str]) -> Path:
    try:
        return Path(path).expanduser()
    except RuntimeError as e:
        raise SetupError(f"cannot resolve home directory: {e}") from e


def get_install_root() -> Path:
    """
    Determine the install root.

    Priority:
    1. Environment variable GARDENIA_INSTALL_ROOT
    2. ~/vimfiles on Windows, ~/.vim elsewhere
    """
    env_path = os.environ.get(INSTALL_ROOT_ENV_VAR)
    if env_path:
        return _expand(env_path)
    if sys.platform == "win32":
        return _expand("~/vimfiles")
    return _expand("~/.vim")


def get_cache_dir() -> Path:
    return _expand(os.environ.get(CACHE_DIR_ENV_VAR) or DEFAULT_CACHE_DIR)


def build_settings(
    cache_dir: Optional[Path] = None,
    install_root: Optional[Path] = None,
    declaration_file: Optional[Path] = None,
    **options,
) -> SyncSettings:
    """Build run settings, filling unset paths and the API token from the environment."""
    options.setdefault("api_token", os.environ.get(TOKEN_ENV_VAR) or None)
    return SyncSettings(
        cache_dir=_expand(cache_dir) if cache_dir else get_cache_dir(),
        install_root=_expand(install_root) if install_root else get_install_root(),
        declaration_file=_expand(declaration_file) if declaration_file else None,
        **options,
    )


def prepare_directories(settings: SyncSettings) -> None:
    """
    Check the install root and create the cache directories.

    Raises:
        SetupError: if the install root is missing or the cache is unusable.
    """
    if not settings.install_root.is_dir():
        raise SetupError(f"install root not found: {settings.install_root}")

    try:
        settings.archives_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise SetupError(f"cannot create cache directory {settings.archives_dir}: {e}") from e
