import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

import click

from gardenia.core.dependencies import build_settings, prepare_directories
from gardenia.domain.declaration import load_declaration
from gardenia.domain.errors import GardeniaError
from gardenia.domain.models import DEFAULT_MAX_CONCURRENCY, DEFAULT_PRIMARY_BRANCH, SyncReport
from gardenia.services.sync import synchronize
from gardenia.storage.json_version_store import JsonVersionStore

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def _print_report(report: SyncReport, list_only: bool) -> None:
    for identity in report.removed:
        click.echo(f"{'would remove' if list_only else 'removed'} {identity}")
    for identity in report.pending:
        click.echo(identity)
    for identity in report.installed:
        click.echo(f"installed {identity}")


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "-c", "--cache-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Cache directory path (default: ~/.cache/gardenia).",
)
@click.option("-e", "--clean", "clean_unmanaged", is_flag=True, help="Clean not managed plugins.")
@click.option("-f", "--force", is_flag=True, help="Force reinstall plugins.")
@click.option("-l", "--list", "list_only", is_flag=True, help="Only list plugins to install.")
@click.option(
    "--install-root",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory plugins are installed under (default: ~/.vim or ~/vimfiles).",
)
@click.option(
    "--config", "declaration_file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Plugin declaration file (default: <install root>/gardenia.json).",
)
@click.option(
    "-j", "--jobs",
    type=click.IntRange(min=1),
    default=DEFAULT_MAX_CONCURRENCY,
    show_default=True,
    help="Maximum concurrent downloads.",
)
@click.option("--branch", default=DEFAULT_PRIMARY_BRANCH, show_default=True, help="Branch to track.")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
def cli(
    cache_dir: Optional[Path],
    clean_unmanaged: bool,
    force: bool,
    list_only: bool,
    install_root: Optional[Path],
    declaration_file: Optional[Path],
    jobs: int,
    branch: str,
    verbose: bool,
) -> None:
    """Install and update plugins from GitHub."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=LOG_FORMAT,
    )

    try:
        settings = build_settings(
            cache_dir=cache_dir,
            install_root=install_root,
            declaration_file=declaration_file,
            list_only=list_only,
            force=force,
            clean=clean_unmanaged,
            max_concurrency=jobs,
            primary_branch=branch,
        )
        prepare_directories(settings)
        bundles = load_declaration(settings.resolved_declaration_file)
        logger.debug(f"Synchronizing {len(bundles)} bundles into {settings.install_root}")
        store = JsonVersionStore(settings.version_file)
        report = asyncio.run(synchronize(settings, bundles, store))
    except GardeniaError as e:
        click.echo(str(e), err=True)
        sys.exit(1)

    _print_report(report, list_only)


if __name__ == "__main__":
    cli()
