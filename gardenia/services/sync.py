"""
Synchronize declared bundles with the tip of their primary branch.

For every bundle a task:
- resolves the commit at the tip of the primary branch
- compares it with the installed record (re-checking the install directory)
- downloads, unpacks and installs the snapshot only when they differ

Results flow through a queue into the new version records, which replace
the previous ones wholesale at the end of the pass.
"""
from __future__ import annotations

import asyncio
import hashlib
import logging
import shutil
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import httpx

from gardenia.domain.errors import (
    BranchNotFoundError,
    FetchError,
    InstallError,
    ResolutionError,
    UnpackError,
)
from gardenia.domain.models import BundleDescriptor, InstallRecord, SyncReport, SyncSettings
from gardenia.services.archive import locate_snapshot, unpack
from gardenia.services.cleaner import clean
from gardenia.services.github import ArchiveFetcher, BranchResolver, build_client
from gardenia.services.installer import install
from gardenia.storage.version_store import VersionStore

logger = logging.getLogger(__name__)

Result = Optional[Tuple[str, InstallRecord]]


def staging_key(bundle: BundleDescriptor) -> str:
    """
    Name of a bundle's archive and staging directory.

    Includes a digest of the subdirectory so the same repository declared
    under two subdirectories never shares staging paths.
    """
    key = f"{bundle.owner}_{bundle.name}"
    if bundle.install_subdir:
        digest = hashlib.sha1(bundle.install_subdir.encode("utf-8")).hexdigest()[:8]
        key = f"{key}_{digest}"
    return key


class SyncCoordinator:
    """Runs one synchronization pass over a list of bundles."""

    def __init__(
        self,
        settings: SyncSettings,
        resolver: BranchResolver,
        fetcher: ArchiveFetcher,
    ):
        self.settings = settings
        self.resolver = resolver
        self.fetcher = fetcher
        self._network = asyncio.Semaphore(settings.max_concurrency)

    async def run(
        self,
        bundles: List[BundleDescriptor],
        previous: Dict[str, InstallRecord],
    ) -> SyncReport:
        """
        Process every bundle concurrently and collect the new version records.

        ``previous`` is the snapshot of the version store taken at pass start;
        it is never modified.
        """
        report = SyncReport()
        queue: asyncio.Queue[Result] = asyncio.Queue()
        collector = asyncio.create_task(self._collect(queue))

        try:
            await asyncio.gather(
                *(self._sync_bundle(bundle, previous, queue, report) for bundle in bundles)
            )
        finally:
            await queue.put(None)
            report.records = await collector

        return report

    @staticmethod
    async def _collect(queue: asyncio.Queue[Result]) -> Dict[str, InstallRecord]:
        records: Dict[str, InstallRecord] = {}
        while True:
            item = await queue.get()
            if item is None:
                return records
            identity, record = item
            records[identity] = record

    async def _sync_bundle(
        self,
        bundle: BundleDescriptor,
        previous: Dict[str, InstallRecord],
        queue: asyncio.Queue[Result],
        report: SyncReport,
    ) -> None:
        """Process one bundle; any failure is recorded against that bundle only."""
        try:
            await self._process_bundle(bundle, previous, queue, report)
        except Exception as e:
            logger.error(f"Unexpected error syncing {bundle.identity}: {e}", exc_info=True)
            report.failed[bundle.identity] = str(e) or type(e).__name__

    async def _process_bundle(
        self,
        bundle: BundleDescriptor,
        previous: Dict[str, InstallRecord],
        queue: asyncio.Queue[Result],
        report: SyncReport,
    ) -> None:
        identity = bundle.identity

        try:
            async with self._network:
                marker = await self.resolver.resolve(bundle.owner, bundle.name)
        except BranchNotFoundError as e:
            logger.error(str(e))
            report.failed[identity] = str(e)
            if identity in previous:
                report.carried_over.append(identity)
                await queue.put((identity, previous[identity]))
            return
        except ResolutionError as e:
            logger.error(f"config error nearby {identity}: {e}")
            report.failed[identity] = str(e)
            return

        destination = bundle.install_path(self.settings.install_root)
        record = previous.get(identity)
        if record is not None and (not record.marker or not destination.exists()):
            record = None

        if record is not None and record.marker == marker:
            logger.debug(f"{identity} is up to date at {marker}")
            report.up_to_date.append(identity)
            await queue.put((identity, record))
            return

        if self.settings.list_only:
            logger.debug(f"{identity} would be installed at {marker}")
            report.pending.append(identity)
            return

        try:
            await self._install(bundle, marker, destination)
        except (FetchError, UnpackError, InstallError) as e:
            logger.error(str(e))
            report.failed[identity] = str(e)
            return

        await queue.put((identity, InstallRecord(subdir=bundle.install_subdir, marker=marker)))
        report.installed.append(identity)
        logger.info(f"Installed {identity} at {marker}")

    async def _install(self, bundle: BundleDescriptor, marker: str, destination: Path) -> None:
        key = staging_key(bundle)
        archive = self.settings.archives_dir / f"{key}.zip"
        staging = self.settings.archives_dir / key

        try:
            async with self._network:
                await self.fetcher.fetch(bundle.owner, bundle.name, marker, archive)
            await asyncio.to_thread(_stage_and_install, archive, staging, bundle.name, marker, destination)
        finally:
            _discard(archive, staging)


def _stage_and_install(archive: Path, staging: Path, repo: str, marker: str, destination: Path) -> None:
    if staging.exists():
        try:
            shutil.rmtree(staging)
        except OSError as e:
            raise UnpackError(f"cannot reset staging directory {staging}: {e}") from e

    unpack(archive, staging)
    install(locate_snapshot(staging, repo, marker), destination)


def _discard(archive: Path, staging: Path) -> None:
    try:
        archive.unlink(missing_ok=True)
    except OSError as e:
        logger.warning(f"Failed to remove archive {archive}: {e}")
    if staging.exists():
        shutil.rmtree(staging, ignore_errors=True)


async def synchronize(
    settings: SyncSettings,
    bundles: List[BundleDescriptor],
    store: VersionStore,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> SyncReport:
    """
    Run a full pass: load records, clean, sync every bundle, persist.

    In force mode the previous records are discarded; in list-only mode
    nothing is installed, removed or written.
    """
    if settings.force:
        previous: Dict[str, InstallRecord] = {}
        if not settings.list_only:
            store.clear()
    else:
        previous = store.load()

    removed: List[str] = []
    if settings.clean:
        removed = clean(bundles, previous, settings.install_root, dry_run=settings.list_only)

    async with build_client(settings, transport) as client:
        coordinator = SyncCoordinator(
            settings,
            BranchResolver(client, settings.api_base_url, settings.primary_branch),
            ArchiveFetcher(client, settings.archive_base_url),
        )
        report = await coordinator.run(bundles, previous)

    report.removed = removed
    if not settings.list_only:
        store.save(report.records)

    logger.info(
        f"Pass finished: {len(report.installed)} installed, {len(report.up_to_date)} up to date, "
        f"{len(report.pending)} pending, {len(report.failed)} failed"
    )
    return report
