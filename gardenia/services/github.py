"""
Query branches and download source archives from GitHub.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional

import aiofiles
import httpx
from pydantic import ValidationError

from gardenia.domain.errors import BranchNotFoundError, FetchError, ResolutionError
from gardenia.domain.models import (
    DEFAULT_API_BASE_URL,
    DEFAULT_ARCHIVE_BASE_URL,
    DEFAULT_PRIMARY_BRANCH,
    Branch,
    SyncSettings,
)

logger = logging.getLogger(__name__)


def build_client(settings: SyncSettings, transport: Optional[httpx.AsyncBaseTransport] = None) -> httpx.AsyncClient:
    """
    Create the HTTP client shared by every bundle of a pass.

    ``transport`` is only passed in tests.
    """
    headers: Dict[str, str] = {"Accept": "application/vnd.github+json"}
    if settings.api_token:
        headers["Authorization"] = f"Bearer {settings.api_token}"
    return httpx.AsyncClient(
        headers=headers,
        follow_redirects=True,
        timeout=settings.timeout,
        transport=transport,
    )


class BranchResolver:
    """Finds the commit at the tip of a bundle's primary branch."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str = DEFAULT_API_BASE_URL,
        primary_branch: str = DEFAULT_PRIMARY_BRANCH,
    ):
        self.client = client
        self.base_url = base_url.rstrip("/")
        self.primary_branch = primary_branch

    async def list_branches(self, owner: str, repo: str) -> List[Branch]:
        """
        List every branch of ``owner/repo``, following ``Link: rel="next"`` pages.

        Raises:
            ResolutionError: on transport failure, error status or undecodable payload.
        """
        url: Optional[str] = f"{self.base_url}/repos/{owner}/{repo}/branches"
        branches: List[Branch] = []

        while url:
            logger.debug(f"Listing branches from {url}")
            try:
                response = await self.client.get(url)
                response.raise_for_status()
                payload = response.json()
            except httpx.HTTPError as e:
                raise ResolutionError(f"[{owner}/{repo}] cannot list branches: {e}") from e
            except ValueError as e:
                raise ResolutionError(f"[{owner}/{repo}] invalid branch listing: {e}") from e

            if not isinstance(payload, list):
                raise ResolutionError(f"[{owner}/{repo}] invalid branch listing: expected an array")

            try:
                branches.extend(Branch.model_validate(item) for item in payload)
            except ValidationError as e:
                raise ResolutionError(f"[{owner}/{repo}] invalid branch listing: {e}") from e

            url = response.links.get("next", {}).get("url")

        return branches

    async def resolve(self, owner: str, repo: str) -> str:
        """
        Return the commit marker at the tip of the primary branch.

        Raises:
            BranchNotFoundError: if no branch carries the primary name.
            ResolutionError: if the listing itself fails.
        """
        for branch in await self.list_branches(owner, repo):
            if branch.name == self.primary_branch:
                return branch.commit.sha
        raise BranchNotFoundError(f"{owner}/{repo}", self.primary_branch)


class ArchiveFetcher:
    """Downloads full zip snapshots of a repository at a given commit."""

    def __init__(self, client: httpx.AsyncClient, base_url: str = DEFAULT_ARCHIVE_BASE_URL):
        self.client = client
        self.base_url = base_url.rstrip("/")

    def archive_url(self, owner: str, repo: str, marker: str) -> str:
        return f"{self.base_url}/{owner}/{repo}/archive/{marker}.zip"

    async def fetch(self, owner: str, repo: str, marker: str, dest: Path) -> Path:
        """
        Stream the archive for ``marker`` into ``dest``.

        The body is written to a temporary sibling first so a failed
        download never leaves a truncated archive at ``dest``.

        Raises:
            FetchError: on transport failure, error status or write failure.
        """
        url = self.archive_url(owner, repo, marker)
        tmp_path = dest.with_name(f"{dest.name}.tmp")
        logger.debug(f"Downloading archive from {url}")

        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            async with self.client.stream("GET", url) as response:
                response.raise_for_status()
                async with aiofiles.open(tmp_path, "wb") as f:
                    async for chunk in response.aiter_bytes():
                        await f.write(chunk)
            tmp_path.replace(dest)
        except (httpx.HTTPError, OSError) as e:
            tmp_path.unlink(missing_ok=True)
            raise FetchError(f"[{owner}/{repo}] download of {marker} failed: {e}") from e

        return dest

