"""Shared test fixtures for gardenia."""

from __future__ import annotations

import asyncio
import io
import zipfile
from pathlib import Path
from typing import Dict, List, Optional, Set

import httpx
import pytest

from gardenia.domain.models import SyncSettings


def make_archive(repo: str, marker: str, files: Optional[Dict[str, str]] = None) -> bytes:
    """Build a zip laid out like a GitHub archive: one ``<repo>-<marker>/`` top directory."""
    top = f"{repo}-{marker}"
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        zf.writestr(f"{top}/", "")
        for rel_path, content in (files or {"README.md": f"{repo} at {marker}\n"}).items():
            zf.writestr(f"{top}/{rel_path}", content)
    return buf.getvalue()


class FakeGitHub:
    """In-memory stand-in for the branch-listing and archive endpoints."""

    def __init__(self) -> None:
        self.tips: Dict[str, str] = {}
        self.branches: Dict[str, str] = {}
        self.files: Dict[str, Dict[str, str]] = {}
        self.unreachable: Set[str] = set()
        self.broken_downloads: Set[str] = set()
        self.branch_requests: List[str] = []
        self.downloads: List[str] = []
        self.delays: Dict[str, float] = {}
        self.latency = 0.0
        self.in_flight = 0
        self.peak_in_flight = 0

    def publish(
        self,
        identity: str,
        marker: str,
        files: Optional[Dict[str, str]] = None,
        branch: str = "master",
    ) -> None:
        self.tips[identity] = marker
        self.branches[identity] = branch
        if files is not None:
            self.files[identity] = files

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            return await self._respond(request)
        finally:
            self.in_flight -= 1

    async def _respond(self, request: httpx.Request) -> httpx.Response:
        parts = request.url.path.strip("/").split("/")
        is_api = request.url.host == "api.github.com"
        identity = "/".join(parts[1:3] if is_api else parts[:2])
        await asyncio.sleep(self.latency + self.delays.get(identity, 0.0))

        if is_api:
            self.branch_requests.append(identity)
            if identity in self.unreachable:
                raise httpx.ConnectError("simulated network failure", request=request)
            if identity not in self.tips:
                return httpx.Response(404, json={"message": "Not Found"})
            return httpx.Response(
                200,
                json=[
                    {"name": "gh-pages", "commit": {"sha": "0" * 40, "url": ""}},
                    {
                        "name": self.branches[identity],
                        "commit": {"sha": self.tips[identity], "url": f"https://api.github.com/commits/{identity}"},
                    },
                ],
            )

        if request.url.host == "github.com" and len(parts) == 4 and parts[2] == "archive":
            marker = parts[3][: -len(".zip")]
            self.downloads.append(identity)
            if identity in self.broken_downloads:
                return httpx.Response(500)
            return httpx.Response(200, content=make_archive(parts[1], marker, self.files.get(identity)))

        return httpx.Response(404)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def fake_github() -> FakeGitHub:
    return FakeGitHub()


@pytest.fixture
def install_root(tmp_path: Path) -> Path:
    """Provide an existing, empty install root."""
    root = tmp_path / "vim"
    root.mkdir()
    return root


@pytest.fixture
def settings(tmp_path: Path, install_root: Path) -> SyncSettings:
    cache_dir = tmp_path / "cache"
    (cache_dir / "archives").mkdir(parents=True)
    return SyncSettings(cache_dir=cache_dir, install_root=install_root)
