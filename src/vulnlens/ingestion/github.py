"""Fetch analyzable source files from a public GitHub repository.

Walks the repository contents API depth-first, downloading files
with a supported extension until the file cap is reached. Build and
dependency directories are never entered.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any, TypeAlias
from urllib.parse import quote, urlsplit

import httpx
from pydantic import BaseModel, Field

from vulnlens.config import Settings
from vulnlens.constants import (
    GITHUB_API_URL,
    GITHUB_MAX_FILE_BYTES,
    GITHUB_MAX_FILES,
    GITHUB_REQUEST_DELAY,
    GITHUB_SKIP_DIRECTORIES,
    is_supported_file,
)
from vulnlens.streaming.events import CodeFile

logger = logging.getLogger(__name__)

ProgressCallback: TypeAlias = Callable[[str], None]


class RepositoryFetchError(Exception):
    """Fetching the repository failed."""

    status_code: int | None = None


class InvalidRepositoryUrl(RepositoryFetchError):
    pass


class RepositoryNotFound(RepositoryFetchError):
    status_code = 404


class RateLimitExceeded(RepositoryFetchError):
    status_code = 403


class NoSupportedFiles(RepositoryFetchError):
    pass


@dataclass(frozen=True)
class RepositoryRef:
    """Parsed ``github.com/<owner>/<repo>[/tree|blob/<branch>/<path>]``."""

    owner: str
    repo: str
    branch: str | None = None
    path: str | None = None

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"


class RepositorySummary(BaseModel):
    total_files: int
    repository: str


class FetchedRepository(BaseModel):
    files: list[CodeFile] = Field(default_factory=lambda: list[CodeFile]())
    summary: RepositorySummary


def parse_github_url(url: str) -> RepositoryRef:
    """Parse a GitHub repository URL.

    A missing scheme is tolerated (``github.com/owner/repo``).

    Raises:
        InvalidRepositoryUrl: not a github.com URL with owner and repo.
    """
    text = url.strip()
    if "://" not in text:
        text = "https://" + text
    parts = urlsplit(text)
    host = (parts.hostname or "").lower()
    if host != "github.com" and not host.endswith(".github.com"):
        raise InvalidRepositoryUrl("Invalid GitHub URL")

    segments = [s for s in parts.path.split("/") if s]
    if len(segments) < 2:
        raise InvalidRepositoryUrl("Invalid GitHub URL")

    owner, repo = segments[0], segments[1].removesuffix(".git")
    branch: str | None = None
    path: str | None = None
    if len(segments) > 3 and segments[2] in ("tree", "blob"):
        branch = segments[3]
        if len(segments) > 4:
            path = "/".join(segments[4:])
    return RepositoryRef(owner=owner, repo=repo, branch=branch, path=path)


def _raise_for_listing(response: httpx.Response) -> None:
    if response.status_code == 404:
        raise RepositoryNotFound(
            "Repository not found or is private. "
            "Check the URL or provide a token."
        )
    if response.status_code == 403:
        raise RateLimitExceeded(
            "GitHub API rate limit exceeded. Please provide a GitHub token."
        )
    if response.is_error:
        err = RepositoryFetchError(
            f"Failed to fetch repository: {response.reason_phrase}"
        )
        err.status_code = response.status_code
        raise err


class GitHubFetcher:
    """Collects ``CodeFile``s from the GitHub contents API."""

    def __init__(
        self,
        *,
        max_files: int = GITHUB_MAX_FILES,
        max_file_bytes: int = GITHUB_MAX_FILE_BYTES,
        skip_directories: Iterable[str] = GITHUB_SKIP_DIRECTORIES,
        request_delay: float = GITHUB_REQUEST_DELAY,
        base_url: str = GITHUB_API_URL,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.max_files = max_files
        self.max_file_bytes = max_file_bytes
        self.skip_directories = frozenset(skip_directories)
        self.request_delay = request_delay
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> GitHubFetcher:
        return cls(
            max_files=settings.github_max_files,
            max_file_bytes=settings.github_max_file_bytes,
            skip_directories=settings.skip_directories,
            request_delay=settings.github_request_delay_seconds,
            transport=transport,
        )

    async def fetch(
        self,
        url: str,
        token: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> FetchedRepository:
        """Download the supported source files of the repository at *url*.

        Raises:
            InvalidRepositoryUrl: *url* cannot be parsed.
            RepositoryNotFound: 404 (missing or private repository).
            RateLimitExceeded: 403 from the contents API.
            RepositoryFetchError: any other listing failure.
            NoSupportedFiles: nothing analyzable was found.
        """
        ref = parse_github_url(url)
        headers = {"Accept": "application/vnd.github.v3+json"}
        if token:
            headers["Authorization"] = f"token {token}"

        collected: list[CodeFile] = []
        async with httpx.AsyncClient(
            timeout=self.timeout,
            transport=self._transport,
            follow_redirects=True,
        ) as client:
            try:
                await self._collect(
                    client, ref, ref.path or "", headers,
                    collected, on_progress,
                )
            except httpx.HTTPError as exc:
                raise RepositoryFetchError(
                    f"Failed to fetch repository: {exc}"
                ) from exc

        if not collected:
            raise NoSupportedFiles("No supported code files found")

        logger.info(
            "event=repository_fetched repository=%s files=%d",
            ref.full_name,
            len(collected),
        )
        return FetchedRepository(
            files=collected,
            summary=RepositorySummary(
                total_files=len(collected),
                repository=ref.full_name,
            ),
        )

    async def _list_contents(
        self,
        client: httpx.AsyncClient,
        ref: RepositoryRef,
        path: str,
        headers: dict[str, str],
    ) -> list[dict[str, Any]]:
        url = (
            f"{self.base_url}/repos/{ref.owner}/{ref.repo}"
            f"/contents/{quote(path)}"
        )
        params = {"ref": ref.branch} if ref.branch else None
        response = await client.get(url, headers=headers, params=params)
        _raise_for_listing(response)
        data = response.json()
        return data if isinstance(data, list) else [data]

    async def _collect(
        self,
        client: httpx.AsyncClient,
        ref: RepositoryRef,
        path: str,
        headers: dict[str, str],
        collected: list[CodeFile],
        on_progress: ProgressCallback | None,
    ) -> None:
        if len(collected) >= self.max_files:
            return
        if on_progress:
            on_progress(f"Scanning {path or 'root'}...")

        # Be gentle with the API on deep trees
        await asyncio.sleep(self.request_delay)
        items = await self._list_contents(client, ref, path, headers)

        for item in items:
            if len(collected) >= self.max_files:
                break
            kind = item.get("type")
            name = str(item.get("name", ""))
            if kind == "dir":
                if name in self.skip_directories:
                    continue
                await self._collect(
                    client, ref, str(item.get("path", name)),
                    headers, collected, on_progress,
                )
            elif kind == "file" and item.get("download_url"):
                if not is_supported_file(name):
                    continue
                if int(item.get("size", 0)) > self.max_file_bytes:
                    continue
                item_path = str(item.get("path", name))
                if on_progress:
                    on_progress(f"Fetching {name}...")
                content = await self._download(
                    client, str(item["download_url"]), item_path
                )
                if content is not None:
                    collected.append(
                        CodeFile(name=item_path, content=content)
                    )

    async def _download(
        self, client: httpx.AsyncClient, url: str, path: str
    ) -> str | None:
        """Fetch raw file content; a failure skips just this file."""
        try:
            response = await client.get(url)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning(
                "event=file_download_failed path=%s error=%s", path, exc
            )
            return None
        return response.text
