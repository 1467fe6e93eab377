"""Girder REST adapter for the store holding simulation output.

Docs: https://girder.readthedocs.io/en/latest/user-guide.html#the-girder-rest-api

Only the read-only queries the loaders need are exposed. Records are returned
as Girder sends them (dicts keyed by ``_id``, ``name``, ``meta``...).
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import httpx

from simviewer.config import AppConfig, config as default_config
from simviewer.exceptions import FetchError, NotFoundError
from simviewer.services.file_cache import FileCache

logger = logging.getLogger(__name__)


class DataStore(ABC):
    """Query surface the loaders consume. ``limit=0`` means no cap."""

    @abstractmethod
    async def list_folders(
        self, parent_type: str, parent_id: str, limit: int = 0
    ) -> list[dict[str, Any]]:
        """List child folders of a folder or collection."""

    @abstractmethod
    async def get_folder(self, folder_id: str) -> dict[str, Any]:
        """Fetch one folder record, including its ``meta`` dict."""

    @abstractmethod
    async def list_items(self, folder_id: str, name: str, limit: int = 0) -> list[dict[str, Any]]:
        """List items named ``name`` inside a folder."""

    @abstractmethod
    async def list_files(self, item_id: str, limit: int = 0) -> list[dict[str, Any]]:
        """List the files attached to an item."""

    @abstractmethod
    async def download_file(self, file_id: str) -> bytes:
        """Download the body of a file."""


QUERY_LANE = "query"
DOWNLOAD_LANE = "download"


class GirderStore(DataStore):
    """Async Girder client with per-lane throttling and an optional body cache.

    Listing queries and file downloads are spaced independently, each at
    its own requests-per-second rate (0 disables spacing for that lane).
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        rate: float = 0.0,
        page_size: int = 0,
        api_key: str = "",
        cache: FileCache | None = None,
        download_rate: float = 0.0,
    ):
        self.http = http
        self.page_size = page_size
        self.api_key = api_key
        self.cache = cache
        self._intervals = {
            QUERY_LANE: 1.0 / rate if rate > 0 else 0.0,
            DOWNLOAD_LANE: 1.0 / download_rate if download_rate > 0 else 0.0,
        }
        self._next_slot = {QUERY_LANE: 0.0, DOWNLOAD_LANE: 0.0}
        self._token: str | None = None
        self._token_lock = asyncio.Lock()

    async def _throttle(self, lane: str) -> None:
        """Reserve the next free send slot in ``lane`` and sleep until it."""
        interval = self._intervals[lane]
        if not interval:
            return
        now = asyncio.get_running_loop().time()
        # no await between reading and advancing the slot
        slot = max(now, self._next_slot[lane])
        self._next_slot[lane] = slot + interval
        if slot > now:
            await asyncio.sleep(slot - now)

    async def _headers(self) -> dict[str, str]:
        if not self.api_key:
            return {}
        if self._token is None:
            async with self._token_lock:
                if self._token is None:
                    resp = await self._request(
                        "POST", "api_key/token", stage="token", resource_id="api_key",
                        params={"key": self.api_key}, authenticate=False,
                    )
                    self._token = resp.json()["authToken"]["token"]
        return {"Girder-Token": self._token}

    async def _request(
        self,
        method: str,
        path: str,
        *,
        stage: str,
        resource_id: str,
        params: dict | None = None,
        authenticate: bool = True,
        lane: str = QUERY_LANE,
    ) -> httpx.Response:
        """Send one request, mapping transport and status errors to FetchError."""
        headers = await self._headers() if authenticate else {}
        await self._throttle(lane)
        try:
            resp = await self.http.request(method, path, params=params, headers=headers)
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                raise NotFoundError(resource_id, stage) from e
            raise FetchError(resource_id, stage, f"HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise FetchError(resource_id, stage, str(e) or type(e).__name__) from e
        return resp

    async def _get_json(self, path: str, *, stage: str, resource_id: str, params: dict | None = None):
        resp = await self._request("GET", path, stage=stage, resource_id=resource_id, params=params)
        try:
            return resp.json()
        except ValueError as e:
            raise FetchError(resource_id, stage, "response is not JSON") from e

    async def list_folders(
        self, parent_type: str, parent_id: str, limit: int = 0
    ) -> list[dict[str, Any]]:
        params = {"parentType": parent_type, "parentId": parent_id}
        if limit or not self.page_size:
            return await self._get_json(
                "folder", stage="folder", resource_id=parent_id, params={**params, "limit": limit},
            )

        # Exhaust pagination: keep asking until a short page comes back
        folders: list[dict[str, Any]] = []
        offset = 0
        while True:
            page = await self._get_json(
                "folder", stage="folder", resource_id=parent_id,
                params={**params, "limit": self.page_size, "offset": offset},
            )
            folders.extend(page)
            if len(page) < self.page_size:
                break
            offset += len(page)
        logger.debug("Listed %d folders under %s in pages of %d", len(folders), parent_id, self.page_size)
        return folders

    async def get_folder(self, folder_id: str) -> dict[str, Any]:
        return await self._get_json(f"folder/{folder_id}", stage="folder", resource_id=folder_id)

    async def list_items(self, folder_id: str, name: str, limit: int = 0) -> list[dict[str, Any]]:
        return await self._get_json(
            "item", stage="item", resource_id=folder_id,
            params={"folderId": folder_id, "name": name, "limit": limit},
        )

    async def list_files(self, item_id: str, limit: int = 0) -> list[dict[str, Any]]:
        return await self._get_json(
            f"item/{item_id}/files", stage="file", resource_id=item_id, params={"limit": limit},
        )

    async def download_file(self, file_id: str) -> bytes:
        cache_key = f"file/{file_id}"
        if self.cache is not None:
            cached = self.cache.get(cache_key)
            if cached is not None:
                logger.debug("Cache hit for file %s", file_id)
                return cached

        resp = await self._request(
            "GET", f"file/{file_id}/download", stage="download", resource_id=file_id,
            lane=DOWNLOAD_LANE,
        )
        data = resp.content
        if self.cache is not None:
            self.cache.put(cache_key, data)
        return data


@asynccontextmanager
async def open_store(cfg: AppConfig | None = None) -> AsyncIterator[GirderStore]:
    """Yield a GirderStore over a fresh httpx client, closed on exit."""
    cfg = cfg or default_config
    cache = FileCache(cfg.cache.dir) if cfg.cache.dir else None
    async with httpx.AsyncClient(
        base_url=cfg.girder.api_root,
        timeout=cfg.girder.timeout,
        follow_redirects=True,
    ) as http:
        yield GirderStore(
            http,
            rate=cfg.girder.requests_per_second,
            page_size=cfg.girder.page_size,
            api_key=cfg.girder.api_key,
            cache=cache,
            download_rate=cfg.girder.downloads_per_second,
        )
