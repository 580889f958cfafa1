"""Downloadable content packs: registry, streaming download, ZIP install, uninstall.

Pack archives are ZIP files whose members are addressed by each resource's
``path``:

- ``article`` / ``guide``: a JSON article object, a list of them, or
  ``{"articles": [...]}``.
- ``ink-story`` / ``places``: any JSON document, stored in ``data_content``.
- ``map-tiles``: a directory prefix holding ``{z}/{x}/{y}.png`` members.

``ai-model`` packs are not archives: the downloaded file is moved under the
models directory and only a reference is recorded in ``ai_models``.

Every key a pack writes is recorded on its ``content_packs`` record as
``"<store>/<key>"`` so uninstall can remove exactly that content.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import os
import re
import tempfile
import urllib.parse
import zipfile
from collections.abc import Callable
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

import httpx

from urban_offline.config import PacksCfg
from urban_offline.content.html import plain_text
from urban_offline.content.importer import ContentImporter
from urban_offline.datasets.models import DatasetRecord, utc_now
from urban_offline.datasets.pack_schema import (
    MB,
    PackCategory,
    PackManifest,
    PackResource,
    PackStatus,
    ResourceType,
    compare_versions,
    example_manifests,
    format_size,
    parse_manifest,
)
from urban_offline.errors import (
    DownloadCancelledError,
    InvalidInputError,
    OfflineError,
    PackError,
    TransientFetchError,
)
from urban_offline.search.base import SearchEngine
from urban_offline.storage.base import StorageAdapter
from urban_offline.storage.stores import (
    AI_MODELS,
    CONTENT_PACKS,
    CONTENT_STORES,
    DATA_CONTENT,
    GUIDE_CONTENT,
    HEALTH_CONTENT,
    LAW_CONTENT,
    MAP_TILES,
    SURVIVAL_CONTENT,
)
from urban_offline.tiles.cache import TileCache
from urban_offline.tiles.geometry import TileCoord

logger = logging.getLogger(__name__)

PackProgressCallback = Callable[[int, str], None]

ARTICLE_STORES: dict[PackCategory, str] = {
    PackCategory.MEDICAL: HEALTH_CONTENT,
    PackCategory.LEGAL: LAW_CONTENT,
    PackCategory.SURVIVAL: SURVIVAL_CONTENT,
}

DOWNLOAD_SHARE = 80
INSTALL_START = 85

_TILE_MEMBER_RE = re.compile(r"(\d+)/(\d+)/(\d+)\.(?:png|jpe?g|webp)$", re.IGNORECASE)


@dataclass
class AvailablePack:
    """A registry manifest joined with its local install state."""

    manifest: PackManifest
    status: PackStatus
    installed_version: str | None = None
    installed_at: str | None = None


@dataclass
class PackStorageUsage:
    bytes: int
    display: str
    pack_count: int


def _content_id(store: str, key: str) -> str:
    return f"{store}/{key}"


def _split_content_id(content_id: str) -> tuple[str, str]:
    store, _, key = content_id.partition("/")
    return store, key


class ContentPackManager:
    """Install and remove content packs.

    Args:
        storage: Initialised storage adapter.
        tile_cache: Receives ``map-tiles`` resources.
        client: HTTP client for the registry and pack downloads. The caller
            owns and closes it.
        search: Rebuilt once after content is added or removed. None skips it.
        config: Registry and download settings.
        data_dir: Root for in-progress downloads and model files.
    """

    def __init__(
        self,
        storage: StorageAdapter,
        tile_cache: TileCache,
        client: httpx.AsyncClient,
        search: SearchEngine | None = None,
        config: PacksCfg | None = None,
        data_dir: Path | str = ".urban-offline",
    ) -> None:
        self._storage = storage
        self._tiles = tile_cache
        self._client = client
        self._search = search
        self._cfg = config or PacksCfg()
        self._importer = ContentImporter(storage)
        self._downloads_dir = Path(data_dir) / "downloads"
        self._models_dir = Path(data_dir) / "models"
        self._progress: dict[str, int] = {}
        self._aborts: dict[str, asyncio.Event] = {}

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    async def _fetch_registry(self) -> list[PackManifest]:
        url = self._cfg.registry_url
        if not url:
            return []
        try:
            response = await self._client.get(url, timeout=self._cfg.timeout_seconds)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Could not fetch pack registry %s, using built-in packs: %s", url, exc)
            return []

        manifests: list[PackManifest] = []
        for raw in data.get("packs", []) if isinstance(data, dict) else []:
            try:
                manifests.append(parse_manifest(raw))
            except InvalidInputError as exc:
                logger.warning("Skipping registry entry: %s", exc)
        return manifests

    async def get_available_packs(self, category: str | None = None) -> list[AvailablePack]:
        """Registry packs (or the built-in examples) with their install status."""
        manifests = await self._fetch_registry()
        if not manifests:
            logger.debug("Using built-in example packs")
            manifests = example_manifests()

        installed = {r.id: r for r in await self.get_installed_packs()}
        available: list[AvailablePack] = []
        for manifest in manifests:
            if category is not None and manifest.category.value != category:
                continue
            record = installed.get(manifest.id)
            if record is None:
                available.append(AvailablePack(manifest, PackStatus.NOT_INSTALLED))
                continue
            newer = compare_versions(manifest.version, record.version or "0") > 0
            available.append(
                AvailablePack(
                    manifest,
                    PackStatus.UPDATE_AVAILABLE if newer else PackStatus.INSTALLED,
                    installed_version=record.version,
                    installed_at=record.installed_at,
                )
            )
        return available

    async def get_installed_packs(self) -> list[DatasetRecord]:
        records = [DatasetRecord.from_dict(raw) for raw in await self._storage.get_all(CONTENT_PACKS)]
        return [r for r in records if r.is_installed]

    async def get_record(self, pack_id: str) -> DatasetRecord | None:
        raw = await self._storage.get(CONTENT_PACKS, pack_id)
        return DatasetRecord.from_dict(raw) if raw is not None else None

    async def is_installed(self, pack_id: str) -> bool:
        record = await self.get_record(pack_id)
        return record is not None and record.is_installed

    # ------------------------------------------------------------------
    # Download progress / cancellation
    # ------------------------------------------------------------------

    def download_progress(self, pack_id: str) -> int:
        """Progress 0-100 of an in-flight download, or -1 when idle."""
        return self._progress.get(pack_id, -1)

    def cancel_download(self, pack_id: str) -> bool:
        """Signal an in-flight download to stop. Returns False if none is running."""
        abort = self._aborts.get(pack_id)
        if abort is None:
            return False
        abort.set()
        return True

    # ------------------------------------------------------------------
    # Install
    # ------------------------------------------------------------------

    async def download_pack(
        self, pack_id: str, on_progress: PackProgressCallback | None = None
    ) -> DatasetRecord:
        """Download, verify and install *pack_id*, returning its ``installed`` record.

        Progress runs 0-80 while downloading and 85-100 while installing.

        Raises:
            InvalidInputError: Unknown pack id.
            PackError: Unmet dependency, checksum mismatch, unreadable archive,
                or a download of this pack is already running.
            DownloadCancelledError: cancel_download() was called.
            TransientFetchError: The download failed.
            QuotaExceededError: Storage ran out while installing.
        """
        manifest = next(
            (a.manifest for a in await self.get_available_packs() if a.manifest.id == pack_id),
            None,
        )
        if manifest is None:
            raise InvalidInputError(f"Unknown pack '{pack_id}'")
        for dep in manifest.required:
            if not await self.is_installed(dep):
                raise PackError(f"Required pack not installed: {dep}")
        if pack_id in self._aborts:
            raise PackError(f"Pack '{pack_id}' is already downloading")

        abort = asyncio.Event()
        self._aborts[pack_id] = abort
        self._progress[pack_id] = 0

        def report(percent: int, message: str) -> None:
            self._progress[pack_id] = percent
            if on_progress is not None:
                on_progress(percent, message)

        previous = await self.get_record(pack_id)
        kept = list(previous.content_ids) if previous is not None else []
        # The previous version's content stays recorded until this attempt settles.
        record = replace(manifest.new_record(), content_ids=kept).downloading()
        written: list[str] = []
        try:
            await self._storage.put(CONTENT_PACKS, record.to_dict())
            report(0, "Starting download...")
            path = await self._download(manifest, abort, report)
            try:
                report(INSTALL_START, "Installing...")
                await self._install(manifest, path, abort, written, report)
            finally:
                path.unlink(missing_ok=True)

            installed = replace(record, content_ids=list(written)).installed()
            await self._storage.put(CONTENT_PACKS, installed.to_dict())
            if previous is not None:
                current = set(written)
                await self._remove_content([c for c in previous.content_ids if c not in current])
            report(100, "Complete!")
        except (Exception, asyncio.CancelledError) as exc:
            await self._record_failure(record, [c for c in written if c not in kept], exc)
            raise
        finally:
            self._progress.pop(pack_id, None)
            self._aborts.pop(pack_id, None)

        logger.info("Installed pack %s %s", manifest.id, manifest.version)
        return installed

    async def _record_failure(
        self, record: DatasetRecord, written: list[str], exc: BaseException
    ) -> None:
        """Remove what this attempt wrote, then mark *record* failed. Never raises over *exc*."""
        message = "Download cancelled" if isinstance(exc, DownloadCancelledError) else str(exc)
        if isinstance(exc, DownloadCancelledError):
            logger.info("Download of pack %s cancelled", record.id)
        else:
            logger.error("Install of pack %s failed: %s", record.id, message or type(exc).__name__)
        await self._remove_content(written)
        try:
            await self._storage.put(CONTENT_PACKS, record.failed(message or type(exc).__name__).to_dict())
        except OfflineError:
            logger.error("Could not record failed install of pack %s", record.id, exc_info=True)

    def _resolve_url(self, url: str) -> str:
        if urllib.parse.urlparse(url).scheme in ("http", "https"):
            return url
        base = self._cfg.base_url or self._cfg.registry_url
        if not base:
            raise PackError(f"Cannot resolve relative download URL '{url}': packs.base_url is not set")
        return urllib.parse.urljoin(base, url)

    async def _download(
        self,
        manifest: PackManifest,
        abort: asyncio.Event,
        report: PackProgressCallback,
    ) -> Path:
        """Stream the pack to a temporary file, checking cancellation and checksum."""
        url = self._resolve_url(manifest.download_url)
        self._downloads_dir.mkdir(parents=True, exist_ok=True)
        fd, name = tempfile.mkstemp(prefix=f"{manifest.id}-", suffix=".part", dir=self._downloads_dir)
        path = Path(name)
        digest = hashlib.sha256()
        received = 0
        try:
            with os.fdopen(fd, "wb") as fh:
                async with self._client.stream(
                    "GET", url, timeout=self._cfg.timeout_seconds
                ) as response:
                    if not response.is_success:
                        raise TransientFetchError(f"Download failed: {response.status_code}")
                    total = int(response.headers.get("Content-Length") or 0) or manifest.size
                    async for chunk in response.aiter_bytes():
                        if abort.is_set():
                            raise DownloadCancelledError("Download cancelled")
                        fh.write(chunk)
                        digest.update(chunk)
                        received += len(chunk)
                        report(
                            min(DOWNLOAD_SHARE, round(received / total * DOWNLOAD_SHARE)),
                            f"Downloading... {format_size(received)} / {format_size(total)}",
                        )
            if abort.is_set():
                raise DownloadCancelledError("Download cancelled")
        except BaseException as exc:
            path.unlink(missing_ok=True)
            if isinstance(exc, httpx.HTTPError):
                raise TransientFetchError(f"Download of {manifest.id} failed: {exc}") from exc
            raise

        if manifest.checksum and digest.hexdigest() != manifest.checksum:
            path.unlink(missing_ok=True)
            raise PackError(f"Checksum mismatch for pack {manifest.id}")
        return path

    async def _install(
        self,
        manifest: PackManifest,
        path: Path,
        abort: asyncio.Event,
        written: list[str],
        report: PackProgressCallback,
    ) -> None:
        if manifest.category is PackCategory.AI_MODEL:
            await self._install_model(manifest, path, written)
            return

        try:
            archive = zipfile.ZipFile(path)
        except zipfile.BadZipFile as exc:
            raise PackError(f"Pack {manifest.id} is not a valid archive") from exc

        with archive:
            names = set(archive.namelist())
            count = len(manifest.resources)
            for done, resource in enumerate(manifest.resources, start=1):
                if abort.is_set():
                    raise DownloadCancelledError("Download cancelled")
                await self._install_resource(manifest, resource, archive, names, written)
                share = 100 - INSTALL_START
                report(INSTALL_START + round(done / count * share), "Installing content...")

        if self._search is not None and self._touches_search(written):
            await self._search.rebuild_index()

    async def _install_resource(
        self,
        manifest: PackManifest,
        resource: PackResource,
        archive: zipfile.ZipFile,
        names: set[str],
        written: list[str],
    ) -> None:
        if resource.type is ResourceType.MAP_TILES:
            await self._install_tiles(resource, archive, names, written)
            return
        if resource.type in (ResourceType.MODEL, ResourceType.VECTOR_INDEX):
            logger.debug("Skipping %s resource %s in pack %s", resource.type.value, resource.id, manifest.id)
            return

        if resource.path not in names:
            raise PackError(f"Pack {manifest.id} is missing {resource.path}")
        try:
            payload = json.loads(archive.read(resource.path).decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise PackError(f"Pack {manifest.id}: {resource.path} is not valid JSON") from exc

        if resource.type in (ResourceType.INK_STORY, ResourceType.PLACES):
            item = {
                "id": resource.id,
                "type": resource.type.value,
                "packId": manifest.id,
                "data": payload,
                "installedAt": utc_now(),
            }
            key = await self._storage.put(DATA_CONTENT, item)
            written.append(_content_id(DATA_CONTENT, key))
            return

        for article in self._articles(payload, resource):
            article = {**article, "packId": manifest.id}
            if resource.type is ResourceType.GUIDE:
                key = await self._importer.import_guide(article)
                written.append(_content_id(GUIDE_CONTENT, key))
                continue
            store = ARTICLE_STORES.get(manifest.category, HEALTH_CONTENT)
            if store == SURVIVAL_CONTENT and not article.get("searchableText"):
                article["searchableText"] = plain_text(article.get("content"))
            key = await self._importer.import_item(store, article)
            written.append(_content_id(store, key))

    @staticmethod
    def _articles(payload: Any, resource: PackResource) -> list[dict[str, Any]]:
        if isinstance(payload, dict) and isinstance(payload.get("articles"), list):
            items = payload["articles"]
        elif isinstance(payload, list):
            items = payload
        else:
            items = [payload]
        articles: list[dict[str, Any]] = []
        for item in items:
            if not isinstance(item, dict):
                raise PackError(f"Resource {resource.id} holds a non-object article")
            if len(items) == 1 and not item.get("id"):
                item = {**item, "id": resource.id}
            articles.append(item)
        return articles

    async def _install_tiles(
        self,
        resource: PackResource,
        archive: zipfile.ZipFile,
        names: set[str],
        written: list[str],
    ) -> None:
        prefix = resource.path.rstrip("/") + "/" if resource.path.strip("/") else ""
        stored = 0
        for name in sorted(names):
            if not name.startswith(prefix):
                continue
            match = _TILE_MEMBER_RE.fullmatch(name[len(prefix):])
            if match is None:
                continue
            z, x, y = (int(v) for v in match.groups())
            coord = TileCoord(z=z, x=x, y=y)
            if await self._tiles.store_tile(coord, archive.read(name)):
                written.append(_content_id(MAP_TILES, coord.key))
                stored += 1
        logger.info("Installed %d tiles from %s", stored, resource.id)

    async def _install_model(self, manifest: PackManifest, path: Path, written: list[str]) -> None:
        model = next((r for r in manifest.resources if r.type is ResourceType.MODEL), None)
        filename = Path(model.path).name if model else f"{manifest.id}.bin"
        target = self._models_dir / manifest.id / filename
        target.parent.mkdir(parents=True, exist_ok=True)
        os.replace(path, target)
        key = await self._storage.put(
            AI_MODELS,
            {
                "id": manifest.id,
                "name": manifest.name,
                "path": str(target),
                "size": manifest.size,
                "version": manifest.version,
                "installedAt": utc_now(),
            },
        )
        written.append(_content_id(AI_MODELS, key))

    @staticmethod
    def _touches_search(content_ids: list[str]) -> bool:
        return any(_split_content_id(c)[0] in CONTENT_STORES for c in content_ids)

    # ------------------------------------------------------------------
    # Uninstall
    # ------------------------------------------------------------------

    async def uninstall_pack(self, pack_id: str) -> bool:
        """Remove a pack's content and record. Returns False if it is not installed."""
        record = await self.get_record(pack_id)
        if record is None:
            return False
        await self._remove_content(record.content_ids)
        await self._storage.delete(CONTENT_PACKS, pack_id)
        logger.info("Uninstalled pack %s", pack_id)
        return True

    async def _remove_content(self, content_ids: list[str]) -> None:
        """Best-effort delete of pack content. Failures are logged, never raised."""
        if not content_ids:
            return
        for content_id in content_ids:
            store, key = _split_content_id(content_id)
            try:
                if store == AI_MODELS:
                    model = await self._storage.get(AI_MODELS, key)
                    if isinstance(model, dict) and model.get("path"):
                        Path(model["path"]).unlink(missing_ok=True)
                await self._storage.delete(store, key)
            except (OfflineError, OSError):
                logger.warning("Could not remove %s", content_id, exc_info=True)
        if self._search is not None and self._touches_search(content_ids):
            try:
                await self._search.rebuild_index()
            except OfflineError:
                logger.warning("Search rebuild after pack removal failed", exc_info=True)

    async def get_storage_usage(self) -> PackStorageUsage:
        """Declared size of installed packs."""
        installed = await self.get_installed_packs()
        total = sum(int(record.size * MB) for record in installed)
        return PackStorageUsage(bytes=total, display=format_size(total), pack_count=len(installed))
