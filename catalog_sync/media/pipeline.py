"""Media ingestion: resolve attachments, download, repackage videos as HLS."""

from __future__ import annotations

import asyncio
import logging
import pathlib
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Iterable

import httpx

from catalog_sync.errors import DownloadFailed, MediaError, TranscodeFailed
from catalog_sync.ingest.attachments import AttachmentResolver
from catalog_sync.ingest.models import AttachmentInfo, MediaItem, RawMediaItem
from catalog_sync.media.cache import META_FILENAME, VideoCacheRecord, is_cached, write_cache_record
from catalog_sync.media.transcode import HLS_SUFFIXES, PLAYLIST_NAME, HlsTranscoder, purge_hls_output
from catalog_sync.utils.slug import slugify

logger = logging.getLogger(__name__)

VIDEOS_DIR = "videos"
IMAGES_DIR = "images"
DEFAULT_IMAGE_SUFFIX = ".jpg"
CHUNK_SIZE = 1 << 16


@dataclass(slots=True)
class MediaStats:
    videos_transcoded: int = 0
    videos_cached: int = 0
    videos_failed: int = 0
    images_downloaded: int = 0
    images_failed: int = 0
    items_dropped: int = 0


def video_slug(title: str | None, attachment: AttachmentInfo) -> str:
    slug = slugify(title or attachment.name.replace(".", "-"))
    return slug or slugify(attachment.file_token)


def image_path(group: str, owner_id: str, attachment: AttachmentInfo) -> str:
    suffix = pathlib.PurePath(attachment.name).suffix.lower() or DEFAULT_IMAGE_SUFFIX
    return f"{IMAGES_DIR}/{group}/{slugify(owner_id) or attachment.file_token}{suffix}"


def video_url(slug: str) -> str:
    return f"{VIDEOS_DIR}/{slug}/{PLAYLIST_NAME}"


class MediaPipeline:
    def __init__(
        self,
        resolver: AttachmentResolver,
        *,
        session: httpx.AsyncClient,
        public_dir: pathlib.Path,
        scratch_dir: pathlib.Path,
        transcoder: HlsTranscoder | None = None,
        download_timeout: float = 600.0,
        concurrency: int = 3,
        transcode_workers: int = 1,
    ) -> None:
        self.resolver = resolver
        self.public_dir = public_dir
        self.scratch_dir = scratch_dir
        self.transcoder = transcoder or HlsTranscoder()
        self.stats = MediaStats()
        self._session = session
        self._download_timeout = download_timeout
        self._semaphore = asyncio.Semaphore(concurrency)
        self._executor = ThreadPoolExecutor(max_workers=transcode_workers, thread_name_prefix="transcode")

    def close(self) -> None:
        self._executor.shutdown(wait=True)

    async def process_media_items(self, raw_items: Iterable[RawMediaItem]) -> list[MediaItem]:
        """Process every item independently; failed items are logged and left out.

        The result is stably sorted by ``sort_order``.
        """
        items = list(raw_items)
        outcomes = await asyncio.gather(*(self._guarded(raw) for raw in items))
        results = sorted((item for item in outcomes if item is not None), key=lambda m: m.sort_order)
        videos = sum(1 for item in results if item.media_type == "video")
        logger.info("Processed media: %s videos (HLS), %s images", videos, len(results) - videos)
        return results

    async def _guarded(self, raw: RawMediaItem) -> MediaItem | None:
        async with self._semaphore:
            item = await self.process_media_item(raw)
        if item is None:
            self.stats.items_dropped += 1
        return item

    async def process_media_item(self, raw: RawMediaItem) -> MediaItem | None:
        label = raw.title or raw.record_id or "untitled"
        url: str | None
        if raw.is_video:
            if raw.attachment is not None:
                try:
                    url = await self.process_video(raw.attachment, video_slug(raw.title, raw.attachment))
                except MediaError as exc:
                    self.stats.videos_failed += 1
                    logger.error("Failed to process video '%s': %s", label, exc)
                    return None
            else:
                url = raw.external_url
        elif raw.attachment is not None:
            url = await self.localize_image(raw.attachment, "media", raw.record_id or label) or raw.external_url
        else:
            url = raw.external_url
        if not url:
            logger.warning("Media '%s' has no usable attachment or URL, skipping", label)
            return None
        return MediaItem(
            media_type=raw.media_type,
            url=url,
            title=raw.title,
            duration_ms=raw.duration_ms,
            sort_order=raw.sort_order,
        )

    async def process_video(self, attachment: AttachmentInfo, slug: str) -> str:
        """Resolve, download and repackage one video. Returns the playlist URL relative to ``public/``."""
        output_dir = self.public_dir / VIDEOS_DIR / slug
        meta_path = output_dir / META_FILENAME
        if is_cached(meta_path, attachment):
            logger.info("Video '%s' unchanged (%s), skipping", slug, attachment.file_token)
            self.stats.videos_cached += 1
            return video_url(slug)

        logger.info(
            "Resolving download URL for '%s' (token=%s, %.1f MB)...",
            slug,
            attachment.file_token,
            attachment.size / 1_048_576,
        )
        download_url = await self.resolver.resolve(attachment.file_token)
        scratch = self.scratch_dir / f"{attachment.file_token}-{pathlib.PurePath(attachment.name).name}"
        try:
            await self.download(download_url, scratch)
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(self._executor, self._repackage, scratch, output_dir, slug)
            write_cache_record(meta_path, VideoCacheRecord.for_attachment(attachment))
        except OSError as exc:
            raise TranscodeFailed(f"Failed to write output for '{slug}': {exc}") from exc
        finally:
            scratch.unlink(missing_ok=True)
        self.stats.videos_transcoded += 1
        return video_url(slug)

    def _repackage(self, source: pathlib.Path, output_dir: pathlib.Path, slug: str) -> None:
        try:
            purge_hls_output(output_dir)
        except OSError as exc:
            raise TranscodeFailed(f"Failed to clear {output_dir}: {exc}") from exc
        self.transcoder.transcode(source, output_dir, slug)

    async def localize_image(self, attachment: AttachmentInfo, group: str, owner_id: str) -> str:
        """Download an attachment image to ``images/{group}/{owner_id}``; ``""`` on failure."""
        relative = image_path(group, owner_id, attachment)
        try:
            url = await self.resolver.resolve(attachment.file_token)
            await self.download(url, self.public_dir / relative)
        except MediaError as exc:
            self.stats.images_failed += 1
            logger.error("Failed to download image for %s '%s': %s", group, owner_id, exc)
            return ""
        self.stats.images_downloaded += 1
        return relative

    async def localize_images(
        self, group: str, owners: Iterable[tuple[str, AttachmentInfo]]
    ) -> dict[str, str]:
        """Localize many images under the shared concurrency limit, keyed by owner id."""
        owners = list(owners)

        async def _one(owner_id: str, attachment: AttachmentInfo) -> str:
            async with self._semaphore:
                return await self.localize_image(attachment, group, owner_id)

        paths = await asyncio.gather(*(_one(owner_id, att) for owner_id, att in owners))
        return {owner_id: path for (owner_id, _), path in zip(owners, paths)}

    async def download(self, url: str, dest: pathlib.Path) -> int:
        """Stream ``url`` into ``dest``, replacing it only once the body is complete."""
        partial = dest.with_name(dest.name + ".part")
        size = 0
        logger.info("Downloading to %s ...", dest)
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            async with self._session.stream("GET", url, timeout=self._download_timeout) as response:
                if response.is_error:
                    raise DownloadFailed(f"Download failed with status {response.status_code}")
                with partial.open("wb") as handle:
                    async for chunk in response.aiter_bytes(CHUNK_SIZE):
                        handle.write(chunk)
                        size += len(chunk)
            partial.replace(dest)
        except httpx.HTTPError as exc:
            raise DownloadFailed(f"Failed to download: {exc}") from exc
        except OSError as exc:
            raise DownloadFailed(f"Failed to write {dest}: {exc}") from exc
        finally:
            partial.unlink(missing_ok=True)
        logger.info("Downloaded %s bytes (%.1f MB)", size, size / 1_048_576)
        return size


def collect_media_files(public_dir: pathlib.Path) -> list[pathlib.Path]:
    """Generated HLS files under ``public/videos/*/``."""
    videos_dir = public_dir / VIDEOS_DIR
    if not videos_dir.is_dir():
        return []
    return sorted(
        path
        for path in videos_dir.glob("*/*")
        if path.is_file() and path.suffix in HLS_SUFFIXES
    )
