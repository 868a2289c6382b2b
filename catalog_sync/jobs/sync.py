"""Sync job orchestration."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

import httpx

from catalog_sync.config import Settings
from catalog_sync.errors import ConfigError
from catalog_sync.ingest.attachments import AttachmentResolver
from catalog_sync.ingest.auth import TokenCache
from catalog_sync.ingest.bitable import BitableClient
from catalog_sync.ingest.models import MediaItem, RawMediaItem, RecordItem, TableInfo
from catalog_sync.ingest.records import (
    ParseBatch,
    parse_brand,
    parse_category,
    parse_media_item,
    parse_product,
    parse_records,
    parse_slogan,
    parse_store_info,
)
from catalog_sync.media.pipeline import MediaPipeline, MediaStats, collect_media_files
from catalog_sync.media.transcode import HlsTranscoder
from catalog_sync.output.writer import (
    DISPLAY_MODULE_FILE,
    PRODUCT_DATABASE_FILE,
    find_missing_assets,
    render_display_module,
    render_product_database,
    write_display_module,
    write_product_database,
)
from catalog_sync.transform.database import build_product_database, to_brand, to_category
from catalog_sync.transform.display import DEFAULT_STORE, build_display_data, to_store_info
from catalog_sync.utils.git import GitRepo
from catalog_sync.utils.process import CommandRunner

logger = logging.getLogger(__name__)

PUBLISHED_FILES = (f"src/data/{PRODUCT_DATABASE_FILE}", f"src/data/{DISPLAY_MODULE_FILE}")
PUBLISHED_DIRECTORIES = ("public/videos", "public/images")


@dataclass(slots=True, frozen=True)
class SyncOptions:
    dry_run: bool = False
    no_push: bool = False


@dataclass(slots=True)
class SyncSummary:
    parsed: dict[str, int] = field(default_factory=dict)
    failed: dict[str, int] = field(default_factory=dict)
    products_written: int = 0
    display_products: int = 0
    media: MediaStats = field(default_factory=MediaStats)
    media_items: int = 0
    missing_assets: int = 0
    published: bool = False

    def record_batch(self, batch: ParseBatch) -> None:
        self.parsed[batch.kind] = len(batch.records)
        self.failed[batch.kind] = len(batch.failures)

    def log(self) -> None:
        tables = ", ".join(
            f"{kind} {self.parsed[kind]}/{self.parsed[kind] + self.failed.get(kind, 0)}" for kind in self.parsed
        )
        logger.info("Sync summary: records parsed %s", tables)
        logger.info(
            "Sync summary: %s products, %s display entries, %s media items",
            self.products_written,
            self.display_products,
            self.media_items,
        )
        logger.info(
            "Sync summary: videos %s transcoded, %s cached, %s failed; images %s downloaded, %s failed",
            self.media.videos_transcoded,
            self.media.videos_cached,
            self.media.videos_failed,
            self.media.images_downloaded,
            self.media.images_failed,
        )
        if self.missing_assets:
            logger.warning("Sync summary: %s referenced assets missing under public/", self.missing_assets)


@dataclass(slots=True)
class SourceTables:
    products: list[RecordItem]
    brands: list[RecordItem]
    categories: list[RecordItem]
    media: list[RecordItem]
    store_info: list[RecordItem]
    slogans: list[RecordItem] = field(default_factory=list)


class SourceClients:
    """Token cache, records client and attachment resolver sharing one HTTP session."""

    def __init__(self, settings: Settings, session: httpx.AsyncClient) -> None:
        self.tokens = TokenCache(
            settings.feishu_app_id,
            settings.feishu_app_secret,
            session=session,
            base_url=settings.base_url,
            timeout=settings.api_timeout,
        )
        self.bitable = BitableClient(
            self.tokens,
            settings.bitable_app_token,
            session=session,
            base_url=settings.base_url,
            timeout=settings.api_timeout,
        )
        self.resolver = AttachmentResolver(
            self.tokens,
            session=session,
            base_url=settings.base_url,
            timeout=settings.api_timeout,
        )


async def fetch_tables(bitable: BitableClient, settings: Settings) -> SourceTables:
    """Fetch every table concurrently; the first failure aborts the whole fetch."""
    logger.info("Fetching all tables from Bitable...")
    fetches = [
        bitable.read_all_records(settings.table_id_products),
        bitable.read_all_records(settings.table_id_brands),
        bitable.read_all_records(settings.table_id_display_categories),
        bitable.read_all_records(settings.table_id_media),
        bitable.read_all_records(settings.table_id_store_info),
    ]
    if settings.table_id_slogans:
        fetches.append(bitable.read_all_records(settings.table_id_slogans))
    tasks = [asyncio.ensure_future(fetch) for fetch in fetches]
    try:
        results = await asyncio.gather(*tasks)
    except Exception:
        for task in tasks:
            task.cancel()
        raise
    tables = SourceTables(*results)
    logger.info(
        "Fetched: %s products, %s brands, %s categories, %s media, %s store info, %s slogans",
        len(tables.products),
        len(tables.brands),
        len(tables.categories),
        len(tables.media),
        len(tables.store_info),
        len(tables.slogans),
    )
    return tables


def placeholder_media(raw_items: list[RawMediaItem]) -> list[MediaItem]:
    """Dry-run stand-ins: attachments are referenced by token, nothing is downloaded."""
    items = []
    for raw in raw_items:
        url = f"[attachment:{raw.attachment.file_token}]" if raw.attachment else raw.external_url
        if not url:
            continue
        items.append(
            MediaItem(
                media_type=raw.media_type,
                url=url,
                title=raw.title,
                duration_ms=raw.duration_ms,
                sort_order=raw.sort_order,
            )
        )
    return sorted(items, key=lambda m: m.sort_order)


async def run_sync(
    settings: Settings,
    options: SyncOptions | None = None,
    *,
    session: httpx.AsyncClient | None = None,
    runner: CommandRunner | None = None,
) -> SyncSummary:
    options = options or SyncOptions()
    summary = SyncSummary()
    if not options.dry_run:
        settings.validate()
    owns_session = session is None
    session = session or httpx.AsyncClient()
    pipeline: MediaPipeline | None = None
    try:
        clients = SourceClients(settings, session)
        tables = await fetch_tables(clients.bitable, settings)

        products = parse_records(tables.products, parse_product, "product")
        brands = parse_records(tables.brands, parse_brand, "brand")
        categories = parse_records(tables.categories, parse_category, "category")
        media = parse_records(tables.media, parse_media_item, "media")
        stores = parse_records(tables.store_info, parse_store_info, "store")
        slogans = parse_records(tables.slogans, parse_slogan, "slogan")
        for batch in (products, brands, categories, media, stores, slogans):
            summary.record_batch(batch)

        raw_store = stores.records[0] if stores.records else None
        if raw_store is None:
            logger.warning("Store info table is empty, using the default store")

        product_images: dict[str, str] = {}
        brand_logos: dict[str, str] = {}
        store_qr: str | None = None
        if options.dry_run:
            logger.info("Dry run: skipping media downloads")
            media_items = placeholder_media(media.records)
        else:
            pipeline = MediaPipeline(
                clients.resolver,
                session=session,
                public_dir=settings.public_dir,
                scratch_dir=settings.scratch_dir,
                transcoder=HlsTranscoder(
                    runner=runner,
                    ffmpeg_bin=settings.ffmpeg_bin,
                    segment_seconds=settings.hls_segment_seconds,
                    timeout=settings.transcode_timeout,
                ),
                download_timeout=settings.download_timeout,
                concurrency=settings.media_concurrency,
                transcode_workers=settings.transcode_workers,
            )
            media_items = await pipeline.process_media_items(media.records)
            product_images = await pipeline.localize_images(
                "products",
                ((raw.id, raw.main_image) for raw in products.records if raw.is_active and raw.main_image),
            )
            brand_logos = await pipeline.localize_images(
                "brands", ((raw.id, raw.logo) for raw in brands.records if raw.logo)
            )
            if raw_store is not None and raw_store.qr_code is not None:
                owner = raw_store.record_id or "store"
                qr = await pipeline.localize_images("store", [(owner, raw_store.qr_code)])
                store_qr = qr[owner]
            summary.media = pipeline.stats

        store_info = to_store_info(raw_store, store_qr) if raw_store is not None else DEFAULT_STORE
        build = build_product_database(
            products.records,
            [to_brand(raw, brand_logos.get(raw.id)) for raw in brands.records],
            [to_category(raw) for raw in categories.records],
            images=product_images,
            strict_references=settings.strict_references,
        )
        if build.rejected:
            summary.failed["product"] += len(build.rejected)
            summary.parsed["product"] -= len(build.rejected)
        rejected_ids = {failure.record_id for failure in build.rejected}
        display = build_display_data(
            [raw for raw in products.records if (raw.record_id or raw.id) not in rejected_ids],
            categories.records,
            media_items,
            store_info,
            slogans.records,
            images=product_images,
        )
        summary.products_written = len(build.database.products)
        summary.display_products = len(display.products)
        summary.media_items = len(display.media_playlist)

        if options.dry_run:
            logger.info(
                "Dry run: would write %s (%s bytes) and %s (%s bytes)",
                PRODUCT_DATABASE_FILE,
                len(render_product_database(build.database).encode()),
                DISPLAY_MODULE_FILE,
                len(render_display_module(display).encode()),
            )
            summary.log()
            return summary

        write_product_database(build.database, settings.data_dir / PRODUCT_DATABASE_FILE)
        write_display_module(display, settings.data_dir / DISPLAY_MODULE_FILE)
        missing = find_missing_assets(settings.public_dir, build.database, display)
        for entry in missing:
            logger.warning("Missing asset: %s", entry)
        summary.missing_assets = len(missing)
    finally:
        if pipeline is not None:
            pipeline.close()
        if owns_session:
            await session.aclose()

    if options.no_push:
        logger.info("Skipping git push (--no-push)")
    else:
        summary.published = publish(settings, runner=runner)
    summary.log()
    return summary


def publish(settings: Settings, *, runner: CommandRunner | None = None) -> bool:
    repo = GitRepo(settings.repo_root, runner=runner)
    if not repo.has_changes():
        logger.info("No changes to commit")
        return False
    logger.info("Publishing with %s HLS files under public/videos", len(collect_media_files(settings.public_dir)))
    return repo.commit_and_push(PUBLISHED_FILES, PUBLISHED_DIRECTORIES)


async def list_tables(settings: Settings, *, session: httpx.AsyncClient | None = None) -> list[TableInfo]:
    owns_session = session is None
    session = session or httpx.AsyncClient()
    try:
        clients = SourceClients(settings, session)
        return await clients.bitable.list_tables()
    finally:
        if owns_session:
            await session.aclose()


async def check_config(settings: Settings, *, session: httpx.AsyncClient | None = None) -> list[TableInfo]:
    """Validate the repo layout, obtain a token and list the app's tables."""
    settings.validate()
    logger.info("Repo root: %s", settings.repo_root)
    owns_session = session is None
    session = session or httpx.AsyncClient()
    try:
        clients = SourceClients(settings, session)
        await clients.tokens.get_token()
        logger.info("Feishu credentials OK")
        tables = await clients.bitable.list_tables()
    finally:
        if owns_session:
            await session.aclose()
    configured = {
        settings.table_id_products,
        settings.table_id_brands,
        settings.table_id_display_categories,
        settings.table_id_media,
        settings.table_id_store_info,
    }
    if settings.table_id_slogans:
        configured.add(settings.table_id_slogans)
    unknown = sorted(configured - {table.table_id for table in tables})
    if unknown:
        raise ConfigError(f"Configured table ids not found in app: {', '.join(unknown)}")
    logger.info("All %s configured tables found", len(configured))
    return tables
