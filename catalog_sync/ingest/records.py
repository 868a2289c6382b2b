"""Parsers turning Bitable records into raw domain records."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Generic, Iterable, Mapping, TypeVar

from catalog_sync.errors import CatalogSyncError, MissingField
from catalog_sync.ingest import load_field_names
from catalog_sync.ingest.fields import (
    Fields,
    extract_attachment_info,
    extract_attachment_url,
    extract_bool,
    extract_link_text,
    extract_number,
    extract_phone,
    extract_select,
    extract_text,
    extract_url,
)
from catalog_sync.ingest.models import (
    DEFAULT_STATUS,
    DEFAULT_UNIT,
    RawBrand,
    RawCategory,
    RawMediaItem,
    RawProduct,
    RawSlogan,
    RawStoreInfo,
    RecordItem,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

VIDEO_TYPES = {"video", "视频"}


def _columns(kind: str) -> Mapping[str, str]:
    return load_field_names()[kind]


def _required(value: T | None, kind: str, column: str) -> T:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise MissingField(kind, column)
    return value


def _int_or_none(value: float | None) -> int | None:
    return int(value) if value is not None else None


def split_list(value: str | None) -> tuple[str, ...]:
    if not value:
        return ()
    return tuple(dict.fromkeys(token.strip() for token in value.split(",") if token.strip()))


def normalize_media_type(raw: str | None) -> str:
    return "video" if raw in VIDEO_TYPES else "image"


def parse_brand(fields: Fields, record_id: str = "") -> RawBrand:
    col = _columns("brand")
    return RawBrand(
        id=_required(extract_text(fields, col["id"]), "Brand", col["id"]),
        name=_required(extract_text(fields, col["name"]), "Brand", col["name"]),
        logo=extract_attachment_info(fields, col["logo"]),
        logo_url=extract_attachment_url(fields, col["logo"]),
        story=extract_text(fields, col["story"]),
        founded_year=_int_or_none(extract_number(fields, col["founded_year"])),
        origin=extract_text(fields, col["origin"]),
        record_id=record_id,
    )


def parse_category(fields: Fields, record_id: str = "") -> RawCategory:
    col = _columns("category")
    return RawCategory(
        id=_required(extract_text(fields, col["id"]), "Category", col["id"]),
        name=_required(extract_text(fields, col["name"]), "Category", col["name"]),
        icon=extract_text(fields, col["icon"]),
        sort_order=int(extract_number(fields, col["sort_order"]) or 0),
        record_id=record_id,
    )


def parse_product(fields: Fields, record_id: str = "") -> RawProduct:
    col = _columns("product")
    return RawProduct(
        id=_required(extract_text(fields, col["id"]), "Product", col["id"]),
        name=_required(extract_text(fields, col["name"]), "Product", col["name"]),
        sku=extract_text(fields, col["sku"]) or "",
        brand_link=extract_link_text(fields, col["brand"]),
        category_link=extract_link_text(fields, col["category"]),
        specification=extract_text(fields, col["specification"]) or "",
        unit=extract_select(fields, col["unit"]) or DEFAULT_UNIT,
        retail_price=extract_number(fields, col["retail_price"]) or 0.0,
        cost_price=extract_number(fields, col["cost_price"]),
        member_price=extract_number(fields, col["member_price"]),
        promotion_price=extract_number(fields, col["promotion_price"]),
        stock=int(extract_number(fields, col["stock"]) or 0),
        alcohol_content=extract_number(fields, col["alcohol_content"]) or 0.0,
        vintage=_int_or_none(extract_number(fields, col["vintage"])),
        brewing_process=extract_text(fields, col["brewing_process"]) or "",
        flavor_profile=extract_text(fields, col["flavor_profile"]) or "",
        main_image=extract_attachment_info(fields, col["main_image"]),
        main_image_url=extract_attachment_url(fields, col["main_image"]) or "",
        short_description=extract_text(fields, col["short_description"]) or "",
        long_description=extract_text(fields, col["long_description"]),
        status=extract_select(fields, col["status"]) or DEFAULT_STATUS,
        is_hot=extract_bool(fields, col["is_hot"]),
        is_new=extract_bool(fields, col["is_new"]),
        is_promotion=extract_bool(fields, col["is_promotion"]),
        display_category_ids=split_list(extract_text(fields, col["display_categories"])),
        sort_order=int(extract_number(fields, col["sort_order"]) or 0),
        record_id=record_id,
    )


def parse_media_item(fields: Fields, record_id: str = "") -> RawMediaItem:
    col = _columns("media")
    external_url = extract_url(fields, col["external_url"])
    attachment = extract_attachment_info(fields, col["file"])
    if external_url is None and attachment is None:
        raise MissingField("Media", col["file"])
    return RawMediaItem(
        media_type=normalize_media_type(extract_select(fields, col["media_type"])),
        title=extract_text(fields, col["title"]),
        duration_ms=_int_or_none(extract_number(fields, col["duration_ms"])),
        sort_order=int(extract_number(fields, col["sort_order"]) or 0),
        external_url=external_url,
        attachment=attachment,
        record_id=record_id,
    )


def parse_store_info(fields: Fields, record_id: str = "") -> RawStoreInfo:
    col = _columns("store")
    return RawStoreInfo(
        name=_required(extract_text(fields, col["name"]), "StoreInfo", col["name"]),
        phone=_required(extract_phone(fields, col["phone"]), "StoreInfo", col["phone"]),
        qr_code=extract_attachment_info(fields, col["qr_code"]),
        qr_code_url=extract_attachment_url(fields, col["qr_code"]) or "",
        record_id=record_id,
    )


def parse_slogan(fields: Fields, record_id: str = "") -> RawSlogan:
    col = _columns("slogan")
    return RawSlogan(
        text=_required(extract_text(fields, col["text"]), "Slogan", col["text"]),
        sort_order=int(extract_number(fields, col["sort_order"]) or 0),
        enabled=extract_bool(fields, col["enabled"]),
        record_id=record_id,
    )


@dataclass(slots=True)
class ParseFailure:
    record_id: str
    error: CatalogSyncError


@dataclass(slots=True)
class ParseBatch(Generic[T]):
    kind: str
    records: list[T] = field(default_factory=list)
    failures: list[ParseFailure] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.records) + len(self.failures)


def parse_records(
    items: Iterable[RecordItem],
    parser: Callable[[Fields, str], T],
    kind: str,
) -> ParseBatch[T]:
    """Parse every item independently, keeping failures next to the survivors."""
    batch: ParseBatch[T] = ParseBatch(kind=kind)
    for item in items:
        try:
            batch.records.append(parser(item.fields, item.record_id))
        except CatalogSyncError as exc:
            logger.warning("Skipping %s record %s: %s", kind, item.record_id, exc)
            batch.failures.append(ParseFailure(record_id=item.record_id, error=exc))
    logger.info("Parsed %s %s records (%s skipped)", len(batch.records), kind, len(batch.failures))
    return batch
