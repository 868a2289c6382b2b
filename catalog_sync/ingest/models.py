"""Ingestion data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

DEFAULT_UNIT = "瓶"
DEFAULT_STATUS = "active"


@dataclass(slots=True, frozen=True)
class RecordItem:
    record_id: str
    fields: Mapping[str, Any]


@dataclass(slots=True, frozen=True)
class TableInfo:
    table_id: str
    name: str
    revision: int | None = None


@dataclass(slots=True, frozen=True)
class AttachmentInfo:
    file_token: str
    name: str
    size: int

    @property
    def identity(self) -> tuple[str, int]:
        return (self.file_token, self.size)


@dataclass(slots=True, frozen=True)
class RawBrand:
    id: str
    name: str
    logo: AttachmentInfo | None = None
    logo_url: str | None = None
    story: str | None = None
    founded_year: int | None = None
    origin: str | None = None
    record_id: str = ""


@dataclass(slots=True, frozen=True)
class RawCategory:
    id: str
    name: str
    icon: str | None = None
    sort_order: int = 0
    record_id: str = ""


@dataclass(slots=True, frozen=True)
class RawProduct:
    id: str
    name: str
    sku: str = ""
    brand_link: str | None = None
    category_link: str | None = None
    specification: str = ""
    unit: str = DEFAULT_UNIT
    retail_price: float = 0.0
    cost_price: float | None = None
    member_price: float | None = None
    promotion_price: float | None = None
    stock: int = 0
    alcohol_content: float = 0.0
    vintage: int | None = None
    brewing_process: str = ""
    flavor_profile: str = ""
    main_image: AttachmentInfo | None = None
    main_image_url: str = ""
    short_description: str = ""
    long_description: str | None = None
    status: str = DEFAULT_STATUS
    is_hot: bool = False
    is_new: bool = False
    is_promotion: bool = False
    display_category_ids: tuple[str, ...] = field(default_factory=tuple)
    sort_order: int = 0
    record_id: str = ""

    @property
    def is_active(self) -> bool:
        return self.status == DEFAULT_STATUS


@dataclass(slots=True, frozen=True)
class RawMediaItem:
    media_type: str
    title: str | None = None
    duration_ms: int | None = None
    sort_order: int = 0
    external_url: str | None = None
    attachment: AttachmentInfo | None = None
    record_id: str = ""

    @property
    def is_video(self) -> bool:
        return self.media_type == "video"


@dataclass(slots=True, frozen=True)
class RawStoreInfo:
    name: str
    phone: str
    qr_code: AttachmentInfo | None = None
    qr_code_url: str = ""
    record_id: str = ""


@dataclass(slots=True, frozen=True)
class RawSlogan:
    text: str
    sort_order: int = 0
    enabled: bool = False
    record_id: str = ""


@dataclass(slots=True)
class MediaItem:
    media_type: str
    url: str
    title: str | None = None
    duration_ms: int | None = None
    sort_order: int = 0
