"""Build the denormalized display document consumed by the storefront pages."""

from __future__ import annotations

from typing import Iterable, Mapping

from catalog_sync.ingest.models import MediaItem, RawCategory, RawProduct, RawSlogan, RawStoreInfo
from catalog_sync.transform.models import (
    DisplayCategory,
    DisplayData,
    DisplayMediaItem,
    DisplayProduct,
    StoreInfo,
)

DEFAULT_STORE = StoreInfo(name="绍兴黄酒专卖", phone="15936229925", qr_code_url="images/qrcode.jpg")


def to_store_info(raw: RawStoreInfo | None, qr_code_url: str | None = None) -> StoreInfo:
    if raw is None:
        return DEFAULT_STORE
    url = qr_code_url if qr_code_url is not None else raw.qr_code_url
    return StoreInfo(name=raw.name, phone=raw.phone, qr_code_url=url)


def expanded_id(base_id: str, category_id: str, index: int) -> str:
    return base_id if index == 0 else f"{base_id}-{category_id}"


def expand_products(
    raw_products: Iterable[RawProduct],
    images: Mapping[str, str] | None = None,
) -> list[DisplayProduct]:
    """One entry per display category membership, in ``sort_order``.

    The first category keeps the product id; later ones get
    ``{id}-{category_id}`` so ids stay unique. A category listed twice is
    expanded once. Products without display categories are left out.
    """
    images = images or {}
    active = sorted((p for p in raw_products if p.is_active), key=lambda p: p.sort_order)
    expanded: list[DisplayProduct] = []
    for raw in active:
        for index, category_id in enumerate(dict.fromkeys(raw.display_category_ids)):
            expanded.append(
                DisplayProduct(
                    id=expanded_id(raw.id, category_id, index),
                    name=raw.name,
                    description=raw.short_description,
                    price=raw.retail_price,
                    image=images.get(raw.id, raw.main_image_url),
                    category_id=category_id,
                )
            )
    return expanded


def build_display_data(
    raw_products: Iterable[RawProduct],
    categories: Iterable[RawCategory],
    media_items: Iterable[MediaItem],
    store_info: StoreInfo,
    slogans: Iterable[RawSlogan] = (),
    *,
    images: Mapping[str, str] | None = None,
) -> DisplayData:
    playlist = [
        DisplayMediaItem(type=item.media_type, url=item.url, title=item.title, duration=item.duration_ms)
        for item in sorted(media_items, key=lambda m: m.sort_order)
    ]
    ordered_categories = [
        DisplayCategory(id=category.id, name=category.name, icon=category.icon)
        for category in sorted(categories, key=lambda c: c.sort_order)
    ]
    enabled_slogans = [
        slogan.text for slogan in sorted(slogans, key=lambda s: s.sort_order) if slogan.enabled
    ]
    return DisplayData(
        store_info=store_info,
        media_playlist=playlist,
        categories=ordered_categories,
        products=expand_products(raw_products, images),
        slogans=enabled_slogans,
    )
