"""Build the normalized product database document."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Iterable, Mapping, TypeVar

from catalog_sync.errors import UnresolvedReference
from catalog_sync.ingest.models import RawBrand, RawCategory, RawProduct
from catalog_sync.ingest.records import ParseFailure
from catalog_sync.transform.models import Brand, Category, Product, ProductDatabase
from catalog_sync.utils.dates import iso_date, iso_timestamp

logger = logging.getLogger(__name__)

DATABASE_VERSION = "1.0.0"
UNKNOWN_ID = "unknown"
UNKNOWN_BRAND_NAME = "未知品牌"
UNKNOWN_CATEGORY_NAME = "未分类"
DEFAULT_ORIGIN = "浙江绍兴"
DEFAULT_SHELF_LIFE_MONTHS = 36
DEFAULT_STORAGE = "阴凉干燥处保存"
DEFAULT_WEIGHT_ML = 500
SAFETY_STOCK_RATIO = 0.25

_WEIGHT_RE = re.compile(r"^\s*([0-9]*\.?[0-9]+)\s*(ml|l)\s*$", re.IGNORECASE)

E = TypeVar("E", Brand, Category)


@dataclass(slots=True)
class DatabaseBuild:
    database: ProductDatabase
    rejected: list[ParseFailure] = field(default_factory=list)


def parse_weight(specification: str) -> int:
    """Net volume in ml from a specification such as ``500ml`` or ``2.5L``."""
    match = _WEIGHT_RE.match(specification)
    if not match:
        return DEFAULT_WEIGHT_ML
    amount, unit = float(match.group(1)), match.group(2).lower()
    return int(amount if unit == "ml" else amount * 1000)


def to_brand(raw: RawBrand, logo: str | None = None) -> Brand:
    return Brand(
        id=raw.id,
        name=raw.name,
        logo=(logo if logo is not None else raw.logo_url) or None,
        story=raw.story,
        founded_year=raw.founded_year,
        origin=raw.origin,
    )


def to_category(raw: RawCategory) -> Category:
    return Category(id=raw.id, name=raw.name, level=1, icon=raw.icon)


def build_lookup(entities: Iterable[E]) -> dict[str, E]:
    """Index entities by id and by display name; ids win on collision."""
    lookup: dict[str, E] = {}
    entities = list(entities)
    for entity in entities:
        lookup.setdefault(entity.name, entity)
    for entity in entities:
        lookup[entity.id] = entity
    return lookup


def unknown_brand(link: str | None) -> Brand:
    return Brand(id=UNKNOWN_ID, name=link or UNKNOWN_BRAND_NAME)


def unknown_category(link: str | None) -> Category:
    return Category(id=UNKNOWN_ID, name=link or UNKNOWN_CATEGORY_NAME, level=2)


def build_product_database(
    raw_products: Iterable[RawProduct],
    brands: list[Brand],
    categories: list[Category],
    *,
    images: Mapping[str, str] | None = None,
    strict_references: bool = False,
) -> DatabaseBuild:
    """Merge active products with their brand and category.

    Links that match nothing fall back to an ``unknown`` placeholder, unless
    ``strict_references`` is set, in which case the product is rejected.
    """
    images = images or {}
    brand_lookup = build_lookup(brands)
    category_lookup = build_lookup(categories)
    now = iso_timestamp()
    products: list[Product] = []
    rejected: list[ParseFailure] = []

    for raw in raw_products:
        if not raw.is_active:
            continue
        brand = brand_lookup.get(raw.brand_link) if raw.brand_link else None
        category = category_lookup.get(raw.category_link) if raw.category_link else None
        if strict_references and (brand is None or category is None):
            column, value = ("brand", raw.brand_link) if brand is None else ("category", raw.category_link)
            error = UnresolvedReference(raw.id, column, value)
            logger.warning("Skipping product record %s: %s", raw.record_id or raw.id, error)
            rejected.append(ParseFailure(record_id=raw.record_id or raw.id, error=error))
            continue
        if brand is None:
            logger.debug("Product %s: unresolved brand %r", raw.id, raw.brand_link)
            brand = unknown_brand(raw.brand_link)
        if category is None:
            logger.debug("Product %s: unresolved category %r", raw.id, raw.category_link)
            category = unknown_category(raw.category_link)

        products.append(
            Product(
                id=raw.id,
                sku=raw.sku,
                name=raw.name,
                brand=brand,
                category=category,
                specification=raw.specification,
                unit=raw.unit,
                weight=parse_weight(raw.specification),
                retail_price=raw.retail_price,
                cost_price=raw.cost_price,
                member_price=raw.member_price,
                promotion_price=raw.promotion_price,
                stock=raw.stock,
                safety_stock=int(raw.stock * SAFETY_STOCK_RATIO),
                origin=DEFAULT_ORIGIN,
                shelf_life=DEFAULT_SHELF_LIFE_MONTHS,
                storage_condition=DEFAULT_STORAGE,
                alcohol_content=raw.alcohol_content,
                vintage=raw.vintage,
                brewing_process=raw.brewing_process,
                flavor_profile=raw.flavor_profile,
                main_image=images.get(raw.id, raw.main_image_url),
                short_description=raw.short_description,
                long_description=raw.long_description,
                status=raw.status,
                is_hot=raw.is_hot,
                is_new=raw.is_new,
                is_promotion=raw.is_promotion,
                created_at=now,
                updated_at=now,
            )
        )

    database = ProductDatabase(
        version=DATABASE_VERSION,
        last_updated=iso_date(),
        brands=brands,
        categories=categories,
        suppliers=[],
        products=products,
    )
    return DatabaseBuild(database=database, rejected=rejected)
