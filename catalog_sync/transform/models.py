"""Output document models.

Field names follow the storefront's TypeScript interfaces, so every model
serializes with camelCase aliases.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class OutputModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class Brand(OutputModel):
    id: str
    name: str
    logo: str | None = None
    story: str | None = None
    founded_year: int | None = None
    origin: str | None = None


class Category(OutputModel):
    id: str
    name: str
    parent_id: str | None = None
    level: int = 1
    icon: str | None = None


class Supplier(OutputModel):
    id: str
    name: str
    contact: str | None = None
    phone: str | None = None
    address: str | None = None


class Product(OutputModel):
    id: str
    sku: str
    barcode: str = ""
    name: str
    brand: Brand
    category: Category
    specification: str
    unit: str
    pack_size: int = 1
    weight: int
    retail_price: float
    cost_price: float | None = None
    member_price: float | None = None
    promotion_price: float | None = None
    stock: int
    safety_stock: int
    warehouse_location: str | None = None
    origin: str
    shelf_life: int
    storage_condition: str
    alcohol_content: float
    vintage: int | None = None
    brewing_process: str
    flavor_profile: str
    serving_suggestion: str | None = None
    main_image: str
    detail_images: list[str] | None = None
    video: str | None = None
    short_description: str
    long_description: str | None = None
    supplier: Supplier | None = None
    status: str
    is_hot: bool
    is_new: bool
    is_promotion: bool
    created_at: str
    updated_at: str


class ProductDatabase(OutputModel):
    version: str
    last_updated: str
    brands: list[Brand]
    categories: list[Category]
    suppliers: list[Supplier]
    products: list[Product]


class StoreInfo(OutputModel):
    name: str
    phone: str
    qr_code_url: str


class DisplayMediaItem(OutputModel):
    type: str
    url: str
    title: str | None = None
    duration: int | None = None


class DisplayCategory(OutputModel):
    id: str
    name: str
    icon: str | None = None


class DisplayProduct(OutputModel):
    id: str
    name: str
    description: str
    price: float
    image: str
    category_id: str


class DisplayData(OutputModel):
    store_info: StoreInfo
    media_playlist: list[DisplayMediaItem]
    categories: list[DisplayCategory]
    products: list[DisplayProduct]
    slogans: list[str]
