"""Artifact writers for the storefront repository."""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape

from catalog_sync.transform.models import DisplayData, ProductDatabase
from catalog_sync.utils.dates import iso_timestamp

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent
DISPLAY_TEMPLATE = "mockData.ts.j2"
PRODUCT_DATABASE_FILE = "productDatabase.json"
DISPLAY_MODULE_FILE = "mockData.ts"

_EXTERNAL_URL = re.compile(r"^(?:[a-z][a-z0-9+.-]*:|//|\[)", re.IGNORECASE)


def ts_literal(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False)


def asset_literal(url: str) -> str:
    """Relative asset paths become template literals prefixed with ``BASE_URL``."""
    if not url or _EXTERNAL_URL.match(url):
        return ts_literal(url)
    escaped = url.lstrip("/").replace("\\", "\\\\").replace("`", "\\`").replace("${", "\\${")
    return f"`${{BASE_URL}}{escaped}`"


def is_local_asset(url: str) -> bool:
    return bool(url) and not _EXTERNAL_URL.match(url)


ENV = Environment(
    loader=FileSystemLoader(str(TEMPLATE_DIR)),
    autoescape=select_autoescape(enabled_extensions=("html",)),
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=True,
    undefined=StrictUndefined,
)
ENV.filters["ts"] = ts_literal
ENV.filters["asset"] = asset_literal


def render_product_database(database: ProductDatabase) -> str:
    return json.dumps(database.to_json_dict(), ensure_ascii=False, indent=2) + "\n"


def render_display_module(data: DisplayData) -> str:
    template = ENV.get_template(DISPLAY_TEMPLATE)
    return template.render(
        generated_at=iso_timestamp(),
        store=data.store_info,
        media=data.media_playlist,
        categories=data.categories,
        products=data.products,
        slogans=data.slogans,
    )


def _write(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    partial = path.with_name(path.name + ".tmp")
    partial.write_text(content, encoding="utf-8")
    partial.replace(path)


def write_product_database(database: ProductDatabase, path: Path) -> int:
    content = render_product_database(database)
    _write(path, content)
    logger.info("Wrote %s (%s bytes, %s products)", path.name, len(content.encode()), len(database.products))
    return len(content.encode())


def write_display_module(data: DisplayData, path: Path) -> int:
    content = render_display_module(data)
    _write(path, content)
    logger.info(
        "Wrote %s (%s bytes, %s products, %s media items)",
        path.name,
        len(content.encode()),
        len(data.products),
        len(data.media_playlist),
    )
    return len(content.encode())


def find_missing_assets(public_dir: Path, database: ProductDatabase, data: DisplayData) -> list[str]:
    """Local asset paths referenced by either document that do not exist under ``public/``."""
    missing: list[str] = []
    for product in database.products:
        if is_local_asset(product.main_image) and not (public_dir / product.main_image).exists():
            missing.append(f"Product '{product.name}': {product.main_image}")
    for item in data.media_playlist:
        if is_local_asset(item.url) and not (public_dir / item.url).exists():
            missing.append(f"Media '{item.title or 'untitled'}': {item.url}")
    return missing
