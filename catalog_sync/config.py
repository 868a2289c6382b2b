"""Runtime configuration loaded from the environment."""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping

from dotenv import load_dotenv

from catalog_sync.errors import ConfigError

DEFAULT_BASE_URL = "https://open.feishu.cn/open-apis"

REQUIRED_ENV = {
    "feishu_app_id": "FEISHU_APP_ID",
    "feishu_app_secret": "FEISHU_APP_SECRET",
    "bitable_app_token": "BITABLE_APP_TOKEN",
    "table_id_products": "TABLE_ID_PRODUCTS",
    "table_id_brands": "TABLE_ID_BRANDS",
    "table_id_display_categories": "TABLE_ID_DISPLAY_CATEGORIES",
    "table_id_media": "TABLE_ID_MEDIA",
    "table_id_store_info": "TABLE_ID_STORE_INFO",
}

TRUTHY = {"1", "true", "yes", "on"}


def load_env_files() -> None:
    """Load ``.env.txt`` when present, otherwise ``.env``."""
    if not load_dotenv(".env.txt"):
        load_dotenv()


def detect_repo_root(env: Mapping[str, str], cwd: Path | None = None) -> Path:
    explicit = env.get("FAMILY_BUSINESS_REPO")
    if explicit:
        return Path(explicit)
    cwd = cwd or Path.cwd()
    if cwd.parts[-2:] == ("tools", "bitable-sync"):
        return cwd.parent.parent
    candidate = (cwd / "../..").resolve()
    return candidate if candidate.exists() else cwd


@dataclass(frozen=True, slots=True)
class Settings:
    feishu_app_id: str
    feishu_app_secret: str
    bitable_app_token: str
    table_id_products: str
    table_id_brands: str
    table_id_display_categories: str
    table_id_media: str
    table_id_store_info: str
    repo_root: Path
    table_id_slogans: str | None = None
    base_url: str = DEFAULT_BASE_URL
    api_timeout: float = 30.0
    download_timeout: float = 600.0
    transcode_timeout: float = 1800.0
    media_concurrency: int = 3
    transcode_workers: int = 1
    hls_segment_seconds: int = 10
    ffmpeg_bin: str = "ffmpeg"
    strict_references: bool = False
    scratch_dir: Path = field(default_factory=lambda: Path(tempfile.gettempdir()) / "bitable-sync-videos")

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None, *, load_files: bool = True) -> "Settings":
        if env is None:
            if load_files:
                load_env_files()
            env = os.environ
        missing = [name for name in REQUIRED_ENV.values() if not env.get(name)]
        if missing:
            raise ConfigError(f"Missing environment variables: {', '.join(missing)}")
        values = {attr: env[name] for attr, name in REQUIRED_ENV.items()}
        try:
            return cls(
                **values,
                repo_root=detect_repo_root(env),
                table_id_slogans=env.get("TABLE_ID_SLOGANS") or None,
                base_url=env.get("FEISHU_BASE_URL", DEFAULT_BASE_URL).rstrip("/"),
                api_timeout=float(env.get("API_TIMEOUT", 30.0)),
                download_timeout=float(env.get("DOWNLOAD_TIMEOUT", 600.0)),
                transcode_timeout=float(env.get("TRANSCODE_TIMEOUT", 1800.0)),
                media_concurrency=max(1, int(env.get("MEDIA_CONCURRENCY", 3))),
                transcode_workers=max(1, int(env.get("TRANSCODE_WORKERS", 1))),
                hls_segment_seconds=int(env.get("HLS_SEGMENT_SECONDS", 10)),
                ffmpeg_bin=env.get("FFMPEG_BIN", "ffmpeg"),
                strict_references=env.get("STRICT_REFERENCES", "").strip().lower() in TRUTHY,
            )
        except ValueError as exc:
            raise ConfigError(f"Invalid numeric setting: {exc}") from exc

    @property
    def data_dir(self) -> Path:
        return self.repo_root / "src" / "data"

    @property
    def public_dir(self) -> Path:
        return self.repo_root / "public"

    def validate(self) -> None:
        """Fail fast when ``repo_root`` does not look like the storefront repo."""
        checks = [
            (self.repo_root.exists(), f"Repo root does not exist: {self.repo_root}"),
            ((self.repo_root / ".git").exists(), f"Not a git repository (no .git): {self.repo_root}"),
            ((self.repo_root / "package.json").exists(), f"package.json not found, wrong repo root? {self.repo_root}"),
            (self.data_dir.exists(), f"src/data/ not found in repo: {self.repo_root}"),
            (self.public_dir.exists(), f"public/ not found in repo: {self.repo_root}"),
        ]
        for ok, message in checks:
            if not ok:
                raise ConfigError(message)
