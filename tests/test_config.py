from pathlib import Path

import pytest

from catalog_sync.config import Settings, detect_repo_root
from catalog_sync.errors import ConfigError

ENV = {
    "FEISHU_APP_ID": "cli_test",
    "FEISHU_APP_SECRET": "secret",
    "BITABLE_APP_TOKEN": "appCatalog",
    "TABLE_ID_PRODUCTS": "tblProducts",
    "TABLE_ID_BRANDS": "tblBrands",
    "TABLE_ID_DISPLAY_CATEGORIES": "tblCategories",
    "TABLE_ID_MEDIA": "tblMedia",
    "TABLE_ID_STORE_INFO": "tblStore",
}


def test_from_env_defaults(tmp_path):
    settings = Settings.from_env({**ENV, "FAMILY_BUSINESS_REPO": str(tmp_path)})
    assert settings.repo_root == tmp_path
    assert settings.table_id_slogans is None
    assert settings.base_url == "https://open.feishu.cn/open-apis"
    assert settings.media_concurrency == 3
    assert settings.transcode_workers == 1
    assert settings.download_timeout == 600.0
    assert settings.strict_references is False
    assert settings.data_dir == tmp_path / "src" / "data"


def test_from_env_overrides(tmp_path):
    env = {
        **ENV,
        "FAMILY_BUSINESS_REPO": str(tmp_path),
        "TABLE_ID_SLOGANS": "tblSlogans",
        "FEISHU_BASE_URL": "https://open.larksuite.com/open-apis/",
        "MEDIA_CONCURRENCY": "0",
        "STRICT_REFERENCES": "Yes",
        "FFMPEG_BIN": "/opt/ffmpeg/bin/ffmpeg",
    }
    settings = Settings.from_env(env)
    assert settings.table_id_slogans == "tblSlogans"
    assert settings.base_url == "https://open.larksuite.com/open-apis"
    assert settings.media_concurrency == 1
    assert settings.strict_references is True
    assert settings.ffmpeg_bin == "/opt/ffmpeg/bin/ffmpeg"


def test_missing_variables_are_listed():
    env = {key: value for key, value in ENV.items() if key not in {"FEISHU_APP_SECRET", "TABLE_ID_MEDIA"}}
    with pytest.raises(ConfigError) as excinfo:
        Settings.from_env(env)
    assert "FEISHU_APP_SECRET" in str(excinfo.value)
    assert "TABLE_ID_MEDIA" in str(excinfo.value)


def test_invalid_number_is_config_error(tmp_path):
    with pytest.raises(ConfigError):
        Settings.from_env({**ENV, "FAMILY_BUSINESS_REPO": str(tmp_path), "DOWNLOAD_TIMEOUT": "ten"})


def test_detect_repo_root_from_tool_directory(tmp_path):
    tool_dir = tmp_path / "tools" / "bitable-sync"
    tool_dir.mkdir(parents=True)
    assert detect_repo_root({}, tool_dir) == tmp_path
    assert detect_repo_root({"FAMILY_BUSINESS_REPO": "/srv/site"}, tool_dir) == Path("/srv/site")


def test_validate(settings, repo_root):
    settings.validate()
    (repo_root / "package.json").unlink()
    with pytest.raises(ConfigError, match="package.json"):
        settings.validate()
