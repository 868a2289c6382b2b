import json
from pathlib import Path

import httpx
import pytest

from catalog_sync.config import Settings
from catalog_sync.utils.process import CommandResult

FIXTURES = Path(__file__).parent / "fixtures" / "http"
BASE_URL = "https://open.feishu.cn/open-apis"
APP_TOKEN = "appCatalog"
TABLES_URL = f"{BASE_URL}/bitable/v1/apps/{APP_TOKEN}/tables"
TOKEN_URL = f"{BASE_URL}/auth/v3/tenant_access_token/internal"
TMP_URL = f"{BASE_URL}/drive/v1/medias/batch_get_tmp_download_url"


def load_fixture(path: str) -> dict:
    return json.loads((FIXTURES / path).read_text(encoding="utf-8"))


def envelope(items: list[dict], *, has_more: bool = False, page_token: str | None = None) -> dict:
    data = {"has_more": has_more, "total": len(items), "items": items}
    if page_token:
        data["page_token"] = page_token
    return {"code": 0, "msg": "success", "data": data}


def tmp_download_response(request: httpx.Request) -> httpx.Response:
    """Echo every requested file token back as ``https://download.example.com/{token}``."""
    token = request.url.params["file_tokens"]
    return httpx.Response(
        200,
        json={
            "code": 0,
            "msg": "success",
            "data": {
                "tmp_download_urls": [
                    {"file_token": token, "tmp_download_url": f"https://download.example.com/{token}"}
                ]
            },
        },
    )


def attachment_cell(file_token: str, name: str, size: int) -> list[dict]:
    return [{"file_token": file_token, "name": name, "size": size, "tmp_url": f"https://open.feishu.cn/tmp/{file_token}"}]


class FakeRunner:
    """Stands in for ffmpeg and git.

    ffmpeg invocations write a playlist and one segment where the real tool
    would; git invocations answer from ``git_outputs`` keyed by subcommand.
    """

    def __init__(self, *, ffmpeg_returncode: int = 0, git_outputs: dict[str, str] | None = None, git_failures=()):
        self.calls: list[list[str]] = []
        self.ffmpeg_returncode = ffmpeg_returncode
        self.git_outputs = git_outputs or {}
        self.git_failures = set(git_failures)

    def run(self, args, *, cwd=None, timeout=None):
        args = list(args)
        self.calls.append(args)
        if args[0] == "git":
            return self._git(args[1:])
        return self._ffmpeg(args)

    def _ffmpeg(self, args):
        if self.ffmpeg_returncode:
            return CommandResult(self.ffmpeg_returncode, "", "Invalid data found when processing input")
        playlist = Path(args[-1])
        playlist.parent.mkdir(parents=True, exist_ok=True)
        segment = Path(args[args.index("-hls_segment_filename") + 1].replace("%03d", "000"))
        segment.write_bytes(b"\x47" * 188)
        playlist.write_text(f"#EXTM3U\n#EXTINF:10.0,\n{segment.name}\n#EXT-X-ENDLIST\n")
        return CommandResult(0, "", "")

    def _git(self, args):
        if args[0] in self.git_failures:
            return CommandResult(1, "", f"fatal: {args[0]} rejected")
        return CommandResult(0, self.git_outputs.get(args[0], ""), "")

    @property
    def ffmpeg_calls(self) -> list[list[str]]:
        return [call for call in self.calls if call[0] != "git"]

    @property
    def git_calls(self) -> list[list[str]]:
        return [call[1:] for call in self.calls if call[0] == "git"]


@pytest.fixture()
def repo_root(tmp_path):
    root = tmp_path / "family-business"
    (root / ".git").mkdir(parents=True)
    (root / "src" / "data").mkdir(parents=True)
    (root / "public").mkdir()
    (root / "package.json").write_text("{}")
    return root


@pytest.fixture()
def settings(repo_root, tmp_path):
    return Settings(
        feishu_app_id="cli_test",
        feishu_app_secret="secret",
        bitable_app_token=APP_TOKEN,
        table_id_products="tblProducts",
        table_id_brands="tblBrands",
        table_id_display_categories="tblCategories",
        table_id_media="tblMedia",
        table_id_store_info="tblStore",
        repo_root=repo_root,
        base_url=BASE_URL,
        scratch_dir=tmp_path / "scratch",
    )


@pytest.fixture()
def fake_runner():
    return FakeRunner(
        git_outputs={
            "status": " M src/data/mockData.ts\n",
            "diff": "src/data/mockData.ts\nsrc/data/productDatabase.json\n",
        }
    )
