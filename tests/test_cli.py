import pytest

from catalog_sync import cli
from catalog_sync.errors import GitError, SourceApiError
from catalog_sync.ingest.models import TableInfo


@pytest.fixture()
def configured(monkeypatch, settings):
    monkeypatch.setattr(cli.Settings, "from_env", classmethod(lambda cls: settings))
    return settings


def test_missing_configuration_exits_1(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for name in ("FEISHU_APP_ID", "FEISHU_APP_SECRET", "BITABLE_APP_TOKEN"):
        monkeypatch.delenv(name, raising=False)
    assert cli.main(["sync", "--dry-run"]) == cli.EXIT_CONFIG


def test_sync_passes_options(monkeypatch, configured):
    seen = {}

    async def fake_run_sync(settings, options):
        seen["options"] = options

    monkeypatch.setattr(cli, "run_sync", fake_run_sync)
    assert cli.main(["sync", "--dry-run", "--no-push"]) == cli.EXIT_OK
    assert seen["options"].dry_run and seen["options"].no_push


def test_source_failure_exits_2(monkeypatch, configured):
    async def failing(settings, options):
        raise SourceApiError("Failed to read records from tblProducts", 91403, "Forbidden")

    monkeypatch.setattr(cli, "run_sync", failing)
    assert cli.main(["sync"]) == cli.EXIT_SYNC


def test_publish_failure_exits_3(monkeypatch, configured):
    async def failing(settings, options):
        raise GitError("git push failed (exit 1): rejected")

    monkeypatch.setattr(cli, "run_sync", failing)
    assert cli.main(["sync"]) == cli.EXIT_PUBLISH


def test_list_tables_prints_table(monkeypatch, configured, capsys):
    async def fake_list(settings):
        return [TableInfo(table_id="tblProducts", name="商品")]

    monkeypatch.setattr(cli, "list_tables", fake_list)
    assert cli.main(["list-tables"]) == cli.EXIT_OK
    out = capsys.readouterr().out
    assert "tblProducts" in out and "商品" in out
