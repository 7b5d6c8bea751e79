"""Tests for the CLI module."""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest
import respx
from click.testing import CliRunner
from openpyxl import load_workbook

from rate_ledger.cli import cli
from rate_ledger.core.config import StorageConfig
from rate_ledger.core.models import MergedRecord
from rate_ledger.ingestion.store import create_store
from tests.conftest import CAD_URL, DAY_MS, JAN_1_2024, USD_URL, series_xml


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "cli.db")


@pytest.fixture
def config_file(tmp_path, db_path):
    path = tmp_path / "rate-ledger.yml"
    path.write_text(
        "source:\n"
        "  series:\n"
        f"    USD: {USD_URL}\n"
        f"    CAD: {CAD_URL}\n"
        "storage:\n"
        f"  sqlite_path: {db_path}\n"
        "export:\n"
        f"  filename: {tmp_path / 'default.xlsx'}\n"
    )
    return str(path)


@pytest.fixture
def seeded(db_path):
    """Pre-load three days of USD/CAD rates."""

    async def _seed():
        store = await create_store(StorageConfig(sqlite_path=db_path), ["USD", "CAD"])
        try:
            await store.merge_insert(
                [
                    MergedRecord(
                        timestamp=JAN_1_2024 + i * DAY_MS,
                        values={"USD": 1.10 + i / 100, "CAD": 1.47 + i / 100},
                    )
                    for i in range(3)
                ]
            )
        finally:
            await store.close()

    asyncio.run(_seed())


def _invoke(runner, config_file, *args, **kwargs):
    return runner.invoke(cli, ["--config", config_file, *args], **kwargs)


# ---------------------------------------------------------------------------
# CLI group tests
# ---------------------------------------------------------------------------


class TestCLIGroup:
    def test_help(self, runner):
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "rate-ledger" in result.output
        for command in ("sync", "history", "latest", "export", "reset", "serve"):
            assert command in result.output

    def test_unknown_command(self, runner):
        result = runner.invoke(cli, ["nonexistent"])
        assert result.exit_code != 0

    def test_bad_config_file(self, runner, tmp_path):
        path = tmp_path / "bad.yml"
        path.write_text("source:\n  request_timeout: 0\n")
        result = runner.invoke(cli, ["--config", str(path), "latest"])
        assert result.exit_code == 1
        assert "ConfigError" in result.output


# ---------------------------------------------------------------------------
# sync
# ---------------------------------------------------------------------------


class TestSyncCommand:
    @respx.mock
    def test_sync_inserts_then_noop(self, runner, config_file):
        respx.get(USD_URL).mock(
            return_value=httpx.Response(200, text=series_xml("USD", [("2024-01-01", "1.10")]))
        )
        respx.get(CAD_URL).mock(
            return_value=httpx.Response(200, text=series_xml("CAD", [("2024-01-01", "1.47")]))
        )

        first = _invoke(runner, config_file, "sync")
        assert first.exit_code == 0, first.output
        assert "Inserted 1 new records" in first.output
        assert "Latest day: 2024-01-01" in first.output

        second = _invoke(runner, config_file, "sync")
        assert second.exit_code == 0
        assert "Inserted 0 new records" in second.output

    @respx.mock
    def test_sync_fetch_failure(self, runner, config_file):
        respx.get(USD_URL).mock(return_value=httpx.Response(200, text=series_xml("USD", [])))
        respx.get(CAD_URL).mock(return_value=httpx.Response(404))

        result = _invoke(runner, config_file, "sync")
        assert result.exit_code == 1
        assert "FetchError" in result.output
        assert "HTTP 404" in result.output


# ---------------------------------------------------------------------------
# history / latest
# ---------------------------------------------------------------------------


class TestHistoryCommand:
    def test_empty_table(self, runner, config_file):
        result = _invoke(runner, config_file, "history")
        assert result.exit_code == 0
        assert "No rates stored" in result.output

    def test_table(self, runner, config_file, seeded):
        result = _invoke(runner, config_file, "history")
        assert result.exit_code == 0
        assert "2024-01-01" in result.output
        assert "1.4700" in result.output

    def test_json(self, runner, config_file, seeded):
        result = _invoke(runner, config_file, "history", "--format", "json", "--limit", "2")
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert [d["date"] for d in data] == ["2024-01-02", "2024-01-03"]
        assert data[0]["USD"] == pytest.approx(1.11)

    def test_csv(self, runner, config_file, seeded):
        result = _invoke(runner, config_file, "history", "-f", "csv")
        assert result.exit_code == 0
        lines = result.stdout.strip().splitlines()
        assert lines[0] == "date,USD,CAD"
        assert lines[1].startswith("2024-01-01,")
        assert len(lines) == 4


class TestLatestCommand:
    def test_empty(self, runner, config_file):
        result = _invoke(runner, config_file, "latest")
        assert result.exit_code == 0
        assert "No rates stored" in result.output

    def test_latest(self, runner, config_file, seeded):
        result = _invoke(runner, config_file, "latest")
        assert result.exit_code == 0
        assert f"2024-01-03 ({JAN_1_2024 + 2 * DAY_MS})" in result.output


# ---------------------------------------------------------------------------
# export
# ---------------------------------------------------------------------------


class TestExportCommand:
    def test_export_to_output(self, runner, config_file, seeded, tmp_path):
        target = tmp_path / "out.xlsx"
        result = _invoke(runner, config_file, "export", "-o", str(target))
        assert result.exit_code == 0, result.output
        assert "Wrote 3 rows" in result.output

        rows = list(load_workbook(target).active.iter_rows(values_only=True))
        assert rows[0] == ("Date", "USD", "CAD")
        assert len(rows) == 4

    def test_export_default_filename(self, runner, config_file, seeded, tmp_path):
        result = _invoke(runner, config_file, "export")
        assert result.exit_code == 0
        assert (tmp_path / "default.xlsx").exists()


# ---------------------------------------------------------------------------
# reset
# ---------------------------------------------------------------------------


class TestResetCommand:
    def test_requires_confirmation(self, runner, config_file, seeded):
        result = _invoke(runner, config_file, "reset", input="n\n")
        assert result.exit_code != 0

        latest = _invoke(runner, config_file, "latest")
        assert "2024-01-03" in latest.output

    def test_reset_with_yes(self, runner, config_file, seeded):
        result = _invoke(runner, config_file, "reset", "--yes")
        assert result.exit_code == 0
        assert "Cleared" in result.output

        latest = _invoke(runner, config_file, "latest")
        assert "No rates stored" in latest.output


# ---------------------------------------------------------------------------
# serve
# ---------------------------------------------------------------------------


class TestServeCommand:
    def test_serve_help(self, runner):
        result = runner.invoke(cli, ["serve", "--help"])
        assert result.exit_code == 0
        assert "--port" in result.output

    def test_serve_runs_uvicorn(self, runner, config_file, monkeypatch):
        calls = {}

        def fake_run(app, **kwargs):
            calls["app"] = app
            calls.update(kwargs)

        import uvicorn

        monkeypatch.setattr(uvicorn, "run", fake_run)
        monkeypatch.setenv("RATE_LEDGER_CONFIG", config_file)
        result = _invoke(runner, config_file, "serve", "--port", "9100")
        assert result.exit_code == 0
        assert calls["app"] == "rate_ledger.api.app:create_app"
        assert calls["port"] == 9100
        assert calls["factory"] is True

    def test_serve_passes_config_path_to_app(self, runner, config_file, tmp_path, monkeypatch):
        import os

        import uvicorn

        other = tmp_path / "other.yml"
        other.write_text("api:\n  port: 9200\n")
        monkeypatch.setenv("RATE_LEDGER_CONFIG", str(other))
        monkeypatch.setattr(uvicorn, "run", lambda app, **kwargs: None)

        result = _invoke(runner, config_file, "serve")
        assert result.exit_code == 0
        assert os.environ["RATE_LEDGER_CONFIG"] == os.path.abspath(config_file)
