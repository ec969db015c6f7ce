from __future__ import annotations

import json
from pathlib import Path

import pytest
import yaml

import page_audit.cli as cli
from fakes import FakePage
from page_audit.audits import AuditRunner


class _OfflineRunner(AuditRunner):
    """Runs the real audit pipeline on fake pages instead of a launched browser."""

    page_events: list[tuple[str, str]] = []

    async def start(self) -> None:
        pass

    async def stop(self) -> None:
        pass

    async def run_audit(self, audit):
        return await self.run_on_page(FakePage(navigation_events=list(self.page_events)), audit)


@pytest.fixture()
def cli_args(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> list[str]:
    monkeypatch.setattr(cli, "AuditRunner", _OfflineRunner)
    monkeypatch.setattr(cli, "configure_logging", lambda level="INFO": None)
    monkeypatch.setattr(_OfflineRunner, "page_events", [])
    for var in ("PAGE_AUDIT_BASE_URL", "PAGE_AUDIT_REPORTS_DIR", "BROWSER_HEADLESS", "LOG_LEVEL"):
        monkeypatch.delenv(var, raising=False)

    config_path = tmp_path / "page_audit.yaml"
    config_path.write_text(
        yaml.safe_dump(
            {
                "base_url": "http://kalm.lk/",
                "artifacts_directory": str(tmp_path / "artifacts"),
                "reports_directory": str(tmp_path / "reports"),
            }
        )
    )
    return ["--config", str(config_path), "--audits-dir", str(tmp_path / "no-audits"), "--reports-dir", str(tmp_path / "reports")]


@pytest.mark.asyncio
async def test_passing_audit_exits_zero_and_writes_report(cli_args: list[str], tmp_path: Path) -> None:
    rc = await cli._amain([*cli_args, "--audit", "landing-errors", "--report-name", "smoke"])

    assert rc == 0
    saved = json.loads((tmp_path / "reports" / "smoke.json").read_text())
    assert saved["summary"]["passed"] == 1
    assert [a["name"] for a in saved["audits"]] == ["landing-errors"]
    assert (tmp_path / "reports" / "smoke.html").exists()


@pytest.mark.asyncio
async def test_console_error_exits_one(cli_args: list[str], tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    _OfflineRunner.page_events = [("error", "Uncaught TypeError: menu is null")]

    rc = await cli._amain([*cli_args, "--audit", "landing-errors", "--report-name", "errors"])

    assert rc == 1
    saved = json.loads((tmp_path / "reports" / "errors.json").read_text())
    assert saved["summary"]["total_failures"] == 1
    out = capsys.readouterr().out
    assert "ConsoleErrors" in out


@pytest.mark.asyncio
async def test_unknown_audit_exits_two(cli_args: list[str], tmp_path: Path) -> None:
    rc = await cli._amain([*cli_args, "--audit", "does-not-exist"])

    assert rc == 2
    assert not list((tmp_path / "reports").glob("*.json"))


@pytest.mark.asyncio
async def test_list_prints_audits(cli_args: list[str], capsys: pytest.CaptureFixture[str]) -> None:
    rc = await cli._amain([*cli_args, "--list"])

    assert rc == 0
    out = capsys.readouterr().out
    assert "landing-errors" in out
    assert "register-form" in out
