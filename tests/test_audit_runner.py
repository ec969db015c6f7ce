from __future__ import annotations

from pathlib import Path

import pytest
from playwright.async_api import Error as PlaywrightError

from fakes import FakeElement, FakePage, row
from page_audit.audits import AuditRunner, builtin_audits
from page_audit.config import AuditConfig


def _runner(tmp_path: Path) -> AuditRunner:
    config = AuditConfig(
        base_url="http://kalm.lk/",
        artifacts_directory=str(tmp_path / "artifacts"),
        reports_directory=str(tmp_path / "reports"),
        click_timeout_ms=100,
    )
    return AuditRunner(config=config)


@pytest.mark.asyncio
async def test_events_during_navigation_are_checked(tmp_path: Path) -> None:
    page = FakePage(navigation_events=[("log", "boot"), ("error", "Failed to load resource: 404")])
    audit = builtin_audits()["landing-errors"]

    report = await _runner(tmp_path).run_on_page(page, audit)

    assert page.goto_calls == [{"url": "http://kalm.lk/", "wait_until": "networkidle", "timeout": 30000}]
    assert [v.rule_name for v in report.verdicts] == ["TitleNonEmpty"]
    assert report.failing_verdicts == ()
    assert [e.text for e in report.disallowed_events] == ["Failed to load resource: 404"]
    assert report.total_failures == 1
    assert len(report.events) == 2
    assert page.listeners["console"] == []


@pytest.mark.asyncio
async def test_color_audit_flags_offenders_and_saves_screenshot(tmp_path: Path) -> None:
    page = FakePage(
        dom={
            "elements": {
                "body": [row(1, "BODY", leaf=False, color="rgb(0, 0, 0)", backgroundColor="rgb(255, 255, 255)")],
                "body *": [
                    row(2, "P", color="rgba(0, 0, 0, 0)", backgroundColor="rgba(0, 0, 0, 0)"),
                    row(3, "BUTTON", color="rgb(255, 255, 255)", backgroundColor="rgba(0, 0, 0, 0)"),
                    row(4, "BUTTON", color="rgb(255, 255, 255)", backgroundColor="rgb(0, 128, 0)"),
                ],
            }
        }
    )
    audit = builtin_audits()["landing-colors"]

    report = await _runner(tmp_path).run_on_page(page, audit)

    failures = report.failures_by_rule
    assert failures["NoTransparentText"][0].offenders == ("P",)
    assert failures["BackgroundPresence"][0].offenders == ("BUTTON",)
    assert report.total_failures == 2
    screenshot = Path(report.artifacts["screenshot"])
    assert screenshot == tmp_path / "artifacts" / "landing-page-colors.png"
    assert screenshot.exists()


@pytest.mark.asyncio
async def test_navigation_failure_is_reported_as_error(tmp_path: Path) -> None:
    page = FakePage(goto_error=PlaywrightError("net::ERR_NAME_NOT_RESOLVED at http://kalm.lk/"))
    audit = builtin_audits()["landing-errors"]

    report = await _runner(tmp_path).run_on_page(page, audit)

    assert report.ok is False
    assert "ERR_NAME_NOT_RESOLVED" in report.error
    assert report.verdicts == ()
    assert Path(report.artifacts["failure_screenshot"]).parent == tmp_path / "reports" / "screenshots"
    assert page.listeners["pageerror"] == []


@pytest.mark.asyncio
async def test_menu_links_probe(tmp_path: Path) -> None:
    page = FakePage(
        locators={
            "text=About": [FakeElement(navigates_to="http://kalm.lk/about")],
            "text=Contact": [FakeElement(click_hangs=True)],
        }
    )
    audit = builtin_audits()["menu-links"]

    report = await _runner(tmp_path).run_on_page(page, audit)

    assert page.goto_calls[0]["wait_until"] == "load"
    results = {v.rule_name: v.passed for v in report.verdicts}
    assert results == {"Link(About)": True, "Link(Contact)": False}


@pytest.mark.asyncio
async def test_button_and_form_probes(tmp_path: Path) -> None:
    page = FakePage(
        locators={
            "button": [FakeElement(text="Go"), FakeElement(text="Stuck", click_hangs=True)],
            "form": [FakeElement()],
            'button[type="submit"]': [FakeElement(text="Register")],
        }
    )
    runner = _runner(tmp_path)

    buttons = await runner.run_on_page(page, builtin_audits()["landing-buttons"])
    form = await runner.run_on_page(page, builtin_audits()["register-form"])

    assert [(v.rule_name, v.passed) for v in buttons.verdicts] == [
        ("ButtonClick", False),
        ("ButtonClick", True),
        ("CallToAction", True),
    ]
    assert buttons.failures_by_rule["ButtonClick"][0].offenders == ("Button 2",)
    cta = buttons.verdicts[-1]
    assert cta.details["counts"]['a[role="button"]'] == {"count": 0}
    assert cta.message == "0 call-to-action element(s) found"
    assert [v.rule_name for v in form.verdicts] == ["FormSubmit"]
    assert form.ok is True
    assert page.goto_calls[-1]["url"] == "http://kalm.lk/register"


def test_url_for_joins_paths() -> None:
    runner = AuditRunner(config=AuditConfig(), base_url="https://staging.kalm.lk/app/")

    assert runner.url_for("/register") == "https://staging.kalm.lk/register"
    assert runner.url_for("about") == "https://staging.kalm.lk/app/about"


@pytest.mark.asyncio
async def test_detached_button_does_not_abort_audit(tmp_path: Path) -> None:
    page = FakePage(locators={"button": [FakeElement(text="Gone", detached=True), FakeElement(text="Go")]})

    report = await _runner(tmp_path).run_on_page(page, builtin_audits()["landing-buttons"])

    assert report.error is None
    assert report.failures_by_rule["ButtonClick"][0].message == "Button state could not be read"
    assert report.total_failures == 1


@pytest.mark.asyncio
async def test_driver_error_after_collection_is_recorded(tmp_path: Path) -> None:
    page = FakePage(
        dom={"elements": {"body *": [row(1, "P", color="rgba(0, 0, 0, 0)", backgroundColor="rgb(255, 255, 255)")]}},
        screenshot_error=PlaywrightError("Target page, context or browser has been closed"),
    )

    report = await _runner(tmp_path).run_on_page(page, builtin_audits()["landing-colors"])

    assert report.error == "Error: Target page, context or browser has been closed"
    assert [v.rule_name for v in report.failing_verdicts] == ["NoTransparentText"]
    assert report.artifacts == {}
    assert page.listeners["console"] == []


class _FakeContext:
    def __init__(self, pages: list[FakePage]):
        self.pages = pages

    async def new_page(self) -> FakePage:
        return self.pages.pop(0)


@pytest.mark.asyncio
async def test_suite_continues_after_failed_audit(tmp_path: Path) -> None:
    broken = FakePage(screenshot_error=PlaywrightError("Target crashed"))
    healthy = FakePage()
    runner = _runner(tmp_path)
    runner.context = _FakeContext([broken, healthy])

    reports = await runner.run_suite([builtin_audits()["landing-colors"], builtin_audits()["landing-errors"]])

    assert [r.name for r in reports] == ["landing-colors", "landing-errors"]
    assert reports[0].error == "Error: Target crashed"
    assert reports[1].ok is True
    assert broken.closed and healthy.closed


@pytest.mark.asyncio
async def test_color_palette_checks_button_backgrounds(tmp_path: Path) -> None:
    audit = builtin_audits()["color-palette"]
    assert "button" in audit.observation.selectors

    styled = FakePage(
        dom={"elements": {"button": [row(1, "BUTTON", color="rgb(255, 255, 255)", backgroundColor="rgb(0, 128, 0)")]}}
    )
    report = await _runner(tmp_path).run_on_page(styled, audit)
    (verdict,) = [v for v in report.verdicts if v.rule_name == "SetNonEmpty(backgroundColor)"]
    assert verdict.passed is True
    assert verdict.details["distinct_values"] == ["rgb(0, 128, 0)"]

    bare = await _runner(tmp_path).run_on_page(FakePage(), audit)
    assert "SetNonEmpty(backgroundColor)" in bare.failures_by_rule
