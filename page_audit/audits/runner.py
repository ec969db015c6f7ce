"""Audit runner using Playwright against the target site."""

from datetime import datetime
from pathlib import Path
from typing import Any
from urllib.parse import urljoin

import structlog
from playwright.async_api import Browser, BrowserContext, Page, async_playwright
from playwright.async_api import Error as PlaywrightError

from ..config import AuditConfig, get_config
from ..errors import CollectionError
from ..inspection.collector import collect
from ..inspection.interactions import count_matches, follow_link, inspect_form, probe_buttons, submit_empty_form
from ..inspection.recorder import EventRecorder
from ..models import EventLog, PageSnapshot, RunReport, Verdict
from ..reporting.aggregator import ReportAggregator
from ..rules import evaluate
from .definitions import Audit

logger = structlog.get_logger(__name__)

CHROMIUM_ARGS = [
    "--no-sandbox",
    "--disable-gpu",
    "--disable-extensions",
    "--disable-background-networking",
    "--disable-sync",
    "--no-first-run",
    "--no-default-browser-check",
    # Avoid renderer crashes when /dev/shm is tiny.
    "--disable-dev-shm-usage",
]

CHROMIUM_CANDIDATES = [
    "/usr/bin/chromium",
    "/usr/bin/chromium-browser",
    "/usr/bin/google-chrome",
    "/usr/bin/google-chrome-stable",
    "/Applications/Google Chrome.app/Contents/MacOS/Google Chrome",
]


def find_chromium_executable(configured: str | None = None) -> str | None:
    if configured and Path(configured).exists():
        return configured
    for path in CHROMIUM_CANDIDATES:
        if Path(path).exists():
            return path
    # Playwright's bundled Chromium.
    return None


class AuditRunner:
    """Runs audits, one fresh page each, against `base_url`."""

    def __init__(
        self,
        config: AuditConfig | None = None,
        base_url: str | None = None,
        recorder: EventRecorder | None = None,
    ):
        self.config = config or get_config()
        self.base_url = base_url or self.config.base_url
        self.recorder = recorder or EventRecorder()
        self.browser: Browser | None = None
        self.context: BrowserContext | None = None

    async def __aenter__(self):
        """Async context manager entry."""
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.stop()

    async def start(self):
        """Initialize the browser and context."""
        logger.info("Starting audit runner", base_url=self.base_url)

        self.playwright = await async_playwright().start()
        launch_kwargs: dict[str, Any] = {"headless": self.config.browser_headless, "args": CHROMIUM_ARGS}
        executable = find_chromium_executable(self.config.chromium_path)
        if executable:
            launch_kwargs["executable_path"] = executable
        self.browser = await self.playwright.chromium.launch(**launch_kwargs)
        self.context = await self.browser.new_context(
            viewport={"width": self.config.viewport.width, "height": self.config.viewport.height}
        )

    async def stop(self):
        """Cleanup browser resources."""
        logger.info("Stopping audit runner")

        if self.context:
            await self.context.close()
        if self.browser:
            await self.browser.close()
        if hasattr(self, "playwright"):
            await self.playwright.stop()

    def url_for(self, path: str) -> str:
        return urljoin(self.base_url, path)

    async def goto(self, page: Page, url: str, wait_until: str | None = None) -> None:
        """Navigate and wait for the readiness condition. One attempt; failures become CollectionError."""
        wait_until = wait_until or self.config.wait_until
        try:
            await page.goto(url, wait_until=wait_until, timeout=self.config.navigation_timeout * 1000)
        except PlaywrightError as e:
            raise CollectionError(f"navigation to {url} failed: {type(e).__name__}: {e}", url=url) from e
        logger.info("Page ready", url=page.url, wait_until=wait_until)

    async def run_audit(self, audit: Audit) -> RunReport:
        """Run a single audit on a new page."""
        if self.context is None:
            raise RuntimeError("AuditRunner is not started")
        page = await self.context.new_page()
        try:
            return await self.run_on_page(page, audit)
        finally:
            await page.close()

    async def run_on_page(self, page: Page, audit: Audit) -> RunReport:
        """Record -> navigate -> collect -> evaluate -> probe, then check the recorded events."""
        url = self.url_for(audit.path)
        aggregator = ReportAggregator(audit.name)
        logger.info("Running audit", audit=audit.name, url=url)

        handle = self.recorder.start(page)
        try:
            try:
                await self.goto(page, url, audit.wait_until)
                snapshot = await collect(page, audit.observation)
                self._log_snapshot(audit, snapshot)
                for rule in audit.snapshot_rules:
                    aggregator.record(evaluate(rule, snapshot))
                await self._run_probes(page, audit, aggregator)
                if audit.screenshot:
                    path = await self._take_screenshot(page, Path(self.config.artifacts_directory) / audit.screenshot)
                    aggregator.add_artifact("screenshot", path)
            except (CollectionError, PlaywrightError) as e:
                error = str(e) if isinstance(e, CollectionError) else f"{type(e).__name__}: {e}"
                logger.error("Audit aborted", audit=audit.name, error=error)
                aggregator.record_error(error)
                if self.config.screenshot_on_failure:
                    path = await self._failure_screenshot(page, audit.name)
                    if path:
                        aggregator.add_artifact("failure_screenshot", path)
        finally:
            log = self.recorder.stop(handle)

        self._log_events(audit, log)
        for rule in audit.event_rules:
            aggregator.record_events(log, rule)
        return aggregator.summarize()

    async def run_suite(self, audits: list[Audit]) -> list[RunReport]:
        """Run multiple audits sequentially and return their reports."""
        reports = []

        logger.info("Running audit suite", audit_count=len(audits))

        for audit in audits:
            reports.append(await self.run_audit(audit))

        passed = sum(1 for r in reports if r.ok)
        logger.info("Audit suite completed", total=len(reports), passed=passed, failed=len(reports) - passed)

        return reports

    async def _run_probes(self, page: Page, audit: Audit, aggregator: ReportAggregator) -> None:
        for probe in audit.probes:
            if probe == "buttons":
                result = await probe_buttons(page, timeout_ms=self.config.click_timeout_ms)
                aggregator.record_all(result.verdicts)
            elif probe == "cta":
                counts = await count_matches(page)
                found = sum(entry["count"] for entry in counts.values())
                aggregator.record(
                    Verdict(
                        rule_name="CallToAction",
                        passed=True,
                        message=f"{found} call-to-action element(s) found",
                        details={"counts": counts},
                    )
                )
            elif probe == "form":
                form = await inspect_form(page)
                for i, field in enumerate(form.inputs, start=1):
                    logger.info(
                        "Input field",
                        input=i,
                        type=field.type,
                        name=field.name or "(no name)",
                        placeholder=field.placeholder or "(none)",
                        required=field.required,
                    )
                for i, button in enumerate(form.buttons, start=1):
                    logger.info("Form button", button=i, text=button.text, type=button.type, disabled=button.disabled)
            elif probe == "submit":
                submission = await submit_empty_form(page, timeout_ms=self.config.submit_timeout_ms)
                if submission.verdict is not None:
                    aggregator.record(submission.verdict)
            elif probe == "links":
                for link in audit.links:
                    aggregator.record(
                        await follow_link(page, link.text, link.url_pattern, timeout_ms=self.config.click_timeout_ms)
                    )

    def _log_snapshot(self, audit: Audit, snapshot: PageSnapshot) -> None:
        logger.info("Page title", audit=audit.name, title=snapshot.title)
        for sel, n in snapshot.counts.items():
            logger.info("Selector count", audit=audit.name, selector=sel, count=n)
        for sheet in snapshot.stylesheets:
            if sheet.ok:
                logger.debug("Stylesheet", audit=audit.name, status=sheet.describe())
            else:
                logger.warning("Stylesheet unreadable", audit=audit.name, status=sheet.describe())
        if snapshot.font_faces:
            logger.info("Loaded @font-face fonts", audit=audit.name, fonts=list(snapshot.font_faces))

    def _log_events(self, audit: Audit, log: EventLog) -> None:
        for entry in log.errors():
            logger.warning("Console error", audit=audit.name, kind=entry.kind, text=entry.text)
        for entry in log.warnings():
            logger.info("Console warning", audit=audit.name, text=entry.text)
        if not log.errors():
            logger.info("No console errors detected", audit=audit.name)

    async def _take_screenshot(self, page: Page, path: Path) -> str:
        path.parent.mkdir(parents=True, exist_ok=True)
        await page.screenshot(path=str(path))
        logger.info("Screenshot saved", path=str(path))
        return str(path)

    async def _failure_screenshot(self, page: Page, audit_name: str) -> str | None:
        timestamp = datetime.utcnow().strftime("%Y%m%d_%H%M%S")
        path = Path(self.config.reports_directory) / "screenshots" / f"{audit_name}_{timestamp}.png"
        try:
            return await self._take_screenshot(page, path)
        except PlaywrightError as e:
            logger.warning("Failure screenshot not captured", audit=audit_name, error=str(e))
            return None
