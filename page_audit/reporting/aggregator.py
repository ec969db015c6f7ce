"""Accumulates verdicts and recorded events into a RunReport."""

from __future__ import annotations

from typing import Iterable, Mapping

import structlog

from page_audit.models import EventCheck, EventLog, EventLogEntry, RunReport, Verdict
from page_audit.rules import ConsoleTextMatch, evaluate

logger = structlog.get_logger(__name__)


class ReportAggregator:
    """Collects results for one run; `summarize` is independent of recording order."""

    def __init__(self, name: str):
        self.name = name
        self._verdicts: list[Verdict] = []
        self._event_checks: list[EventCheck] = []
        self._events: list[EventLogEntry] = []
        self._logs_seen: list[EventLog] = []
        self._artifacts: dict[str, str] = {}
        self._error: str | None = None

    def record(self, verdict: Verdict) -> None:
        self._verdicts.append(verdict)
        if not verdict.passed:
            logger.warning(
                "Rule failed",
                report=self.name,
                rule=verdict.rule_name,
                offenders=verdict.offender_count,
                message=verdict.message,
            )

    def record_all(self, verdicts: Iterable[Verdict]) -> None:
        for verdict in verdicts:
            self.record(verdict)

    def record_events(self, log: EventLog, rule: ConsoleTextMatch) -> EventCheck:
        """Evaluate an event rule against `log` and keep both the check and the log's entries."""
        verdict = evaluate(rule, log)
        check = EventCheck(verdict=verdict, matched=rule.matching(log))
        self._event_checks.append(check)
        # The same log is usually checked by several rules; keep its entries once.
        if not any(seen is log for seen in self._logs_seen):
            self._logs_seen.append(log)
            self._events.extend(log.entries)
        if not verdict.passed:
            logger.warning(
                "Disallowed console events",
                report=self.name,
                rule=verdict.rule_name,
                count=len(check.matched),
                max_allowed=rule.max_allowed,
            )
        return check

    def add_artifact(self, name: str, path: str) -> None:
        self._artifacts[name] = path

    def record_error(self, error: str) -> None:
        self._error = error

    def summarize(self) -> RunReport:
        verdicts = tuple(sorted(self._verdicts, key=Verdict.sort_key))
        checks = tuple(sorted(self._event_checks, key=lambda c: c.verdict.sort_key()))
        events = tuple(self._events)
        report = RunReport(
            name=self.name,
            verdicts=verdicts,
            event_checks=checks,
            events=events,
            error=self._error,
            artifacts=dict(self._artifacts),
        )
        logger.info(
            "Run summarized",
            report=self.name,
            verdicts=len(verdicts),
            failures=report.total_failures,
            events=len(events),
            ok=report.ok,
        )
        return report


def summarize_reports(reports: Iterable[RunReport]) -> Mapping[str, object]:
    """Suite-level totals across several run reports."""
    items = list(reports)
    failed = [r for r in items if not r.ok]
    return {
        "total": len(items),
        "passed": len(items) - len(failed),
        "failed": len(failed),
        "total_failures": sum(r.total_failures for r in items),
        "errors": {r.name: r.error for r in items if r.error},
        "failed_reports": [r.name for r in failed],
    }
