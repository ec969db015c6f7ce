from __future__ import annotations

import pytest

from page_audit.errors import AssertionFailure, CollectionError, UnexpectedConsoleEvent
from page_audit.models import EventLog, EventLogEntry, Verdict
from page_audit.reporting.aggregator import ReportAggregator, summarize_reports
from page_audit.rules import ConsoleTextMatch


PASS = Verdict(rule_name="TitleNonEmpty", passed=True, message="Page title is empty", details={"title": "Kalm"})
FAIL_A = Verdict(rule_name="NoTransparentText", passed=False, message="Transparent text color", offenders=("P",))
FAIL_B = Verdict(rule_name="ButtonClick", passed=False, message="Button could not be clicked", offenders=("Button 2",))

LOG = EventLog(
    entries=(
        EventLogEntry(kind="log", text="boot", timestamp=1.0),
        EventLogEntry(kind="error", text="font load failed", timestamp=2.0),
        EventLogEntry(kind="pageerror", text="TypeError: x is undefined", timestamp=3.0),
    )
)


def test_summary_is_independent_of_recording_order() -> None:
    a = ReportAggregator("landing")
    a.record_all([PASS, FAIL_A, FAIL_B])
    b = ReportAggregator("landing")
    b.record_all([FAIL_B, PASS, FAIL_A])

    assert a.summarize() == b.summarize()


def test_total_failures_counts_verdicts_and_disallowed_events() -> None:
    agg = ReportAggregator("landing")
    agg.record_all([PASS, FAIL_A, FAIL_B])
    errors = agg.record_events(LOG, ConsoleTextMatch(kinds=("error", "pageerror"), label="ConsoleErrors"))
    agg.record_events(LOG, ConsoleTextMatch(kinds=("warning",), label="ConsoleWarnings"))

    report = agg.summarize()

    assert len(errors.disallowed) == 2
    assert report.total_failures == len(report.failing_verdicts) + len(report.disallowed_events) == 4
    assert report.ok is False
    # The log was checked twice but its entries are kept once, in emission order.
    assert [e.text for e in report.events] == ["boot", "font load failed", "TypeError: x is undefined"]


def test_events_within_threshold_are_not_disallowed() -> None:
    agg = ReportAggregator("palette")
    check = agg.record_events(LOG, ConsoleTextMatch(kinds=("error",), substrings=("font",), max_allowed=1))

    report = agg.summarize()

    assert check.matched and not check.disallowed
    assert report.total_failures == 0
    assert report.ok is True


def test_failures_by_rule_groups_verdicts_and_event_checks() -> None:
    agg = ReportAggregator("landing")
    agg.record_all([FAIL_A, FAIL_B, Verdict(rule_name="ButtonClick", passed=False, offenders=("Button 4",))])
    agg.record_events(LOG, ConsoleTextMatch(kinds=("pageerror",), label="PageErrors"))

    groups = agg.summarize().failures_by_rule

    assert sorted(groups) == ["ButtonClick", "NoTransparentText", "PageErrors"]
    assert len(groups["ButtonClick"]) == 2


def test_raise_for_failures() -> None:
    agg = ReportAggregator("landing")
    agg.record(PASS)
    agg.summarize().raise_for_failures()

    agg.record(FAIL_A)
    with pytest.raises(AssertionFailure) as excinfo:
        agg.summarize().raise_for_failures()
    assert excinfo.value.verdicts == (FAIL_A,)
    assert isinstance(excinfo.value, AssertionError)

    agg.record_events(LOG, ConsoleTextMatch(kinds=("pageerror",)))
    with pytest.raises(UnexpectedConsoleEvent) as excinfo:
        agg.summarize().raise_for_failures()
    assert [e.kind for e in excinfo.value.entries] == ["pageerror"]

    agg.record_error("navigation to http://kalm.lk/ failed")
    with pytest.raises(CollectionError):
        agg.summarize().raise_for_failures()


def test_summarize_reports() -> None:
    ok = ReportAggregator("a")
    ok.record(PASS)
    bad = ReportAggregator("b")
    bad.record(FAIL_A)
    broken = ReportAggregator("c")
    broken.record_error("page is closed")

    summary = summarize_reports([ok.summarize(), bad.summarize(), broken.summarize()])

    assert summary["total"] == 3
    assert summary["passed"] == 1
    assert summary["failed"] == 2
    assert summary["total_failures"] == 1
    assert summary["errors"] == {"c": "page is closed"}
    assert summary["failed_reports"] == ["b", "c"]


def test_report_to_dict() -> None:
    agg = ReportAggregator("landing")
    agg.record(FAIL_A)
    agg.add_artifact("screenshot", "landing-page-colors.png")

    data = agg.summarize().to_dict()

    assert data["ok"] is False
    assert data["summary"]["total_failures"] == 1
    assert data["failures_by_rule"]["NoTransparentText"][0]["offenders"] == ["P"]
    assert data["artifacts"] == {"screenshot": "landing-page-colors.png"}


def test_entry_matched_by_two_failing_rules_counts_once() -> None:
    agg = ReportAggregator("font-basics")
    agg.record_events(LOG, ConsoleTextMatch(kinds=("error", "pageerror"), label="ConsoleErrors"))
    agg.record_events(LOG, ConsoleTextMatch(kinds=("error",), substrings=("font",), label="ConsoleFontErrors"))

    report = agg.summarize()

    assert sorted(report.failures_by_rule) == ["ConsoleErrors", "ConsoleFontErrors"]
    assert [e.text for e in report.disallowed_events] == ["font load failed", "TypeError: x is undefined"]
    assert report.total_failures == 2


def test_every_recorded_log_keeps_its_entries() -> None:
    agg = ReportAggregator("landing")
    rule = ConsoleTextMatch(kinds=("error",))
    for i in range(20):
        agg.record_events(EventLog(entries=(EventLogEntry(kind="log", text=f"visit {i}", timestamp=1.0),)), rule)

    report = agg.summarize()

    assert [e.text for e in report.events] == [f"visit {i}" for i in range(20)]
