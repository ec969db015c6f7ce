from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from page_audit.errors import AssertionFailure, CollectionError, UnexpectedConsoleEvent


# Computed-style properties the collector knows how to read (CSSOM camelCase names).
STYLE_PROPERTIES = frozenset(
    {
        "color",
        "backgroundColor",
        "fontFamily",
        "fontSize",
        "fontWeight",
        "lineHeight",
        "borderColor",
    }
)

@dataclass(frozen=True)
class ObservationSpec:
    selectors: tuple[str, ...] = ()
    properties: frozenset[str] = frozenset({"color", "backgroundColor"})
    attribute_names: tuple[str, ...] = ()
    # Counted through locators, so Playwright-only syntax (`:has-text()`) is allowed here.
    count_selectors: tuple[str, ...] = ()
    leaf_text_only: bool = False

    def __post_init__(self) -> None:
        unknown = sorted(set(self.properties) - STYLE_PROPERTIES)
        if unknown:
            raise ValueError(f"Unsupported style properties: {', '.join(unknown)}")
        for sel in self.selectors:
            if not str(sel or "").strip():
                raise ValueError("Empty selector in observation spec")

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "ObservationSpec":
        return cls(
            selectors=tuple(str(s) for s in raw.get("selectors") or ()),
            properties=frozenset(str(p) for p in raw.get("properties") or ("color", "backgroundColor")),
            attribute_names=tuple(str(a) for a in raw.get("attribute_names") or ()),
            count_selectors=tuple(str(s) for s in raw.get("count_selectors") or ()),
            leaf_text_only=bool(raw.get("leaf_text_only", False)),
        )


@dataclass(frozen=True)
class ElementObservation:
    element_id: int
    selector: str
    tag: str
    class_name: str = ""
    text: str = ""
    is_leaf: bool = False
    has_text: bool = False
    styles: Mapping[str, str] = field(default_factory=dict)
    attributes: Mapping[str, str] = field(default_factory=dict)

    @property
    def label(self) -> str:
        if self.class_name:
            return f"{self.tag}.{self.class_name}"
        return self.tag

    def style(self, name: str) -> str | None:
        return self.styles.get(name)

    def has_class(self, name: str) -> bool:
        return name in self.class_name.split()


@dataclass(frozen=True)
class StylesheetStatus:
    href: str
    rule_count: int | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def describe(self) -> str:
        if self.error is not None:
            return f"CSS Error: {self.href} - {self.error}"
        return f"CSS loaded: {self.href} ({self.rule_count} rules)"


@dataclass(frozen=True)
class FontStatus:
    count: int = 0
    ready: str = "Pending"  # Loaded|Pending


@dataclass(frozen=True)
class PageSnapshot:
    """Point-in-time read of page-visible style and DOM state."""

    url: str
    title: str
    elements: Mapping[str, tuple[ElementObservation, ...]] = field(default_factory=dict)
    counts: Mapping[str, int] = field(default_factory=dict)
    stylesheets: tuple[StylesheetStatus, ...] = ()
    font_faces: tuple[str, ...] = ()
    fonts: FontStatus = field(default_factory=FontStatus)
    root_custom_properties: int = 0
    captured_at: float = field(default_factory=time.time)

    def matches(self, selector: str | None = None) -> tuple[ElementObservation, ...]:
        """Elements for one selector, or every observed element (each once) when selector is None."""
        if selector is not None:
            return tuple(self.elements.get(selector, ()))
        seen: set[int] = set()
        out: list[ElementObservation] = []
        for items in self.elements.values():
            for el in items:
                if el.element_id in seen:
                    continue
                seen.add(el.element_id)
                out.append(el)
        return tuple(out)

    def count(self, selector: str) -> int:
        if selector in self.counts:
            return int(self.counts[selector])
        return len(self.elements.get(selector, ()))


@dataclass(frozen=True)
class EventLogEntry:
    kind: str  # console type (log|warning|error|...) or pageerror
    text: str
    timestamp: float


@dataclass(frozen=True)
class EventLog:
    entries: tuple[EventLogEntry, ...] = ()

    def __iter__(self):
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def of_kind(self, *kinds: str) -> tuple[EventLogEntry, ...]:
        return tuple(e for e in self.entries if e.kind in kinds)

    def errors(self) -> tuple[EventLogEntry, ...]:
        return self.of_kind("error", "pageerror")

    def warnings(self) -> tuple[EventLogEntry, ...]:
        return self.of_kind("warning")


@dataclass(frozen=True)
class Verdict:
    rule_name: str
    passed: bool
    message: str = ""
    offenders: tuple[str, ...] = ()
    details: Mapping[str, Any] = field(default_factory=dict)

    @property
    def offender_count(self) -> int:
        return len(self.offenders)

    def sort_key(self) -> tuple[Any, ...]:
        return (self.rule_name, self.passed, self.message, self.offenders, repr(sorted(self.details.items())))

    def to_dict(self) -> dict[str, Any]:
        return {
            "rule": self.rule_name,
            "passed": self.passed,
            "message": self.message,
            "offender_count": self.offender_count,
            "offenders": list(self.offenders),
            "details": dict(self.details),
        }


@dataclass(frozen=True)
class EventCheck:
    """Outcome of an event rule: its verdict and the entries it matched."""

    verdict: Verdict
    matched: tuple[EventLogEntry, ...] = ()

    @property
    def disallowed(self) -> tuple[EventLogEntry, ...]:
        return () if self.verdict.passed else self.matched


def _entry_dict(entry: EventLogEntry) -> dict[str, Any]:
    return {"kind": entry.kind, "text": entry.text, "timestamp": entry.timestamp}


@dataclass(frozen=True)
class RunReport:
    name: str
    verdicts: tuple[Verdict, ...] = ()
    event_checks: tuple[EventCheck, ...] = ()
    events: tuple[EventLogEntry, ...] = ()
    error: str | None = None
    artifacts: Mapping[str, str] = field(default_factory=dict)

    @property
    def failing_verdicts(self) -> tuple[Verdict, ...]:
        return tuple(v for v in self.verdicts if not v.passed)

    @property
    def disallowed_events(self) -> tuple[EventLogEntry, ...]:
        """Entries matched by a failing event rule, each once even when several rules matched it."""
        out: list[EventLogEntry] = []
        for check in self.event_checks:
            for entry in check.disallowed:
                if not any(e is entry for e in out):
                    out.append(entry)
        return tuple(out)

    @property
    def total_failures(self) -> int:
        return len(self.failing_verdicts) + len(self.disallowed_events)

    @property
    def ok(self) -> bool:
        return self.error is None and self.total_failures == 0

    @property
    def failures_by_rule(self) -> dict[str, list[Verdict]]:
        groups: dict[str, list[Verdict]] = {}
        for verdict in self.failing_verdicts:
            groups.setdefault(verdict.rule_name, []).append(verdict)
        for check in self.event_checks:
            if not check.verdict.passed:
                groups.setdefault(check.verdict.rule_name, []).append(check.verdict)
        return groups

    def raise_for_failures(self) -> None:
        if self.error is not None:
            raise CollectionError(f"{self.name}: {self.error}")
        disallowed = self.disallowed_events
        if disallowed:
            preview = "; ".join(e.text for e in disallowed[:5])
            raise UnexpectedConsoleEvent(
                f"{self.name}: {len(disallowed)} disallowed console event(s): {preview}",
                disallowed,
            )
        failing = self.failing_verdicts
        if failing:
            names = ", ".join(sorted({v.rule_name for v in failing}))
            raise AssertionFailure(f"{self.name}: {len(failing)} failing verdict(s): {names}", failing)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "ok": self.ok,
            "error": self.error,
            "summary": {
                "verdicts": len(self.verdicts),
                "failing_verdicts": len(self.failing_verdicts),
                "disallowed_events": len(self.disallowed_events),
                "total_failures": self.total_failures,
                "recorded_events": len(self.events),
            },
            "failures_by_rule": {
                name: [v.to_dict() for v in verdicts] for name, verdicts in self.failures_by_rule.items()
            },
            "verdicts": [v.to_dict() for v in self.verdicts],
            "event_checks": [
                {**c.verdict.to_dict(), "matched": [_entry_dict(e) for e in c.matched]} for c in self.event_checks
            ],
            "events": [_entry_dict(e) for e in self.events],
            "artifacts": dict(self.artifacts),
        }


def distinct(values: Iterable[str]) -> tuple[str, ...]:
    """Order-preserving de-duplication."""
    seen: set[str] = set()
    out: list[str] = []
    for v in values:
        if v in seen:
            continue
        seen.add(v)
        out.append(v)
    return tuple(out)
