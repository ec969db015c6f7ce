"""Declarative rules over page snapshots and event logs.

Color and size checks are literal string comparisons against the computed
style value, e.g. `rgba(0, 0, 0, 0)` or `0px`. A faint but non-zero alpha, or
`0em`, is not flagged.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping

from page_audit.models import ElementObservation, EventLog, EventLogEntry, PageSnapshot, Verdict, distinct


TRANSPARENT_VALUES = ("rgba(0, 0, 0, 0)", "transparent")
ZERO_LENGTH = "0px"

# (text color, background color) pairs treated as unreadable.
SAME_COLOR_PAIRS = (
    ("rgb(0, 0, 0)", "rgb(0, 0, 0)"),
    ("rgb(255, 255, 255)", "rgb(255, 255, 255)"),
)


def is_button_like(el: ElementObservation) -> bool:
    return el.tag.upper() == "BUTTON" or el.has_class("btn")


class Rule:
    """Base class. Subclasses set `target` and implement `_check`."""

    target = "snapshot"  # snapshot|events

    @property
    def name(self) -> str:
        return type(self).__name__

    @property
    def message(self) -> str:
        return self.name

    def _check(self, subject: Any) -> Verdict:
        raise NotImplementedError


def _element_verdict(
    rule: Rule,
    offenders: list[ElementObservation],
    *,
    max_allowed: int = 0,
    details: Mapping[str, Any] | None = None,
) -> Verdict:
    unique: dict[int, ElementObservation] = {}
    for el in offenders:
        unique.setdefault(el.element_id, el)
    items = list(unique.values())
    extra = dict(details or {})
    extra["element_ids"] = [el.element_id for el in items]
    if max_allowed:
        extra["max_allowed"] = max_allowed
    return Verdict(
        rule_name=rule.name,
        passed=len(items) <= max_allowed,
        message=rule.message,
        offenders=tuple(el.label for el in items),
        details=extra,
    )


@dataclass(frozen=True)
class ForbiddenValue(Rule):
    """Flags elements whose computed `property` equals one of `values` exactly."""

    prop: str
    values: tuple[str, ...]
    selector: str | None = None
    max_allowed: int = 0

    @property
    def name(self) -> str:
        return f"ForbiddenValue({self.prop})"

    @property
    def message(self) -> str:
        return f"{self.prop} must not be one of {', '.join(repr(v) for v in self.values)}"

    def _check(self, snapshot: PageSnapshot) -> Verdict:
        offenders = [
            el for el in snapshot.matches(self.selector) if el.style(self.prop) in self.values
        ]
        return _element_verdict(self, offenders, max_allowed=self.max_allowed)


@dataclass(frozen=True)
class NoTransparentText(ForbiddenValue):
    prop: str = "color"
    values: tuple[str, ...] = TRANSPARENT_VALUES
    selector: str | None = None
    max_allowed: int = 0

    @property
    def name(self) -> str:
        return "NoTransparentText"

    @property
    def message(self) -> str:
        return "Transparent text color"


@dataclass(frozen=True)
class NonZero(ForbiddenValue):
    prop: str
    values: tuple[str, ...] = (ZERO_LENGTH,)
    selector: str | None = None
    max_allowed: int = 0

    @property
    def name(self) -> str:
        return f"NonZero({self.prop})"

    @property
    def message(self) -> str:
        return f"{self.prop} is {ZERO_LENGTH}"


@dataclass(frozen=True)
class BackgroundPresence(Rule):
    """Interactive elements (per `predicate`) must not have a transparent background."""

    selector: str | None = None
    predicate: Callable[[ElementObservation], bool] = is_button_like
    max_allowed: int = 0

    @property
    def message(self) -> str:
        return "No background color"

    def _check(self, snapshot: PageSnapshot) -> Verdict:
        offenders = [
            el
            for el in snapshot.matches(self.selector)
            if self.predicate(el) and el.style("backgroundColor") in TRANSPARENT_VALUES
        ]
        return _element_verdict(self, offenders, max_allowed=self.max_allowed)


@dataclass(frozen=True)
class SetNonEmpty(Rule):
    """At least one distinct non-empty value of `property` across the matched elements."""

    prop: str
    selector: str | None = None

    @property
    def name(self) -> str:
        return f"SetNonEmpty({self.prop})"

    @property
    def message(self) -> str:
        return f"No {self.prop} values found"

    def _check(self, snapshot: PageSnapshot) -> Verdict:
        values = distinct(
            v for v in (el.style(self.prop) for el in snapshot.matches(self.selector)) if v
        )
        return Verdict(
            rule_name=self.name,
            passed=len(values) > 0,
            message=self.message,
            details={"distinct_values": list(values)},
        )


@dataclass(frozen=True)
class SameColorContrast(Rule):
    """Leaf text elements painted in the same color as their background."""

    selector: str | None = None

    @property
    def message(self) -> str:
        return "Poor contrast - same text and background color"

    def _check(self, snapshot: PageSnapshot) -> Verdict:
        offenders = [
            el
            for el in snapshot.matches(self.selector)
            if el.is_leaf
            and el.has_text
            and (el.style("color"), el.style("backgroundColor")) in SAME_COLOR_PAIRS
        ]
        return _element_verdict(self, offenders)


@dataclass(frozen=True)
class CountAtMost(Rule):
    selector: str
    max_allowed: int = 0

    @property
    def name(self) -> str:
        return f"CountAtMost({self.selector})"

    @property
    def message(self) -> str:
        return f"More than {self.max_allowed} element(s) match {self.selector}"

    def _check(self, snapshot: PageSnapshot) -> Verdict:
        n = snapshot.count(self.selector)
        return Verdict(
            rule_name=self.name,
            passed=n <= self.max_allowed,
            message=self.message,
            details={"count": n, "max_allowed": self.max_allowed},
        )


@dataclass(frozen=True)
class CountAtLeast(Rule):
    selector: str
    minimum: int = 1

    @property
    def name(self) -> str:
        return f"CountAtLeast({self.selector})"

    @property
    def message(self) -> str:
        return f"Fewer than {self.minimum} element(s) match {self.selector}"

    def _check(self, snapshot: PageSnapshot) -> Verdict:
        n = snapshot.count(self.selector)
        return Verdict(
            rule_name=self.name,
            passed=n >= self.minimum,
            message=self.message,
            details={"count": n, "minimum": self.minimum},
        )


@dataclass(frozen=True)
class TitleNonEmpty(Rule):
    @property
    def message(self) -> str:
        return "Page title is empty"

    def _check(self, snapshot: PageSnapshot) -> Verdict:
        return Verdict(
            rule_name=self.name,
            passed=len(snapshot.title) > 0,
            message=self.message,
            details={"title": snapshot.title},
        )


@dataclass(frozen=True)
class FontsReady(Rule):
    # `ready` reflects the truthiness of document.fonts.ready, not its resolution.

    @property
    def message(self) -> str:
        return "Document fonts not ready"

    def _check(self, snapshot: PageSnapshot) -> Verdict:
        return Verdict(
            rule_name=self.name,
            passed=snapshot.fonts.ready == "Loaded",
            message=self.message,
            details={"font_count": snapshot.fonts.count, "ready": snapshot.fonts.ready},
        )


@dataclass(frozen=True)
class ConsoleTextMatch(Rule):
    """Counts recorded events of `kinds` whose text contains any of `substrings`."""

    kinds: tuple[str, ...] = ("error",)
    substrings: tuple[str, ...] = ()
    max_allowed: int = 0
    label: str | None = None

    target = "events"

    @property
    def name(self) -> str:
        if self.label:
            return self.label
        return f"ConsoleTextMatch({'|'.join(self.kinds)})"

    @property
    def message(self) -> str:
        what = f" mentioning {', '.join(self.substrings)}" if self.substrings else ""
        return f"More than {self.max_allowed} {'/'.join(self.kinds)} event(s){what}"

    def matching(self, log: EventLog) -> tuple[EventLogEntry, ...]:
        return tuple(
            e
            for e in log.entries
            if e.kind in self.kinds and (not self.substrings or any(s in e.text for s in self.substrings))
        )

    def _check(self, log: EventLog) -> Verdict:
        matched = self.matching(log)
        return Verdict(
            rule_name=self.name,
            passed=len(matched) <= self.max_allowed,
            message=self.message,
            offenders=tuple(e.text for e in matched),
            details={"count": len(matched), "max_allowed": self.max_allowed},
        )


def evaluate(rule: Rule, subject: PageSnapshot | EventLog) -> Verdict:
    """Apply one rule. Pure: the same (rule, subject) always yields an equal Verdict."""
    expected = EventLog if rule.target == "events" else PageSnapshot
    if not isinstance(subject, expected):
        raise TypeError(f"{rule.name} evaluates a {expected.__name__}, got {type(subject).__name__}")
    return rule._check(subject)  # noqa: SLF001


def _tuple(raw: Any) -> tuple[str, ...]:
    if raw is None:
        return ()
    if isinstance(raw, str):
        return (raw,)
    return tuple(str(x) for x in raw)


_RULE_BUILDERS: dict[str, Callable[[dict[str, Any]], Rule]] = {
    "NoTransparentText": lambda d: NoTransparentText(selector=d.get("selector")),
    "BackgroundPresence": lambda d: BackgroundPresence(
        selector=d.get("selector"), max_allowed=int(d.get("max_allowed", 0))
    ),
    "NonZero": lambda d: NonZero(prop=str(d["property"]), selector=d.get("selector")),
    "SetNonEmpty": lambda d: SetNonEmpty(prop=str(d["property"]), selector=d.get("selector")),
    "ForbiddenValue": lambda d: ForbiddenValue(
        prop=str(d["property"]),
        values=_tuple(d["values"]),
        selector=d.get("selector"),
        max_allowed=int(d.get("max_allowed", 0)),
    ),
    "SameColorContrast": lambda d: SameColorContrast(selector=d.get("selector")),
    "CountAtMost": lambda d: CountAtMost(selector=str(d["selector"]), max_allowed=int(d.get("max_allowed", 0))),
    "CountAtLeast": lambda d: CountAtLeast(selector=str(d["selector"]), minimum=int(d.get("minimum", 1))),
    "TitleNonEmpty": lambda d: TitleNonEmpty(),
    "FontsReady": lambda d: FontsReady(),
    "ConsoleTextMatch": lambda d: ConsoleTextMatch(
        kinds=_tuple(d.get("kinds", ("error",))),
        substrings=_tuple(d.get("substrings")),
        max_allowed=int(d.get("max_allowed", 0)),
        label=d.get("label"),
    ),
}


def rule_from_dict(raw: dict[str, Any]) -> Rule:
    """Build a rule from a `{"type": ..., ...}` mapping as found in audit files."""
    if not isinstance(raw, dict) or "type" not in raw:
        raise ValueError(f"Invalid rule definition: {raw!r}")
    kind = str(raw["type"])
    builder = _RULE_BUILDERS.get(kind)
    if builder is None:
        raise ValueError(f"Unknown rule type: {kind}")
    try:
        return builder(raw)
    except KeyError as e:
        raise ValueError(f"{kind} rule is missing field {e.args[0]!r}") from e
