from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from page_audit.models import ObservationSpec
from page_audit.rules import (
    BackgroundPresence,
    ConsoleTextMatch,
    FontsReady,
    ForbiddenValue,
    NonZero,
    NoTransparentText,
    Rule,
    SameColorContrast,
    SetNonEmpty,
    TitleNonEmpty,
    rule_from_dict,
)

PROBES = frozenset({"buttons", "cta", "form", "submit", "links"})


@dataclass(frozen=True)
class LinkCheck:
    text: str
    url_pattern: str


@dataclass(frozen=True)
class Audit:
    """A declarative page test: where to go, what to read and which rules must hold."""

    name: str
    path: str = "/"
    description: str = ""
    observation: ObservationSpec = field(default_factory=ObservationSpec)
    snapshot_rules: tuple[Rule, ...] = ()
    event_rules: tuple[ConsoleTextMatch, ...] = ()
    probes: tuple[str, ...] = ()
    links: tuple[LinkCheck, ...] = ()
    screenshot: str | None = None
    wait_until: str | None = None

    def __post_init__(self) -> None:
        unknown = sorted(set(self.probes) - PROBES)
        if unknown:
            raise ValueError(f"{self.name}: unknown probes: {', '.join(unknown)}")
        if "links" in self.probes and not self.links:
            raise ValueError(f"{self.name}: 'links' probe needs at least one link")

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Audit":
        snapshot_rules: list[Rule] = []
        event_rules: list[ConsoleTextMatch] = []
        for item in raw.get("rules") or []:
            rule = rule_from_dict(dict(item))
            if isinstance(rule, ConsoleTextMatch):
                event_rules.append(rule)
            else:
                snapshot_rules.append(rule)
        return cls(
            name=str(raw["name"]),
            path=str(raw.get("path") or "/"),
            description=str(raw.get("description") or ""),
            observation=ObservationSpec.from_dict(raw.get("observation") or {}),
            snapshot_rules=tuple(snapshot_rules),
            event_rules=tuple(event_rules),
            probes=tuple(str(p) for p in raw.get("probes") or ()),
            links=tuple(
                LinkCheck(text=str(link["text"]), url_pattern=str(link["url_pattern"]))
                for link in raw.get("links") or ()
            ),
            screenshot=raw.get("screenshot"),
            wait_until=raw.get("wait_until"),
        )


CONSOLE_ERRORS = ConsoleTextMatch(kinds=("error", "pageerror"), max_allowed=0, label="ConsoleErrors")


BUILTIN_AUDITS: tuple[Audit, ...] = (
    Audit(
        name="landing-errors",
        path="/",
        description="No console errors or uncaught page errors on the landing page",
        snapshot_rules=(TitleNonEmpty(),),
        event_rules=(CONSOLE_ERRORS,),
    ),
    Audit(
        name="landing-colors",
        path="/",
        description="Transparent text and buttons without background on the landing page",
        observation=ObservationSpec(
            selectors=("body", "body *"),
            properties=frozenset({"color", "backgroundColor"}),
        ),
        snapshot_rules=(
            NoTransparentText(selector="body *"),
            BackgroundPresence(selector="body *"),
        ),
        screenshot="landing-page-colors.png",
    ),
    Audit(
        name="landing-fonts",
        path="/",
        description="Font family, size and line-height of every leaf text element",
        observation=ObservationSpec(
            selectors=("body *",),
            properties=frozenset({"fontFamily", "fontSize", "fontWeight", "lineHeight"}),
            leaf_text_only=True,
        ),
        snapshot_rules=(
            ForbiddenValue(prop="fontFamily", values=("", "inherit"), selector="body *"),
            NonZero(prop="fontSize", selector="body *"),
            NonZero(prop="lineHeight", selector="body *"),
        ),
        screenshot="landing-page-fonts.png",
    ),
    Audit(
        name="color-palette",
        path="/",
        description="Color checks across text, buttons, links and headings",
        observation=ObservationSpec(
            selectors=("p, h1, h2, h3, span", "button, a, div", "button", "a", "h1, h2, h3, h4, h5, h6", "body *", "*"),
            properties=frozenset({"color", "backgroundColor", "borderColor"}),
        ),
        snapshot_rules=(
            NoTransparentText(selector="p, h1, h2, h3, span"),
            BackgroundPresence(selector="button, a, div", max_allowed=4),
            SetNonEmpty(prop="backgroundColor", selector="button"),
            SetNonEmpty(prop="color", selector="a"),
            SetNonEmpty(prop="color", selector="h1, h2, h3, h4, h5, h6"),
            SameColorContrast(selector="body *"),
            SetNonEmpty(prop="color", selector="*"),
        ),
        event_rules=(
            ConsoleTextMatch(
                kinds=("error", "warning"),
                substrings=("color", "Color"),
                max_allowed=2,
                label="ConsoleColorMessages",
            ),
        ),
    ),
    Audit(
        name="font-basics",
        path="/",
        description="Document fonts, body font family, heading size and paragraph line-height",
        observation=ObservationSpec(
            selectors=("body", "h1", "p"),
            properties=frozenset({"color", "fontFamily", "fontSize", "fontWeight", "lineHeight"}),
        ),
        snapshot_rules=(
            FontsReady(),
            SetNonEmpty(prop="fontFamily", selector="body"),
            NonZero(prop="fontSize", selector="h1"),
            NoTransparentText(selector="body"),
            NonZero(prop="lineHeight", selector="p"),
        ),
        event_rules=(
            ConsoleTextMatch(kinds=("error",), substrings=("font",), max_allowed=0, label="ConsoleFontErrors"),
        ),
    ),
    Audit(
        name="landing-buttons",
        path="/",
        description="Every visible, enabled button can be clicked",
        observation=ObservationSpec(count_selectors=('a[role="button"]',)),
        probes=("buttons", "cta"),
    ),
    Audit(
        name="menu-links",
        path="/",
        description="Menu links navigate to their pages",
        probes=("links",),
        links=(LinkCheck(text="About", url_pattern="about"), LinkCheck(text="Contact", url_pattern="contact")),
        wait_until="load",
    ),
    Audit(
        name="register-errors",
        path="/register",
        description="No console errors or uncaught page errors on the register page",
        snapshot_rules=(TitleNonEmpty(),),
        event_rules=(CONSOLE_ERRORS,),
    ),
    Audit(
        name="register-form",
        path="/register",
        description="Register form fields, accessibility counts and empty submission",
        observation=ObservationSpec(
            count_selectors=("label", "input:not([id])", "h1", "h2", "img:not([alt])", "[aria-label]"),
        ),
        probes=("form", "submit"),
    ),
)


def builtin_audits() -> dict[str, Audit]:
    return {audit.name: audit for audit in BUILTIN_AUDITS}
