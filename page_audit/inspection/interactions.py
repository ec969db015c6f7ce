"""Button, form and link interaction probes.

Each interaction gets one bounded attempt. A timeout is reported as a failing
Verdict for that element and the probe moves on to the next one.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

import structlog
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Locator, Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from page_audit.errors import InteractionTimeout
from page_audit.models import Verdict

logger = structlog.get_logger(__name__)

DEFAULT_CLICK_TIMEOUT_MS = 5000
DEFAULT_SUBMIT_TIMEOUT_MS = 3000

CTA_SELECTORS = (
    'button:has-text("Submit")',
    'button:has-text("Click")',
    'button:has-text("Sign")',
    'button:has-text("Get")',
    'button:has-text("Contact")',
    'a[role="button"]',
)

VALIDATION_MESSAGE_SELECTOR = '[role="alert"], .error, .validation-error, [class*="error"]'


@dataclass(frozen=True)
class ButtonProbe:
    index: int
    text: str
    aria_label: str | None
    visible: bool
    enabled: bool
    clicked: bool = False
    error: str | None = None

    @property
    def clickable(self) -> bool:
        return self.visible and self.enabled


@dataclass(frozen=True)
class ButtonProbeResult:
    buttons: tuple[ButtonProbe, ...] = ()
    verdicts: tuple[Verdict, ...] = ()
    link_buttons: int = 0


@dataclass(frozen=True)
class InputField:
    type: str
    name: str | None
    placeholder: str | None
    required: bool


@dataclass(frozen=True)
class FormButton:
    text: str
    type: str
    disabled: bool


@dataclass(frozen=True)
class FormInspection:
    form_found: bool
    inputs: tuple[InputField, ...] = ()
    buttons: tuple[FormButton, ...] = ()


@dataclass(frozen=True)
class SubmissionResult:
    submit_found: bool
    verdict: Verdict | None = None
    validation_messages: int = 0


async def click_with_timeout(
    locator: Locator,
    timeout_ms: int = DEFAULT_CLICK_TIMEOUT_MS,
    *,
    target: str = "element",
) -> None:
    """Single click attempt bounded by `timeout_ms`."""
    try:
        await locator.click(timeout=timeout_ms)
    except PlaywrightTimeoutError as e:
        raise InteractionTimeout(target, timeout_ms, cause=str(e).splitlines()[0] if str(e) else None) from e


async def probe_buttons(
    page: Page,
    selector: str = "button",
    *,
    timeout_ms: int = DEFAULT_CLICK_TIMEOUT_MS,
) -> ButtonProbeResult:
    """Read the state of every matching button and click the visible, enabled ones."""
    buttons = await page.locator(selector).all()
    logger.info("Buttons found", selector=selector, count=len(buttons))

    probes: list[ButtonProbe] = []
    verdicts: list[Verdict] = []
    for i, button in enumerate(buttons, start=1):
        name = f"Button {i}"
        try:
            visible = await button.is_visible()
            enabled = await button.is_enabled()
            text = ((await button.text_content()) or "").strip()
            aria_label = await button.get_attribute("aria-label")
        except PlaywrightError as e:
            # Usually a previous click navigated away and detached the element.
            error = f"{type(e).__name__}: {e}"
            logger.warning("Button state unreadable", button=i, error=error)
            verdicts.append(
                Verdict(
                    rule_name="ButtonClick",
                    passed=False,
                    message="Button state could not be read",
                    offenders=(name,),
                    details={"index": i, "text": "(unknown)", "error": error},
                )
            )
            probes.append(ButtonProbe(index=i, text="", aria_label=None, visible=False, enabled=False, error=error))
            continue

        clicked = False
        error = None
        if visible and enabled:
            try:
                await click_with_timeout(button, timeout_ms, target=name)
                clicked = True
            except InteractionTimeout as e:
                error = str(e)
            except PlaywrightError as e:
                error = f"{type(e).__name__}: {e}"
            verdicts.append(
                Verdict(
                    rule_name="ButtonClick",
                    passed=clicked,
                    message="Button clicked" if clicked else "Button could not be clicked",
                    offenders=() if clicked else (name,),
                    details={"index": i, "text": text or "(no text)", "error": error},
                )
            )
            if clicked:
                logger.info("Button clicked", button=i, text=text or "(no text)", aria_label=aria_label)
            else:
                logger.warning("Button click failed", button=i, text=text or "(no text)", error=error)
        else:
            logger.info("Button not clickable", button=i, text=text or "(no text)", visible=visible, enabled=enabled)

        probes.append(
            ButtonProbe(
                index=i,
                text=text,
                aria_label=aria_label,
                visible=visible,
                enabled=enabled,
                clicked=clicked,
                error=error,
            )
        )

    link_buttons = await page.locator('a[role="button"]').count()
    if link_buttons:
        logger.info("Additional link buttons found", count=link_buttons)

    return ButtonProbeResult(buttons=tuple(probes), verdicts=tuple(verdicts), link_buttons=int(link_buttons))


async def count_matches(page: Page, selectors: tuple[str, ...] = CTA_SELECTORS) -> dict[str, dict[str, Any]]:
    """Count matches per selector; for non-empty ones also report whether the first is enabled."""
    out: dict[str, dict[str, Any]] = {}
    for sel in selectors:
        loc = page.locator(sel)
        n = int(await loc.count())
        entry: dict[str, Any] = {"count": n}
        if n > 0:
            entry["first_enabled"] = await loc.first.is_enabled()
            logger.info("CTA found", selector=sel, count=n, clickable=entry["first_enabled"])
        out[sel] = entry
    return out


async def inspect_form(page: Page, form_selector: str = "form") -> FormInspection:
    if await page.locator(form_selector).count() == 0:
        logger.warning("No form found", selector=form_selector)
        return FormInspection(form_found=False)

    inputs: list[InputField] = []
    for loc in await page.locator("input").all():
        inputs.append(
            InputField(
                type=(await loc.get_attribute("type")) or "text",
                name=await loc.get_attribute("name"),
                placeholder=await loc.get_attribute("placeholder"),
                required=(await loc.get_attribute("required")) is not None,
            )
        )

    buttons: list[FormButton] = []
    for loc in await page.locator("button").all():
        buttons.append(
            FormButton(
                text=((await loc.text_content()) or "").strip(),
                type=(await loc.get_attribute("type")) or "button",
                disabled=(await loc.get_attribute("disabled")) is not None,
            )
        )

    logger.info("Form inspected", inputs=len(inputs), buttons=len(buttons))
    return FormInspection(form_found=True, inputs=tuple(inputs), buttons=tuple(buttons))


async def submit_empty_form(
    page: Page,
    *,
    timeout_ms: int = DEFAULT_SUBMIT_TIMEOUT_MS,
    settle_ms: int = 500,
    submit_selector: str = 'button[type="submit"]',
) -> SubmissionResult:
    """Submit the form untouched and count the validation messages it produces."""
    submit = page.locator(submit_selector).first
    if await submit.count() == 0:
        logger.warning("No submit button found", selector=submit_selector)
        return SubmissionResult(submit_found=False)

    try:
        await click_with_timeout(submit, timeout_ms, target="submit button")
    except InteractionTimeout as e:
        logger.warning("Form submission timed out", error=str(e))
        return SubmissionResult(
            submit_found=True,
            verdict=Verdict(
                rule_name="FormSubmit",
                passed=False,
                message="Submit button could not be clicked",
                offenders=(submit_selector,),
                details={"error": str(e)},
            ),
        )

    await page.wait_for_timeout(settle_ms)
    n = int(await page.locator(VALIDATION_MESSAGE_SELECTOR).count())
    if n > 0:
        logger.info("Validation errors shown", count=n)
    else:
        logger.warning("No validation errors shown on empty form submission")
    return SubmissionResult(
        submit_found=True,
        verdict=Verdict(
            rule_name="FormSubmit",
            passed=True,
            message="Empty form submitted",
            details={"validation_messages": n},
        ),
        validation_messages=n,
    )


async def follow_link(
    page: Page,
    link_text: str,
    url_pattern: str,
    *,
    timeout_ms: int = DEFAULT_CLICK_TIMEOUT_MS,
) -> Verdict:
    """Click `text=<link_text>` and check the resulting URL against `url_pattern` (case-insensitive)."""
    name = f"Link({link_text})"
    pattern = re.compile(url_pattern, re.IGNORECASE)
    try:
        await click_with_timeout(page.locator(f"text={link_text}").first, timeout_ms, target=name)
        await page.wait_for_url(pattern, timeout=timeout_ms)
    except InteractionTimeout as e:
        return Verdict(
            rule_name=name,
            passed=False,
            message="Link could not be clicked",
            offenders=(link_text,),
            details={"error": str(e)},
        )
    except PlaywrightTimeoutError:
        return Verdict(
            rule_name=name,
            passed=False,
            message=f"URL did not match /{url_pattern}/i",
            offenders=(link_text,),
            details={"url": page.url},
        )
    return Verdict(rule_name=name, passed=True, message=f"URL matches /{url_pattern}/i", details={"url": page.url})
