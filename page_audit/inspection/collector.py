from __future__ import annotations

import time
from typing import Any

import structlog
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

from page_audit.errors import CollectionError
from page_audit.models import (
    ElementObservation,
    FontStatus,
    ObservationSpec,
    PageSnapshot,
    StylesheetStatus,
)

logger = structlog.get_logger(__name__)

_TEXT_MAX_LEN = 40


# One round-trip: every selector is queried inside the page so the snapshot is consistent.
# Elements matched by several selectors keep one id via the Map.
_COLLECT_SCRIPT = r"""
(args) => {
  const ids = new Map();
  const idFor = (el) => {
    if (!ids.has(el)) ids.set(el, ids.size + 1);
    return ids.get(el);
  };
  const elements = {};
  for (const selector of args.selectors) {
    const rows = [];
    let nodes = [];
    try {
      nodes = Array.from(document.querySelectorAll(selector));
    } catch (e) {
      nodes = [];
    }
    for (const el of nodes) {
      const text = (el.textContent || '').trim();
      const isLeaf = el.children.length === 0;
      if (args.leafTextOnly && !(isLeaf && text.length > 0)) continue;
      const style = window.getComputedStyle(el);
      const styles = {};
      for (const prop of args.properties) {
        styles[prop] = style[prop] == null ? '' : String(style[prop]);
      }
      const attributes = {};
      for (const name of args.attributeNames) {
        if (el.hasAttribute(name)) attributes[name] = el.getAttribute(name);
      }
      rows.push({
        id: idFor(el),
        tag: el.tagName,
        className: typeof el.className === 'string' ? el.className : '',
        text: text.substring(0, args.textMaxLen),
        isLeaf: isLeaf,
        hasText: text.length > 0,
        styles: styles,
        attributes: attributes,
      });
    }
    elements[selector] = rows;
  }

  const stylesheets = [];
  const fontFaces = [];
  for (const sheet of Array.from(document.styleSheets)) {
    const href = sheet.href || 'inline';
    try {
      const rules = sheet.cssRules || sheet.rules;
      stylesheets.push({ href: href, ruleCount: rules.length, error: null });
      for (const rule of Array.from(rules)) {
        if (rule.type === 5) fontFaces.push(rule.style.fontFamily);
      }
    } catch (e) {
      stylesheets.push({ href: href, ruleCount: null, error: (e && e.message) ? e.message : String(e) });
    }
  }

  const rootStyle = window.getComputedStyle(document.documentElement);
  let rootCustom = 0;
  for (let i = 0; i < rootStyle.length; i++) {
    const prop = rootStyle[i];
    if (prop.includes('color') || prop.includes('--')) rootCustom += 1;
  }

  const fonts = document.fonts;
  return {
    elements: elements,
    stylesheets: stylesheets,
    fontFaces: fontFaces,
    fonts: { count: fonts ? fonts.size : 0, ready: (fonts && fonts.ready) ? 'Loaded' : 'Pending' },
    rootCustomProperties: rootCustom,
  };
}
"""


def _ensure_usable(page: Page) -> str:
    try:
        closed = page.is_closed()
    except Exception as e:
        raise CollectionError(f"page handle unusable: {type(e).__name__}: {e}") from e
    if closed:
        raise CollectionError("page is closed")
    url = str(page.url or "")
    if not url or url == "about:blank":
        raise CollectionError("page has not completed navigation", url=url or None)
    return url


def _element_from_row(selector: str, row: dict[str, Any]) -> ElementObservation:
    return ElementObservation(
        element_id=int(row["id"]),
        selector=selector,
        tag=str(row.get("tag") or ""),
        class_name=str(row.get("className") or ""),
        text=str(row.get("text") or ""),
        is_leaf=bool(row.get("isLeaf")),
        has_text=bool(row.get("hasText")),
        styles={str(k): str(v) for k, v in (row.get("styles") or {}).items()},
        attributes={str(k): str(v) for k, v in (row.get("attributes") or {}).items() if v is not None},
    )


async def collect(page: Page, spec: ObservationSpec) -> PageSnapshot:
    """Read computed styles, attributes and document state for every selector in `spec`.

    The page must already have reached its readiness condition. Selectors matching
    nothing yield an empty tuple. Driver failures surface as CollectionError.
    """
    url = _ensure_usable(page)
    args = {
        "selectors": list(spec.selectors),
        "properties": sorted(spec.properties),
        "attributeNames": list(spec.attribute_names),
        "leafTextOnly": bool(spec.leaf_text_only),
        "textMaxLen": _TEXT_MAX_LEN,
    }

    try:
        raw = await page.evaluate(_COLLECT_SCRIPT, args)
        title = await page.title()
        counts: dict[str, int] = {}
        for sel in spec.count_selectors:
            counts[sel] = int(await page.locator(sel).count())
    except PlaywrightError as e:
        raise CollectionError(f"collection failed: {type(e).__name__}: {e}", url=url) from e

    raw = raw or {}
    raw_elements = raw.get("elements") or {}
    elements = {
        sel: tuple(_element_from_row(sel, row) for row in (raw_elements.get(sel) or []))
        for sel in spec.selectors
    }
    for sel, items in elements.items():
        counts.setdefault(sel, len(items))

    stylesheets = tuple(
        StylesheetStatus(
            href=str(s.get("href") or "inline"),
            rule_count=None if s.get("ruleCount") is None else int(s["ruleCount"]),
            error=None if s.get("error") is None else str(s["error"]),
        )
        for s in (raw.get("stylesheets") or [])
    )
    fonts_raw = raw.get("fonts") or {}

    snapshot = PageSnapshot(
        url=url,
        title=str(title or ""),
        elements=elements,
        counts=counts,
        stylesheets=stylesheets,
        font_faces=tuple(str(f) for f in (raw.get("fontFaces") or [])),
        fonts=FontStatus(count=int(fonts_raw.get("count") or 0), ready=str(fonts_raw.get("ready") or "Pending")),
        root_custom_properties=int(raw.get("rootCustomProperties") or 0),
        captured_at=time.time(),
    )
    logger.debug(
        "Collected page snapshot",
        url=url,
        selectors=len(spec.selectors),
        elements=sum(len(v) for v in elements.values()),
        stylesheets=len(stylesheets),
    )
    return snapshot
