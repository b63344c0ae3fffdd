"""Extraction driver: load a page in headless Chromium and capture its controls.

The browser is only ever touched through a *page* object yielded by a session
factory (``open_page`` by default).  The factory owns the browser and must
release it on every exit path; ``extract_elements`` relies on ``async with``
for that, so navigation failures, capture failures and cancellation all close
the browser before the call returns.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncContextManager, AsyncIterator, Callable, List, Optional

from rebuilder.config import settings
from rebuilder.errors import ExtractionError, NavigationError
from rebuilder.extractor.models import CSS_WHITELIST, INTERACTIVE_TAGS, ElementDescriptor

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AsyncContextManager[Any]]

# Evaluated in the page with ``[tags, props]``.  Returns one record per
# matching element in document order.
CAPTURE_SCRIPT = """([tags, props]) => {
    const allowed = new Set(tags);
    // SVG elements expose href/src as SVGAnimatedString, not a URL string.
    const attr = (el, key) =>
        typeof el[key] === "string" ? el[key] : (el.getAttribute(key) || el.getAttribute("xlink:" + key) || "");
    const list = [];
    for (const el of document.querySelectorAll(tags.join(","))) {
        const tag = el.tagName.toLowerCase();
        if (!allowed.has(tag)) continue;

        const cs = getComputedStyle(el);
        const styles = {};
        for (const prop of props) {
            const val = cs.getPropertyValue(prop);
            if (val && val !== "auto" && val !== "normal") styles[prop] = val;
        }
        const rect = el.getBoundingClientRect();
        const typed = tag === "input" || tag === "button";

        list.push({
            tagName: el.tagName,
            outerHTML: el.outerHTML,
            className: typeof el.className === "string" ? el.className : "",
            innerText: el.innerText ?? "",
            value: typeof el.value === "string" ? el.value : "",
            id: el.id || "",
            name: el.getAttribute("name") || "",
            ariaLabel: el.getAttribute("aria-label") || "",
            type: typed ? (el.type || "") : (el.getAttribute("type") || ""),
            placeholder: el.getAttribute("placeholder") || "",
            href: attr(el, "href"),
            src: attr(el, "src"),
            alt: el.getAttribute("alt") || "",
            styles,
            box: {
                width: rect.width,
                height: rect.height,
                display: cs.display,
                visibility: cs.visibility,
                opacity: cs.opacity,
            },
        });
    }
    return list;
}"""

_BROWSER_ARGS = ["--no-sandbox", "--disable-setuid-sandbox", "--disable-dev-shm-usage"]


@asynccontextmanager
async def open_page() -> AsyncIterator[Any]:
    """Launch Chromium and yield a fresh page; the browser is closed on exit.

    Unless ``settings.stealth`` is off, the page is patched with
    ``playwright_stealth`` so sites that block headless browsers still serve
    their normal markup.  Playwright is imported lazily so the rest of the
    package (and the test suite) can be imported without a browser install.
    """
    from playwright.async_api import async_playwright  # noqa: PLC0415
    from playwright_stealth import Stealth  # noqa: PLC0415

    async with async_playwright() as pw:
        browser = await pw.chromium.launch(headless=settings.headless, args=_BROWSER_ARGS)
        try:
            context = await browser.new_context(
                user_agent=settings.user_agent,
                viewport={"width": settings.viewport_width, "height": settings.viewport_height},
                extra_http_headers={"Accept-Language": "en-US,en;q=0.9"},
            )
            page = await context.new_page()
            if settings.stealth:
                await Stealth().apply_stealth_async(page)
            yield page
        finally:
            await browser.close()


async def navigate(page: Any, url: str, timeout_ms: Optional[int] = None) -> None:
    """Load *url*, waiting for network idle, then once more for plain ``load``.

    Raises:
        NavigationError: If both attempts fail; chained to the last cause.
    """
    timeout = timeout_ms or settings.nav_timeout_ms
    try:
        await page.goto(url, wait_until="networkidle", timeout=timeout)
        return
    except Exception as exc:  # noqa: BLE001
        logger.warning("Navigation to %s (networkidle) failed: %s; retrying with load", url, exc)

    try:
        await page.goto(url, wait_until="load", timeout=timeout)
    except Exception as exc:  # noqa: BLE001
        raise NavigationError(f"Failed to load page: {exc}") from exc


async def auto_scroll(page: Any) -> int:
    """Scroll down in fixed steps so lazy content materialises.

    Stops at the page height or after ``settings.scroll_max_steps`` steps,
    then returns to the top.  Returns the number of steps taken.
    """
    try:
        height = int(await page.evaluate("() => document.body ? document.body.scrollHeight : 0") or 0)
    except (TypeError, ValueError):
        height = 0

    step = settings.scroll_step_px
    position = 0
    steps = 0
    while steps < settings.scroll_max_steps and position < height:
        await page.evaluate("(dy) => window.scrollBy(0, dy)", step)
        position += step
        steps += 1
        await page.wait_for_timeout(settings.scroll_interval_ms)

    await page.evaluate("() => window.scrollTo(0, 0)")
    return steps


async def capture(page: Any) -> List[ElementDescriptor]:
    """Run the capture script and convert its records to descriptors.

    Raises:
        ExtractionError: If evaluation fails or returns something other than
            a list of records.
    """
    try:
        raw = await page.evaluate(CAPTURE_SCRIPT, [list(INTERACTIVE_TAGS), list(CSS_WHITELIST)])
    except Exception as exc:  # noqa: BLE001
        raise ExtractionError(f"In-page capture failed: {exc}") from exc

    if not isinstance(raw, list):
        raise ExtractionError("Capture script did not return an element list.")
    return [ElementDescriptor.from_raw(rec) for rec in raw if isinstance(rec, dict)]


async def extract_elements(
    url: str,
    session_factory: Optional[SessionFactory] = None,
) -> List[ElementDescriptor]:
    """Return raw descriptors for every interactive element on *url*.

    Raises:
        NavigationError: The page could not be loaded.
        ExtractionError: The capture script failed.
    """
    factory = session_factory or open_page
    async with factory() as page:
        await navigate(page, url)
        try:
            await auto_scroll(page)
        except Exception as exc:  # noqa: BLE001
            # Lazy loading is best effort; capture whatever is already there.
            logger.warning("Auto-scroll on %s stopped early: %s", url, exc)
        await page.wait_for_timeout(settings.settle_ms)
        descriptors = await capture(page)

    logger.info("Captured %d element(s) from %s", len(descriptors), url)
    return descriptors
