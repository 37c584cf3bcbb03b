from __future__ import annotations

import asyncio
import random
import time
from typing import Any, Awaitable, Callable, Sequence

from loguru import logger
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from webscout.config import settings
from webscout.errors import NavigationError, ParseError, RenderError
from webscout.research_core.extract.service import normalize_text, truncate_intelligently
from webscout.research_core.models.interfaces import (
    ExtractedDocument,
    ExtractionMethod,
    ExtractionOptions,
    ImageRef,
    PartialDocument,
)
from webscout.research_core.scrape.browser import BrowserManager
from webscout.research_core.scrape.retry import Action, RetryPolicy, navigation_policy
from webscout.research_core.scrape.site_rules import (
    GenericStrategy,
    SiteRule,
    default_rules,
    is_heavy_listing_site,
    select_rule,
)
from webscout.tools.web_utils import normalize_host

Sleep = Callable[[float], Awaitable[None]]

VIEWPORT = {"width": 1366, "height": 768}

EXTRA_HEADERS = {
    "Accept": (
        "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,"
        "image/apng,*/*;q=0.8,application/signed-exchange;v=b3;q=0.7"
    ),
    "Accept-Language": "en-US,en;q=0.9",
    "Cache-Control": "max-age=0",
    "DNT": "1",
    "Upgrade-Insecure-Requests": "1",
    "sec-ch-ua": '"Not_A Brand";v="8", "Chromium";v="120", "Google Chrome";v="120"',
    "sec-ch-ua-mobile": "?0",
    "sec-ch-ua-platform": '"Windows"',
}

STEALTH_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', { get: () => undefined });
Object.defineProperty(navigator, 'plugins', {
  get: () => ({
    length: 3,
    0: { name: 'Chrome PDF Plugin', filename: 'internal-pdf-viewer' },
    1: { name: 'Chrome PDF Viewer', filename: 'mhjfbmdgcfjbbpaeojofohoefgiehjai' },
    2: { name: 'Native Client', filename: 'internal-nacl-plugin' },
  }),
});
Object.defineProperty(navigator, 'languages', { get: () => ['en-US', 'en'] });
Object.defineProperty(navigator, 'platform', { get: () => 'Win32' });
Object.defineProperty(navigator, 'hardwareConcurrency', { get: () => 8 });
Object.defineProperty(navigator, 'deviceMemory', { get: () => 8 });
window.chrome = { runtime: { onConnect: null, onMessage: null }, app: { isInstalled: false } };
Object.defineProperty(navigator, 'permissions', {
  get: () => ({ query: () => Promise.resolve({ state: 'granted' }) }),
});
const originalToDataURL = HTMLCanvasElement.prototype.toDataURL;
HTMLCanvasElement.prototype.toDataURL = function (...args) {
  const ctx = this.getContext('2d');
  if (ctx) {
    ctx.fillStyle = 'rgba(0, 0, 0, 0.1)';
    ctx.fillRect(0, 0, 1, 1);
  }
  return originalToDataURL.apply(this, args);
};
const originalGetParameter = WebGLRenderingContext.prototype.getParameter;
WebGLRenderingContext.prototype.getParameter = function (parameter) {
  if (parameter === 37445) return 'Intel Inc.';
  if (parameter === 37446) return 'Intel(R) HD Graphics 620';
  return originalGetParameter.apply(this, arguments);
};
"""

BLOCKED_RESOURCE_TYPES = frozenset({"stylesheet", "font"})
TRACKER_MARKERS = ("doubleclick", "googlesyndication", "facebook.com/tr")

# Each entry is the wait state for goto followed by extra load states to await.
NAVIGATION_STRATEGIES: tuple[tuple[str, ...], ...] = (
    ("domcontentloaded",),
    ("domcontentloaded", "networkidle"),
    ("load",),
)

UNRECOVERABLE_NAV_MARKERS = (
    "ERR_NAME_NOT_RESOLVED",
    "ERR_INTERNET_DISCONNECTED",
    "ERR_CONNECTION_REFUSED",
    "ERR_ADDRESS_UNREACHABLE",
)

CLOSE_SELECTORS = (
    '[aria-label*="close"]',
    '[aria-label*="Close"]',
    '[data-testid*="close"]',
    '[class*="close"]',
    '[class*="Close"]',
    ".modal-close",
    ".overlay-close",
    'button[aria-label="Close"]',
    'button[title="Close"]',
    '[role="button"][aria-label*="close"]',
    ".close-button",
    ".dismiss-button",
    "[data-dismiss]",
)

SITE_MODAL_SELECTORS = {
    "yelp.com": (
        '[data-testid*="login"]',
        '[data-testid*="signup"]',
        '[class*="modal"]',
        '[class*="overlay"]',
        '[class*="dialog"]',
        ".react-modal-overlay",
        '[role="dialog"]',
        '[aria-modal="true"]',
    ),
    "tripadvisor.com": (
        '[class*="modal"]',
        '[class*="overlay"]',
        '[class*="popup"]',
        '[role="dialog"]',
        '[aria-modal="true"]',
        '[class*="cookie"]',
        '[class*="consent"]',
    ),
}

DISMISS_TEXTS = ("no thanks", "skip", "maybe later", "close", "dismiss", "cancel", "not now")

CLICK_FIRST_VISIBLE_JS = """
(selectors) => {
  const visible = (el) => {
    const rect = el.getBoundingClientRect();
    const style = window.getComputedStyle(el);
    return rect.width > 0 && rect.height > 0 && style.display !== 'none'
      && style.visibility !== 'hidden' && style.opacity !== '0';
  };
  for (const selector of selectors) {
    let el = null;
    try { el = document.querySelector(selector); } catch (e) { continue; }
    if (el && visible(el)) { el.click(); return selector; }
  }
  return null;
}
"""

CLICK_DISMISS_BUTTON_JS = """
(texts) => {
  const buttons = Array.from(document.querySelectorAll('button, a[role="button"], [type="button"]'));
  for (const button of buttons) {
    const text = (button.textContent || '').toLowerCase().trim();
    const label = (button.getAttribute('aria-label') || '').toLowerCase();
    if (texts.some((t) => text.includes(t) || label.includes(t))) { button.click(); return text || label; }
  }
  return null;
}
"""

HAS_VISIBLE_OVERLAY_JS = """
() => Array.from(
  document.querySelectorAll('[class*="modal"], [class*="overlay"], [role="dialog"], [aria-modal="true"]')
).some((el) => {
  const rect = el.getBoundingClientRect();
  const style = window.getComputedStyle(el);
  return rect.width > 0 && rect.height > 0 && style.display !== 'none' && style.visibility !== 'hidden';
})
"""

GATHER_IMAGES_JS = """
() => {
  const images = [];
  const og = document.querySelector('meta[property="og:image"]');
  if (og && og.getAttribute('content')) images.push({ url: og.getAttribute('content'), alt: 'Featured image', kind: 'featured' });
  document.querySelectorAll('article img, .content img, main img').forEach((img) => {
    const src = img.currentSrc || img.src || '';
    if (src && !src.startsWith('data:')) images.push({ url: src, alt: img.alt || '', kind: 'content' });
  });
  return images;
}
"""


def should_block_request(resource_type: str, url: str) -> bool:
    if resource_type == "image":
        return "avatar" not in url and "profile" not in url
    if resource_type in BLOCKED_RESOURCE_TYPES:
        return True
    return any(marker in url for marker in TRACKER_MARKERS)


def classify_navigation_error(url: str, exc: BaseException) -> NavigationError:
    message = str(exc).strip().splitlines()[0] if str(exc).strip() else type(exc).__name__
    if isinstance(exc, PlaywrightTimeoutError) or "Timeout" in message:
        return NavigationError(url, f"navigation timed out: {message}", unrecoverable=True, timed_out=True)
    if any(marker in message for marker in UNRECOVERABLE_NAV_MARKERS):
        return NavigationError(url, f"navigation failed: {message}", unrecoverable=True)
    return NavigationError(url, f"navigation failed: {message}")


class DynamicExtractor:
    """Renders pages in the shared browser and applies site rules."""

    method = ExtractionMethod.DYNAMIC

    def __init__(
        self,
        *,
        browser_manager: BrowserManager | None = None,
        rules: Sequence[SiteRule] | None = None,
        navigation_timeout_ms: int | None = None,
        retry_policy: RetryPolicy | None = None,
        settle_ms: int | None = None,
        heavy_settle_ms: int | None = None,
        settle_jitter_ms: int | None = None,
        scroll_iterations: int | None = None,
        sleep: Sleep | None = None,
        rng: random.Random | None = None,
    ):
        self.browser_manager = browser_manager or BrowserManager()
        self.rules = list(rules) if rules is not None else default_rules(
            generic_max_nav_ratio=settings.generic_block_max_nav_ratio
        )
        self._generic = next(
            (rule.strategy for rule in self.rules if rule.name == "generic"),
            GenericStrategy(max_nav_ratio=settings.generic_block_max_nav_ratio),
        )
        self.navigation_timeout_ms = navigation_timeout_ms or settings.navigation_timeout_ms
        self.retry_policy = retry_policy or navigation_policy(
            len(NAVIGATION_STRATEGIES),
            settings.navigation_retry_delay_seconds,
        )
        self.settle_ms = settings.dynamic_settle_ms if settle_ms is None else settle_ms
        self.heavy_settle_ms = settings.dynamic_heavy_settle_ms if heavy_settle_ms is None else heavy_settle_ms
        self.settle_jitter_ms = settings.dynamic_settle_jitter_ms if settle_jitter_ms is None else settle_jitter_ms
        self.scroll_iterations = (
            settings.lazy_scroll_max_iterations if scroll_iterations is None else scroll_iterations
        )
        self._sleep = sleep or asyncio.sleep
        self._rng = rng or random.Random()

    async def extract(
        self,
        url: str,
        options: ExtractionOptions | None = None,
    ) -> ExtractedDocument:
        options = options or ExtractionOptions()
        started = time.monotonic()
        try:
            partial, rule_name, images, final_url = await self._render(url, options)
        except PlaywrightError as exc:
            # Launch, context or page setup failed outside navigation.
            raise RenderError(url, f"browser session failed: {exc}") from exc

        content = normalize_text(partial.content)
        if not content:
            raise ParseError(url, "rendered page holds no text")
        content, truncated = truncate_intelligently(content, options.max_length)
        logger.debug(
            f"Dynamic extraction of {url} via rule {rule_name}: {len(content)} chars "
            f"in {int((time.monotonic() - started) * 1000)}ms"
        )
        return ExtractedDocument(
            url=url,
            title=partial.title or "Untitled",
            content=content,
            extraction_method=ExtractionMethod.DYNAMIC,
            author=partial.author,
            publish_date=partial.publish_date,
            description=partial.description,
            images=tuple(images or partial.images),
            truncated=truncated,
            final_url=final_url,
            content_type=partial.content_type,
            site_rule=rule_name,
        )

    async def _render(
        self,
        url: str,
        options: ExtractionOptions,
    ) -> tuple[PartialDocument, str, list[ImageRef], str]:
        async with self.browser_manager.checkout() as browser:
            context = await browser.new_context(
                user_agent=settings.user_agent,
                viewport=VIEWPORT,
                locale="en-US",
                extra_http_headers=EXTRA_HEADERS,
            )
            try:
                await context.add_init_script(STEALTH_SCRIPT)
                if options.block_resources:
                    await context.route("**/*", self._route)
                page = await context.new_page()
                await self._navigate(page, url)
                await self._settle(page, url)
                await self._dismiss_overlays(page, url)
                await self._load_lazy_content(page)
                partial, rule_name = await self._apply_rules(page, url)
                images = await self._images(page, url) if options.include_images else []
                return partial, rule_name, images, page.url
            finally:
                await context.close()

    async def _route(self, route: Any) -> None:
        request = route.request
        if should_block_request(request.resource_type, request.url):
            await route.abort()
        else:
            await route.continue_()

    async def _navigate(self, page: Any, url: str) -> None:
        for attempt, states in enumerate(NAVIGATION_STRATEGIES, start=1):
            try:
                await page.goto(url, wait_until=states[0], timeout=self.navigation_timeout_ms)
                for state in states[1:]:
                    await page.wait_for_load_state(state, timeout=self.navigation_timeout_ms)
                return
            except PlaywrightError as exc:
                error = classify_navigation_error(url, exc)
                action = self.retry_policy.decide(attempt, error)
                if action is not Action.RETRY:
                    raise error from exc
                delay = self.retry_policy.backoff(attempt)
                logger.warning(
                    f"Navigation attempt {attempt} ({'+'.join(states)}) failed for {url}: "
                    f"{error.message}; next strategy in {delay:.1f}s"
                )
                await self._sleep(delay)

    async def _settle(self, page: Any, url: str) -> None:
        heavy = is_heavy_listing_site(url)
        base = self.heavy_settle_ms if heavy else self.settle_ms
        await self._sleep((base + self._rng.uniform(0, self.settle_jitter_ms)) / 1000)
        if not heavy:
            return
        try:
            await page.mouse.move(100 + self._rng.uniform(0, 200), 100 + self._rng.uniform(0, 200))
            await self._sleep(0.5 + self._rng.uniform(0, 1.0))
            await page.mouse.move(300 + self._rng.uniform(0, 200), 200 + self._rng.uniform(0, 200))
        except PlaywrightError as exc:
            logger.debug(f"Mouse movement failed on {url}: {exc}")

    async def _dismiss_overlays(self, page: Any, url: str) -> None:
        host = normalize_host(url)
        selectors = list(CLOSE_SELECTORS)
        for domain, extra in SITE_MODAL_SELECTORS.items():
            if host == domain or host.endswith("." + domain):
                selectors.extend(extra)
        try:
            clicked = await page.evaluate(CLICK_FIRST_VISIBLE_JS, selectors)
            if clicked:
                logger.debug(f"Closed overlay on {url} via {clicked}")
                await self._sleep(1.0)
                await page.keyboard.press("Escape")
            dismissed = await page.evaluate(CLICK_DISMISS_BUTTON_JS, list(DISMISS_TEXTS))
            if dismissed:
                logger.debug(f"Clicked dismiss button '{dismissed}' on {url}")
                await self._sleep(1.0)
            for _ in range(2):
                await page.keyboard.press("Escape")
                await self._sleep(0.5)
            if await page.evaluate(HAS_VISIBLE_OVERLAY_JS):
                await page.mouse.click(10, 10)
                await self._sleep(1.0)
        except PlaywrightError as exc:
            logger.debug(f"Overlay handling failed on {url}: {exc}")

    async def _load_lazy_content(self, page: Any) -> None:
        try:
            previous = await page.evaluate("document.body.scrollHeight")
            for _ in range(self.scroll_iterations):
                await page.evaluate("window.scrollTo(0, document.body.scrollHeight)")
                await self._sleep(0.5)
                height = await page.evaluate("document.body.scrollHeight")
                if height == previous:
                    break
                previous = height
            await page.evaluate("window.scrollTo(0, 0)")
        except PlaywrightError as exc:
            logger.debug(f"Lazy loading scroll failed: {exc}")

    async def _apply_rules(self, page: Any, url: str) -> tuple[PartialDocument, str]:
        rule = select_rule(url, self.rules)
        try:
            partial = await rule.strategy.extract(page, url)
            if partial is not None:
                return partial, rule.name
            logger.debug(f"Site rule {rule.name} found no anchors on {url}; using generic")
            partial = await self._generic.extract(page, url)
        except PlaywrightError as exc:
            raise RenderError(url, f"page evaluation failed: {exc}") from exc
        if partial is None:
            raise ParseError(url, "generic extraction returned nothing")
        return partial, "generic"

    async def _images(self, page: Any, url: str) -> list[ImageRef]:
        try:
            raw = await page.evaluate(GATHER_IMAGES_JS)
        except PlaywrightError as exc:
            logger.debug(f"Image collection failed on {url}: {exc}")
            return []
        images: list[ImageRef] = []
        seen: set[str] = set()
        for item in raw or []:
            image_url = str(item.get("url") or "")
            if not image_url or image_url in seen:
                continue
            seen.add(image_url)
            kind = "featured" if item.get("kind") == "featured" else "content"
            images.append(ImageRef(url=image_url, alt=str(item.get("alt") or ""), kind=kind))
        return images[:10]
