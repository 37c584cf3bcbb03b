from __future__ import annotations

import random

import pytest
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from webscout.errors import NavigationError, ParseError, RenderError
from webscout.research_core.models.interfaces import ExtractionMethod, ExtractionOptions
from webscout.research_core.scrape.browser import BrowserManager
from webscout.research_core.scrape.dynamic import (
    DynamicExtractor,
    classify_navigation_error,
    should_block_request,
)
from webscout.research_core.scrape.site_rules import GATHER_DISCUSSION_JS, GATHER_GENERIC_JS

ARTICLE = "Rendered article text about the city council vote on the new transit plan and its budget. " * 4


class FakeInput:
    def __init__(self):
        self.calls = []

    async def press(self, key):
        self.calls.append(("press", key))

    async def move(self, x, y):
        self.calls.append(("move", x, y))

    async def click(self, x, y):
        self.calls.append(("click", x, y))


class FakePage:
    def __init__(self, url, *, goto_errors=(), generic=None, discussion=None):
        self.url = url
        self.goto_calls = []
        self.load_states = []
        self._goto_errors = list(goto_errors)
        self._generic = generic or {}
        self._discussion = discussion or {}
        self.keyboard = FakeInput()
        self.mouse = FakeInput()

    async def goto(self, url, wait_until=None, timeout=None):
        self.goto_calls.append(wait_until)
        if self._goto_errors:
            raise self._goto_errors.pop(0)

    async def wait_for_load_state(self, state, timeout=None):
        self.load_states.append(state)

    async def wait_for_selector(self, selector, timeout=None):
        return object()

    async def evaluate(self, script, arg=None):
        if script == GATHER_GENERIC_JS:
            return self._generic
        if script == GATHER_DISCUSSION_JS:
            return self._discussion
        if script == "document.body.scrollHeight":
            return 1000
        return None


class FakeContext:
    def __init__(self, page):
        self.page = page
        self.closed = False
        self.routes = []
        self.init_scripts = []

    async def add_init_script(self, script):
        self.init_scripts.append(script)

    async def route(self, pattern, handler):
        self.routes.append(pattern)

    async def new_page(self):
        return self.page

    async def close(self):
        self.closed = True


class FakeBrowser:
    def __init__(self, page):
        self.contexts = []
        self._page = page

    def is_connected(self):
        return True

    async def new_context(self, **kwargs):
        context = FakeContext(self._page)
        self.contexts.append((context, kwargs))
        return context

    async def close(self):
        pass


def _extractor(page) -> tuple[DynamicExtractor, FakeBrowser, list[float]]:
    browser = FakeBrowser(page)
    sleeps: list[float] = []

    async def launcher():
        return browser, None

    async def fake_sleep(delay):
        sleeps.append(delay)

    extractor = DynamicExtractor(
        browser_manager=BrowserManager(launcher=launcher, idle_timeout=60),
        settle_ms=0,
        heavy_settle_ms=0,
        settle_jitter_ms=0,
        sleep=fake_sleep,
        rng=random.Random(0),
    )
    return extractor, browser, sleeps


def _generic(text=ARTICLE):
    return {
        "title": "Council approves transit plan",
        "author": "City Desk",
        "publishDate": "2026-09-30",
        "isArticle": True,
        "candidates": [{"index": 10, "text": text}] if text else [],
        "paragraphs": [],
        "bodyText": "",
    }


@pytest.mark.asyncio
async def test_renders_page_with_generic_rule():
    page = FakePage("https://news.example/final", generic=_generic())
    extractor, browser, _ = _extractor(page)

    doc = await extractor.extract("https://news.example/story")

    assert doc.extraction_method is ExtractionMethod.DYNAMIC
    assert doc.site_rule == "generic"
    assert doc.title == "Council approves transit plan"
    assert doc.content == ARTICLE.strip()
    assert doc.content_type == "article"
    assert doc.final_url == "https://news.example/final"
    context, kwargs = browser.contexts[0]
    assert context.closed is True
    assert context.routes == []
    assert kwargs["locale"] == "en-US"
    await extractor.browser_manager.aclose()


@pytest.mark.asyncio
async def test_navigation_moves_to_next_strategy_after_recoverable_error():
    page = FakePage(
        "https://news.example/story",
        goto_errors=[PlaywrightError("net::ERR_ABORTED at https://news.example/story")],
        generic=_generic(),
    )
    extractor, _, sleeps = _extractor(page)

    await extractor.extract("https://news.example/story")

    assert page.goto_calls == ["domcontentloaded", "domcontentloaded"]
    assert page.load_states == ["networkidle"]
    assert sleeps[0] == 1.0
    await extractor.browser_manager.aclose()


@pytest.mark.asyncio
async def test_unrecoverable_navigation_error_is_not_retried():
    page = FakePage(
        "https://nope.example/",
        goto_errors=[PlaywrightError("net::ERR_NAME_NOT_RESOLVED at https://nope.example/")],
    )
    extractor, browser, _ = _extractor(page)

    with pytest.raises(NavigationError) as excinfo:
        await extractor.extract("https://nope.example/")

    assert excinfo.value.unrecoverable is True
    assert page.goto_calls == ["domcontentloaded"]
    assert browser.contexts[0][0].closed is True
    await extractor.browser_manager.aclose()


@pytest.mark.asyncio
async def test_navigation_timeout_is_not_retried():
    page = FakePage("https://slow.example/", goto_errors=[PlaywrightTimeoutError("Timeout 12000ms exceeded.")])
    extractor, _, _ = _extractor(page)

    with pytest.raises(NavigationError) as excinfo:
        await extractor.extract("https://slow.example/")

    assert excinfo.value.timed_out is True
    assert len(page.goto_calls) == 1
    await extractor.browser_manager.aclose()


@pytest.mark.asyncio
async def test_empty_render_raises_parse_error():
    page = FakePage("https://spa.example/", generic=_generic(text=""))
    extractor, _, _ = _extractor(page)

    with pytest.raises(ParseError):
        await extractor.extract("https://spa.example/")
    await extractor.browser_manager.aclose()


@pytest.mark.asyncio
async def test_discussion_rule_handles_reddit_threads():
    discussion = {
        "title": "Best budget keyboard?",
        "subreddit": "r/keyboards",
        "post": "Looking for something under 50 dollars.",
        "comments": [{"author": "kb_fan", "text": "The membrane ones from the big brands are fine."}],
    }
    page = FakePage("https://www.reddit.com/r/keyboards/comments/1", discussion=discussion)
    extractor, _, _ = _extractor(page)

    doc = await extractor.extract("https://www.reddit.com/r/keyboards/comments/1")

    assert doc.site_rule == "discussion"
    assert doc.content_type == "discussion"
    assert doc.content.startswith("Best budget keyboard?")
    assert "1. kb_fan:" in doc.content
    await extractor.browser_manager.aclose()


@pytest.mark.asyncio
async def test_rule_without_match_defers_to_generic():
    page = FakePage("https://www.reddit.com/r/x", discussion={"title": ""}, generic=_generic())
    extractor, _, _ = _extractor(page)

    doc = await extractor.extract("https://www.reddit.com/r/x")

    assert doc.site_rule == "generic"
    assert doc.content == ARTICLE.strip()
    await extractor.browser_manager.aclose()


@pytest.mark.asyncio
async def test_block_resources_installs_route_and_truncates():
    page = FakePage("https://news.example/story", generic=_generic())
    extractor, browser, _ = _extractor(page)

    doc = await extractor.extract("https://news.example/story", ExtractionOptions.for_summarization(150))

    assert browser.contexts[0][0].routes == ["**/*"]
    assert doc.truncated is True
    assert len(doc.content) <= 150
    await extractor.browser_manager.aclose()


@pytest.mark.parametrize(
    ("resource_type", "url", "blocked"),
    [
        ("image", "https://cdn.example/hero.jpg", True),
        ("image", "https://cdn.example/avatar/1.png", False),
        ("stylesheet", "https://cdn.example/site.css", True),
        ("font", "https://cdn.example/a.woff2", True),
        ("script", "https://securepubads.g.doubleclick.net/tag.js", True),
        ("script", "https://news.example/app.js", False),
        ("document", "https://news.example/", False),
    ],
)
def test_should_block_request(resource_type, url, blocked):
    assert should_block_request(resource_type, url) is blocked


def test_classify_navigation_error():
    dns = classify_navigation_error("https://a.test", PlaywrightError("net::ERR_NAME_NOT_RESOLVED"))
    assert dns.unrecoverable and not dns.timed_out
    timeout = classify_navigation_error("https://a.test", PlaywrightTimeoutError("Timeout 5000ms exceeded"))
    assert timeout.unrecoverable and timeout.timed_out
    aborted = classify_navigation_error("https://a.test", PlaywrightError("net::ERR_ABORTED"))
    assert not aborted.unrecoverable


@pytest.mark.asyncio
async def test_browser_launch_failure_raises_render_error():
    async def launcher():
        raise PlaywrightError("Executable doesn't exist at /ms-playwright/chromium/chrome")

    extractor = DynamicExtractor(browser_manager=BrowserManager(launcher=launcher, idle_timeout=60))

    with pytest.raises(RenderError, match="browser session failed"):
        await extractor.extract("https://news.example/story")
    assert extractor.browser_manager.active == 0
    await extractor.browser_manager.aclose()


@pytest.mark.asyncio
async def test_page_setup_failure_raises_render_error_and_closes_context():
    page = FakePage("https://news.example/story", generic=_generic())
    extractor, browser, _ = _extractor(page)

    async def broken_new_page():
        raise PlaywrightError("Target page, context or browser has been closed")

    async def new_context(**kwargs):
        context = FakeContext(page)
        context.new_page = broken_new_page
        browser.contexts.append((context, kwargs))
        return context

    browser.new_context = new_context

    with pytest.raises(RenderError):
        await extractor.extract("https://news.example/story")
    assert browser.contexts[0][0].closed is True
    await extractor.browser_manager.aclose()
