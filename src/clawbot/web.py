"""Fetching and rendering web pages for the browser and job_search skills."""

import logging
import re
from typing import Any, Optional
from urllib.parse import urlparse

import httpx
from pydantic import BaseModel

logger = logging.getLogger(__name__)

MAX_PAGE_CHARS = 8000
BOT_USER_AGENT = "Mozilla/5.0 (compatible; ClawBot/1.0)"
BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

_URL_RE = re.compile(r"https?://[^\s]+")
_TAG_RE = re.compile(r"<[^>]*>?")
_ARTICLE_RE = re.compile(r"<article[^>]*>([\s\S]*?)</article>", re.IGNORECASE)
_SCRIPT_STYLE_RE = re.compile(r"<(script|style)[^>]*>[\s\S]*?</\1>", re.IGNORECASE)
_SPACE_RE = re.compile(r"\s+")

# Runs inside the page: drop non-content nodes, prefer the main content area
_EXTRACT_TEXT_JS = """
() => {
    document.querySelectorAll('script, style, noscript, iframe').forEach(el => el.remove());
    const main = document.querySelector('main, article, [role="main"], .content, #content');
    return (main || document.body).innerText;
}
"""


class FetchError(RuntimeError):
    """A page could not be downloaded."""


class BrowserUnavailableError(RuntimeError):
    """Rendered browsing is not possible in this environment."""


class PageContent(BaseModel):
    url: str
    title: str = ""
    text: str = ""


def is_valid_url(value: Optional[str]) -> bool:
    if not value:
        return False
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def extract_url(text: str) -> Optional[str]:
    """Returns the first http(s) URL found in ``text``."""
    match = _URL_RE.search(text or "")
    return match.group(0) if match else None


def html_to_text(html: str) -> str:
    """Drops scripts, styles and tags, and collapses whitespace."""
    text = _SCRIPT_STYLE_RE.sub(" ", html)
    text = _TAG_RE.sub(" ", text)
    return _SPACE_RE.sub(" ", text).strip()


def truncate(text: str, limit: int = MAX_PAGE_CHARS) -> str:
    if len(text) > limit:
        return text[:limit] + "... [Truncated]"
    return text


def _load_playwright_sync() -> Any:
    try:
        from playwright.sync_api import sync_playwright
    except ImportError as e:
        raise BrowserUnavailableError(
            "playwright is not installed. Install with: pip install 'clawbot[browser]'; "
            "then run: playwright install chromium"
        ) from e
    return sync_playwright


class WebFetcher:
    """Downloads pages over plain HTTP, or renders them in a headless browser."""

    def __init__(
        self,
        timeout: float = 15.0,
        browser_timeout: float = 45.0,
        client: Optional[httpx.Client] = None,
    ):
        self.timeout = timeout
        self.browser_timeout = browser_timeout
        self.client = client or httpx.Client(follow_redirects=True)

    def get(self, url: str, **kwargs) -> httpx.Response:
        headers = {"User-Agent": BOT_USER_AGENT}
        headers.update(kwargs.pop("headers", {}))
        try:
            response = self.client.get(url, headers=headers, timeout=self.timeout, **kwargs)
        except httpx.TimeoutException as e:
            raise FetchError(f"Request timed out after {self.timeout:g} seconds") from e
        except httpx.HTTPError as e:
            raise FetchError(f"Error fetching {url}: {e}") from e
        if response.is_error:
            raise FetchError(f"Failed to fetch {url}. Status: {response.status_code}")
        return response

    def fetch_article(self, url: str) -> PageContent:
        """Fetches ``url`` and extracts its readable text (``<article>`` if present)."""
        logger.info("Fetching article %s", url)
        html = self.get(
            url,
            headers={
                "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
            },
        ).text
        match = _ARTICLE_RE.search(html)
        text = html_to_text(match.group(1) if match else html)
        logger.debug("Extracted %d chars from %s", len(text), url)
        return PageContent(url=url, text=truncate(text))

    def browse_page(self, url: str) -> PageContent:
        """Renders ``url`` in headless Chromium so client-side content is included.

        Raises ``BrowserUnavailableError`` when the browser cannot be used and
        ``FetchError`` when navigation fails.
        """
        sync_playwright = _load_playwright_sync()
        logger.info("Browsing %s", url)
        try:
            with sync_playwright() as playwright:
                browser = playwright.chromium.launch(headless=True)
                try:
                    page = browser.new_page(
                        viewport={"width": 1280, "height": 800},
                        user_agent=BROWSER_USER_AGENT,
                    )
                    page.goto(
                        url,
                        wait_until="domcontentloaded",
                        timeout=self.browser_timeout * 1000,
                    )
                    # late client-side rendering
                    page.wait_for_timeout(2000)
                    title = page.title()
                    text = page.evaluate(_EXTRACT_TEXT_JS) or ""
                finally:
                    browser.close()
        except Exception as e:
            raise FetchError(f"Failed to browse page: {e}") from e
        return PageContent(url=url, title=title, text=truncate(text))

    def close(self):
        self.client.close()
