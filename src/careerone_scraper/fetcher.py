"""
Fetchers - turn a URL into page HTML

Two variants share one interface: `HttpFetcher` downloads static HTML with
requests, `BrowserFetcher` renders the page with Playwright. Both detect
rate-limit / anti-bot responses and retry the same URL with a fresh session,
so callers only ever see page content, `BlockedError` or `FetchError`.

Fetchers are not thread-safe; each worker thread builds its own.
"""

import logging
import random
import re
import time
from dataclasses import dataclass
from typing import Dict, Optional

import requests
from playwright.sync_api import Browser, BrowserContext, Page, Playwright
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError
from playwright.sync_api import sync_playwright

from careerone_scraper.errors import BlockedError, FetchError

logger = logging.getLogger(__name__)

BLOCKED_STATUSES = {403, 429, 503}

BLOCK_TITLE_MARKERS = [
    "just a moment...",
    "attention required! | cloudflare",
    "access denied",
]
BLOCK_URL_MARKERS = [
    "__cf_chl",
    "/cdn-cgi/",
    "challenges.cloudflare.com",
    "cf-challenge",
]
BLOCK_HTML_MARKERS = {
    'id="cf-challenge-running"': "selector:#cf-challenge-running",
    'id="challenge-form"': "selector:form#challenge-form",
    "challenges.cloudflare.com": "selector:cloudflare-iframe",
    "hcaptcha.com": "selector:hcaptcha-iframe",
    'class="cf-turnstile"': "selector:cf-turnstile",
}
BLOCK_BODY_MARKERS = [
    "verify you are human",
    "additional verification required",
    "unusual traffic from your computer",
]

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)


@dataclass
class FetchedPage:
    """Content of a fetched page, after redirects."""
    url: str
    html: str
    status: Optional[int] = None


def detect_block(status: Optional[int], url: str, html: str) -> Optional[str]:
    """Return a reason string when the response looks rate-limited or challenged."""
    if status in BLOCKED_STATUSES:
        return f"status:{status}"

    url_lower = (url or "").lower()
    for marker in BLOCK_URL_MARKERS:
        if marker in url_lower:
            return f"url:{marker}"

    html_lower = (html or "").lower()
    title_match = re.search(r"<title[^>]*>(.*?)</title>", html_lower, re.DOTALL)
    title = title_match.group(1).strip() if title_match else ""
    for marker in BLOCK_TITLE_MARKERS:
        if marker in title:
            return f"title:{marker}"

    for marker, reason in BLOCK_HTML_MARKERS.items():
        if marker in html_lower:
            return reason

    for marker in BLOCK_BODY_MARKERS:
        if marker in html_lower:
            return f"body:{marker}"
    return None


class Fetcher:
    """Common retry loop; subclasses implement one attempt and a session reset."""

    kind = "base"

    def __init__(self, config):
        self.config = config
        self.max_retries = max(self.config.get_max_retries(), 1)
        self.blocked_retries = 0

    def _random_delay(self) -> None:
        """Add human-like delay between requests"""
        min_delay = self.config.get_min_delay()
        max_delay = self.config.get_max_delay()
        if max_delay <= 0:
            return
        time.sleep(random.uniform(min_delay, max_delay))

    def _backoff(self, attempt: int) -> None:
        delay = min(2 ** (attempt - 1), 30) + random.uniform(0, 1)
        time.sleep(delay)

    def _attempt(self, url: str, wait_for: Optional[str]) -> FetchedPage:
        raise NotImplementedError

    def reset_session(self) -> None:
        """Drop cookies/identity so the next attempt starts fresh."""
        raise NotImplementedError

    def fetch(self, url: str, wait_for: Optional[str] = None) -> FetchedPage:
        """
        Fetch `url`, retrying blocked or failed attempts.

        `wait_for` is a CSS selector the browser variant waits for (bounded by
        the listing wait timeout); the HTTP variant ignores it.
        """
        last_error: Optional[str] = None
        block_reason: Optional[str] = None

        for attempt in range(1, self.max_retries + 1):
            self._random_delay()
            try:
                page = self._attempt(url, wait_for)
            except FetchError:
                raise
            except (requests.RequestException, PlaywrightError) as exc:
                last_error = str(exc)
                block_reason = None
                logger.warning("Fetch failed (attempt %s/%s) %s: %s", attempt, self.max_retries, url, exc)
                self._backoff(attempt)
                continue

            block_reason = detect_block(page.status, page.url, page.html)
            if block_reason is None:
                return page

            self.blocked_retries += 1
            logger.warning(
                "Blocked (reason=%s, attempt %s/%s) %s; retrying with a fresh session",
                block_reason, attempt, self.max_retries, url,
            )
            self.reset_session()
            self._backoff(attempt)

        if block_reason:
            raise BlockedError(url, block_reason)
        raise FetchError(url, f"Failed after {self.max_retries} attempts: {last_error}")

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()


class HttpFetcher(Fetcher):
    """Static HTML over requests"""

    kind = "http"

    def __init__(self, config, proxy: Optional[Dict[str, str]] = None):
        super().__init__(config)
        self.timeout = self.config.get_http_timeout()
        self.proxies = self._requests_proxies(proxy)
        self.session = self._new_session()

    @staticmethod
    def _requests_proxies(proxy: Optional[Dict[str, str]]) -> Optional[Dict[str, str]]:
        if not proxy:
            return None
        server = proxy["server"]
        username = proxy.get("username")
        if username:
            scheme, _, host = server.partition("://")
            server = f"{scheme}://{username}:{proxy.get('password', '')}@{host}"
        return {"http": server, "https": server}

    def _new_session(self) -> requests.Session:
        session = requests.Session()
        session.headers.update({
            "User-Agent": DEFAULT_USER_AGENT,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-AU,en;q=0.9",
        })
        session.headers.update(self.config.get_http_headers())
        if self.proxies:
            session.proxies.update(self.proxies)
        return session

    def reset_session(self) -> None:
        self.session.close()
        self.session = self._new_session()

    def _attempt(self, url: str, wait_for: Optional[str]) -> FetchedPage:
        resp = self.session.get(url, timeout=self.timeout)
        if resp.status_code >= 400 and resp.status_code not in BLOCKED_STATUSES:
            raise FetchError(url, f"HTTP {resp.status_code}")
        return FetchedPage(url=resp.url, html=resp.text, status=resp.status_code)

    def close(self) -> None:
        self.session.close()


class BrowserFetcher(Fetcher):
    """Rendered DOM over Playwright (sync API)"""

    kind = "browser"

    def __init__(self, config, proxy: Optional[Dict[str, str]] = None):
        super().__init__(config)
        self.proxy = proxy
        self.playwright: Optional[Playwright] = None
        self.browser: Optional[Browser] = None
        self.context: Optional[BrowserContext] = None
        self.page: Optional[Page] = None

    def start_browser(self) -> None:
        """Launch Chromium and open a fresh context"""
        logger.info("Starting browser...")
        self.playwright = sync_playwright().start()
        try:
            self.browser = self.playwright.chromium.launch(
                headless=self.config.is_headless(),
                channel=self.config.get_browser_channel() or None,
                timeout=self.config.get_launch_timeout(),
                proxy=self.proxy,
            )
            self._new_context()
        except Exception:
            logger.error("Browser launch failed; stopping Playwright")
            self.close()
            raise
        logger.info("Browser started successfully")

    def _new_context(self) -> None:
        if self.context:
            try:
                self.context.close()
            except PlaywrightError:
                logger.debug("Browser context close failed", exc_info=True)
        self.context = self.browser.new_context(
            user_agent=self.config.get_user_agent() or DEFAULT_USER_AGENT,
            viewport={"width": 1280, "height": 800},
            locale="en-AU",
        )
        self.page = self.context.new_page()
        self.page.set_default_timeout(self.config.get_page_timeout())
        self.page.set_default_navigation_timeout(self.config.get_navigation_timeout())

    def reset_session(self) -> None:
        if self.browser:
            self._new_context()

    def _attempt(self, url: str, wait_for: Optional[str]) -> FetchedPage:
        if self.page is None:
            self.start_browser()
        response = self.page.goto(url, wait_until="domcontentloaded")
        if wait_for:
            try:
                self.page.wait_for_selector(wait_for, timeout=self.config.get_listing_wait_timeout())
            except PlaywrightTimeoutError:
                logger.warning("Timed out waiting for %r on %s", wait_for, url)
        status = response.status if response else None
        if status and status >= 400 and status not in BLOCKED_STATUSES:
            raise FetchError(url, f"HTTP {status}")
        return FetchedPage(url=self.page.url, html=self.page.content(), status=status)

    def close(self) -> None:
        """Clean up browser resources"""
        try:
            if self.context:
                self.context.close()
        except PlaywrightError:
            logger.debug("Browser context close failed", exc_info=True)
        try:
            if self.browser:
                self.browser.close()
        except PlaywrightError:
            logger.debug("Browser close failed", exc_info=True)
        try:
            if self.playwright:
                self.playwright.stop()
        except PlaywrightError:
            logger.debug("Playwright stop failed", exc_info=True)
        if self.playwright:
            logger.info("Browser closed")
        self.page = self.context = self.browser = self.playwright = None


def build_fetcher(config) -> Fetcher:
    """Create a fetcher for the configured variant"""
    proxy = config.get_proxy_configuration()
    if config.get_fetcher_kind() == "http":
        return HttpFetcher(config, proxy=proxy)
    return BrowserFetcher(config, proxy=proxy)
