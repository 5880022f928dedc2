"""Rendered page capture through a persistent Playwright profile, with a cookie fallback."""

import asyncio
import logging
import re
from pathlib import Path

import requests
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from .config import app_data_dir, session_cookie
from .extract_activity import extract_active_days
from .extract_usage import select_usage
from .models import ActiveDaysData, UsageData
from .snapshot import PageSnapshot

logger = logging.getLogger(__name__)

SITE_URL = "https://www.trae.ai/"
USAGE_URL = "https://www.trae.ai/account-setting#usage"
PROFILE_URL = "https://www.trae.ai/account-setting#profile"

BROWSER_CHANNELS = (None, "chrome", "msedge")
NETWORK_IDLE_TIMEOUT_MS = 15_000
HIDDEN_PAGE_SETTLE_MS = 3_500
HTTP_TIMEOUT_S = 15
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)

_API_URL_RE = re.compile(r"usage|quota|plan|account", re.IGNORECASE)
_SITE_DOMAIN_RE = re.compile(r"trae\.ai$", re.IGNORECASE)


async def _close_quietly(context, playwright):
    for closer in (context.close, playwright.stop):
        try:
            await closer()
        except Exception as e:
            logger.debug("error while closing browser: %s", e)


class BrowserSession:
    """One persistent-profile browser context and its working page."""

    def __init__(self, playwright, context, page):
        self._playwright = playwright
        self.context = context
        self.page = page
        self._network: list = []
        page.on("response", self._on_response)

    async def _on_response(self, response):
        if not _API_URL_RE.search(response.url):
            return
        try:
            ctype = await response.header_value("content-type") or ""
            if "application/json" not in ctype:
                return
            self._network.append(await response.json())
        except (PlaywrightError, ValueError) as e:
            logger.debug("skipping response %s: %s", response.url, e)

    def is_closed(self) -> bool:
        return self.page.is_closed()

    async def navigate(self, url: str, settle_ms: int = 0) -> bool:
        self._network.clear()
        try:
            await self.page.goto(url, wait_until="domcontentloaded")
        except PlaywrightError as e:
            logger.debug("navigation to %s failed: %s", url, e)
            return False
        try:
            await self.page.wait_for_load_state("networkidle", timeout=NETWORK_IDLE_TIMEOUT_MS)
        except PlaywrightTimeoutError:
            logger.debug("%s never went network-idle", url)
        except PlaywrightError as e:
            logger.debug("lost page while waiting on %s: %s", url, e)
            return False
        if settle_ms:
            await asyncio.sleep(settle_ms / 1000)
        return True

    async def snapshot(self) -> PageSnapshot | None:
        try:
            html = await self.page.content()
            text = await self.page.evaluate("() => document.body ? document.body.innerText : ''")
        except PlaywrightError as e:
            logger.debug("snapshot failed: %s", e)
            return None
        return PageSnapshot(url=self.page.url, html=html, text=text or "",
                            network_jsons=tuple(self._network))

    async def has_site_cookies(self) -> bool:
        try:
            cookies = await self.context.cookies([SITE_URL])
        except PlaywrightError:
            return False
        return any(_SITE_DOMAIN_RE.search(c.get("domain", "")) for c in cookies)

    async def close(self):
        await _close_quietly(self.context, self._playwright)


class PageLoader:
    """Loads the usage and profile pages; every method degrades to None.

    Sources are tried in order: the Playwright profile, the optional
    ``hidden_page`` capture (an async ``(url, settle_ms) -> PageSnapshot``
    supplied by the desktop widget), then the session cookie.
    """

    def __init__(self, profile_dir: Path | None = None, cookie: str | None = None, hidden_page=None):
        self.profile_dir = profile_dir or app_data_dir() / "playwright-profile"
        self._cookie = session_cookie() if cookie is None else cookie
        self.hidden_page = hidden_page

    async def _launch(self, playwright, headless: bool):
        for channel in BROWSER_CHANNELS:
            options = {"headless": headless}
            if channel:
                options["channel"] = channel
            try:
                return await playwright.chromium.launch_persistent_context(
                    str(self.profile_dir), **options
                )
            except PlaywrightError as e:
                logger.debug("could not launch %s: %s", channel or "chromium", e)
        return None

    async def open_session(self, headless: bool = True) -> BrowserSession | None:
        try:
            self.profile_dir.mkdir(parents=True, exist_ok=True)
            playwright = await async_playwright().start()
        except (OSError, PlaywrightError) as e:
            logger.warning("playwright unavailable: %s", e)
            return None
        context = await self._launch(playwright, headless)
        if context is None:
            logger.warning("no usable Chromium, Chrome or Edge for the browser profile")
            try:
                await playwright.stop()
            except Exception as e:
                logger.debug("error while stopping playwright: %s", e)
            return None
        try:
            page = context.pages[0] if context.pages else await context.new_page()
        except PlaywrightError as e:
            logger.debug("could not open a page: %s", e)
            await _close_quietly(context, playwright)
            return None
        return BrowserSession(playwright, context, page)

    def fetch_snapshot(self, url: str) -> PageSnapshot | None:
        """Plain HTTP fetch authenticated by the configured session cookie."""
        if not self._cookie:
            return None
        try:
            resp = requests.get(
                url,
                headers={"Cookie": self._cookie, "User-Agent": USER_AGENT},
                timeout=HTTP_TIMEOUT_S,
            )
        except requests.RequestException as e:
            logger.info("cookie fetch of %s failed: %s", url, e)
            return None
        if resp.status_code != 200:
            logger.info("cookie fetch of %s returned HTTP %s", url, resp.status_code)
            return None
        return PageSnapshot.from_html(resp.url or url, resp.text)

    async def _browser_snapshot(self, url: str, settle_ms: int = 0) -> PageSnapshot | None:
        session = await self.open_session(headless=True)
        if session is None:
            return None
        try:
            if not await session.navigate(url, settle_ms=settle_ms):
                return None
            return await session.snapshot()
        finally:
            await session.close()

    async def _collect(self, url: str, extract, settle_ms: int = 0):
        snap = await self._browser_snapshot(url, settle_ms)
        data = extract(snap) if snap else None
        if data is None and self.hidden_page is not None:
            snap = await self.hidden_page(url, HIDDEN_PAGE_SETTLE_MS)
            data = extract(snap) if snap else None
        if data is None and self._cookie:
            snap = await asyncio.to_thread(self.fetch_snapshot, url)
            data = extract(snap) if snap else None
        return data

    async def fetch_usage(self) -> UsageData | None:
        data = await self._collect(USAGE_URL, select_usage)
        if data is None:
            logger.info("no usage data found")
        return data

    async def fetch_active_days(self) -> ActiveDaysData | None:
        data = await self._collect(PROFILE_URL, extract_active_days, settle_ms=HIDDEN_PAGE_SETTLE_MS)
        if data is None:
            logger.info("no activity data found")
        return data
