"""Tests for the page loader's HTTP fallback and browser session wrapper."""

import asyncio
import shutil
import tempfile
import unittest
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import requests
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from tests.fakes import FakeSession
from trae_monitor.page_loader import PROFILE_URL, USAGE_URL, BrowserSession, PageLoader
from trae_monitor.snapshot import PageSnapshot

USAGE_HTML = "<html><body><div>Pro plan</div><div>120/600</div></body></html>"
PROFILE_HTML = '<html><body><svg><rect data-date="2024-03-05" data-level="3"></rect></svg></body></html>'


def _response(html, status=200, url=USAGE_URL):
    resp = MagicMock()
    resp.status_code = status
    resp.text = html
    resp.url = url
    return resp


class TestCookieFetch(unittest.TestCase):
    """Test cases for the cookie-authenticated HTTP path."""

    def setUp(self):
        """Set up test fixtures."""
        self.temp_dir = tempfile.mkdtemp()
        self.loader = PageLoader(profile_dir=Path(self.temp_dir), cookie="sid=abc")

    def tearDown(self):
        """Clean up test fixtures."""
        shutil.rmtree(self.temp_dir)

    @patch("trae_monitor.page_loader.requests.get")
    def test_no_cookie_no_request(self, mock_get):
        loader = PageLoader(profile_dir=Path(self.temp_dir), cookie="")
        self.assertIsNone(loader.fetch_snapshot(USAGE_URL))
        mock_get.assert_not_called()

    @patch("trae_monitor.page_loader.requests.get")
    def test_fetch_snapshot(self, mock_get):
        mock_get.return_value = _response(USAGE_HTML)

        snap = self.loader.fetch_snapshot(USAGE_URL)

        self.assertEqual(snap.lines, ["Pro plan", "120/600"])
        _, kwargs = mock_get.call_args
        self.assertEqual(kwargs["headers"]["Cookie"], "sid=abc")
        self.assertEqual(kwargs["timeout"], 15)

    @patch("trae_monitor.page_loader.requests.get")
    def test_fetch_snapshot_http_error(self, mock_get):
        mock_get.return_value = _response("denied", status=403)
        self.assertIsNone(self.loader.fetch_snapshot(USAGE_URL))

    @patch("trae_monitor.page_loader.requests.get")
    def test_fetch_snapshot_offline(self, mock_get):
        mock_get.side_effect = requests.ConnectionError("offline")
        self.assertIsNone(self.loader.fetch_snapshot(USAGE_URL))

    @patch("trae_monitor.page_loader.requests.get")
    def test_fetch_usage_falls_back_to_cookie(self, mock_get):
        mock_get.return_value = _response(USAGE_HTML)

        with patch.object(PageLoader, "open_session", new=AsyncMock(return_value=None)):
            data = asyncio.run(self.loader.fetch_usage())

        self.assertEqual(data.items[0].title, "Pro plan")
        self.assertEqual(data.plan_type, "—")

    @patch("trae_monitor.page_loader.requests.get")
    def test_redirect_to_login_is_no_data(self, mock_get):
        mock_get.return_value = _response(USAGE_HTML, url="https://www.trae.ai/login")

        with patch.object(PageLoader, "open_session", new=AsyncMock(return_value=None)):
            self.assertIsNone(asyncio.run(self.loader.fetch_usage()))

    @patch("trae_monitor.page_loader.requests.get")
    def test_fetch_active_days_falls_back_to_cookie(self, mock_get):
        mock_get.return_value = _response(PROFILE_HTML, url=PROFILE_URL)

        with patch.object(PageLoader, "open_session", new=AsyncMock(return_value=None)):
            data = asyncio.run(self.loader.fetch_active_days())

        self.assertEqual([(c.date, c.level) for c in data.cells], [("2024-03-05", 3)])

    def test_nothing_available(self):
        loader = PageLoader(profile_dir=Path(self.temp_dir), cookie="")
        with patch.object(PageLoader, "open_session", new=AsyncMock(return_value=None)):
            self.assertIsNone(asyncio.run(loader.fetch_usage()))
            self.assertIsNone(asyncio.run(loader.fetch_active_days()))


class TestBrowserSession(unittest.TestCase):
    """Test cases for BrowserSession against a mocked Playwright page."""

    def setUp(self):
        """Set up test fixtures."""
        self.page = MagicMock()
        self.page.url = USAGE_URL
        self.page.goto = AsyncMock()
        self.page.wait_for_load_state = AsyncMock()
        self.page.content = AsyncMock(return_value=USAGE_HTML)
        self.page.evaluate = AsyncMock(return_value="Pro plan\n120/600")
        self.context = MagicMock()
        self.context.close = AsyncMock()
        self.playwright = MagicMock()
        self.playwright.stop = AsyncMock()
        self.session = BrowserSession(self.playwright, self.context, self.page)

    def _json_response(self, url, ctype="application/json; charset=utf-8", body=None):
        resp = MagicMock()
        resp.url = url
        resp.header_value = AsyncMock(return_value=ctype)
        resp.json = AsyncMock(return_value=body or {"quota": {"used": 1, "limit": 2}})
        return resp

    def test_response_listener_registered(self):
        self.page.on.assert_called_once_with("response", self.session._on_response)

    def test_snapshot_includes_captured_json(self):
        asyncio.run(self.session._on_response(self._json_response("https://www.trae.ai/api/user/usage")))
        asyncio.run(self.session._on_response(self._json_response("https://www.trae.ai/api/usage", ctype="text/html")))
        asyncio.run(self.session._on_response(self._json_response("https://cdn.example.com/app.json")))

        snap = asyncio.run(self.session.snapshot())

        self.assertEqual(snap.url, USAGE_URL)
        self.assertEqual(snap.text, "Pro plan\n120/600")
        self.assertEqual(snap.network_jsons, ({"quota": {"used": 1, "limit": 2}},))

    def test_navigate_tolerates_network_idle_timeout(self):
        self.page.wait_for_load_state.side_effect = PlaywrightTimeoutError("still busy")
        self.assertTrue(asyncio.run(self.session.navigate(USAGE_URL)))
        self.page.goto.assert_awaited_once_with(USAGE_URL, wait_until="domcontentloaded")

    def test_navigate_failure(self):
        self.page.goto.side_effect = PlaywrightError("net::ERR_INTERNET_DISCONNECTED")
        self.assertFalse(asyncio.run(self.session.navigate(USAGE_URL)))

    def test_snapshot_on_closed_page(self):
        self.page.content.side_effect = PlaywrightError("Target closed")
        self.assertIsNone(asyncio.run(self.session.snapshot()))

    def test_site_cookies(self):
        self.context.cookies = AsyncMock(return_value=[{"name": "sid", "domain": ".trae.ai"}])
        self.assertTrue(asyncio.run(self.session.has_site_cookies()))
        self.context.cookies = AsyncMock(return_value=[{"name": "x", "domain": "example.com"}])
        self.assertFalse(asyncio.run(self.session.has_site_cookies()))

    def test_close_stops_playwright_even_if_context_fails(self):
        self.context.close.side_effect = PlaywrightError("already closed")
        asyncio.run(self.session.close())
        self.playwright.stop.assert_awaited_once()


class _BrokenSession(FakeSession):
    async def snapshot(self):
        raise RuntimeError("renderer crashed")


class TestBrowserPath(unittest.TestCase):
    """Test cases for the Playwright path and the sources behind it."""

    def setUp(self):
        """Set up test fixtures."""
        self.temp_dir = tempfile.mkdtemp()
        self.loader = PageLoader(profile_dir=Path(self.temp_dir), cookie="")

    def tearDown(self):
        """Clean up test fixtures."""
        shutil.rmtree(self.temp_dir)

    def _with_session(self, session):
        return patch.object(PageLoader, "open_session", new=AsyncMock(return_value=session))

    def test_usage_from_browser(self):
        session = FakeSession({USAGE_URL: [PageSnapshot.from_html(USAGE_URL, USAGE_HTML)]})
        hidden = AsyncMock()
        self.loader.hidden_page = hidden

        with self._with_session(session):
            data = asyncio.run(self.loader.fetch_usage())

        self.assertEqual([(it.title, it.total) for it in data.items], [("Pro plan", 600.0)])
        self.assertEqual(session.navigations, [USAGE_URL])
        self.assertEqual(session.close_calls, 1)
        hidden.assert_not_awaited()

    def test_active_days_from_browser(self):
        session = FakeSession({PROFILE_URL: [PageSnapshot.from_html(PROFILE_URL, PROFILE_HTML)]})

        with self._with_session(session):
            data = asyncio.run(self.loader.fetch_active_days())

        self.assertEqual([(c.date, c.level) for c in data.cells], [("2024-03-05", 3)])
        self.assertEqual(session.close_calls, 1)

    def test_session_closed_when_snapshot_raises(self):
        session = _BrokenSession({})

        with self._with_session(session):
            with self.assertRaises(RuntimeError):
                asyncio.run(self.loader.fetch_usage())

        self.assertEqual(session.close_calls, 1)

    def test_logged_out_browser_falls_back_to_hidden_page(self):
        login = PageSnapshot.from_html("https://www.trae.ai/login", "<p>Sign in</p>")
        session = FakeSession({USAGE_URL: [login]})
        self.loader.hidden_page = AsyncMock(return_value=PageSnapshot.from_html(USAGE_URL, USAGE_HTML))

        with self._with_session(session):
            data = asyncio.run(self.loader.fetch_usage())

        self.assertEqual(data.items[0].title, "Pro plan")
        self.assertEqual(session.close_calls, 1)
        self.loader.hidden_page.assert_awaited_once_with(USAGE_URL, 3500)

    def test_hidden_page_when_no_browser_launches(self):
        self.loader.hidden_page = AsyncMock(return_value=PageSnapshot.from_html(PROFILE_URL, PROFILE_HTML))

        with self._with_session(None):
            data = asyncio.run(self.loader.fetch_active_days())

        self.assertEqual(len(data.cells), 1)
        self.loader.hidden_page.assert_awaited_once_with(PROFILE_URL, 3500)

    @patch("trae_monitor.page_loader.requests.get")
    def test_cookie_after_empty_hidden_page(self, mock_get):
        mock_get.return_value = _response(USAGE_HTML)
        loader = PageLoader(profile_dir=Path(self.temp_dir), cookie="sid=abc",
                            hidden_page=AsyncMock(return_value=None))

        with self._with_session(None):
            data = asyncio.run(loader.fetch_usage())

        self.assertEqual(data.items[0].title, "Pro plan")
        loader.hidden_page.assert_awaited_once()
        mock_get.assert_called_once()


class TestLaunch(unittest.TestCase):
    """Test cases for the browser channel fallback."""

    def setUp(self):
        """Set up test fixtures."""
        self.temp_dir = tempfile.mkdtemp()
        self.loader = PageLoader(profile_dir=Path(self.temp_dir) / "profile", cookie="")
        self.playwright = MagicMock()
        self.playwright.stop = AsyncMock()
        self.launch = AsyncMock()
        self.playwright.chromium.launch_persistent_context = self.launch

    def tearDown(self):
        """Clean up test fixtures."""
        shutil.rmtree(self.temp_dir)

    def _channels(self):
        return [call.kwargs.get("channel") for call in self.launch.await_args_list]

    def test_falls_back_through_channels(self):
        context = MagicMock()
        self.launch.side_effect = [
            PlaywrightError("Executable doesn't exist"),
            PlaywrightError("Chromium distribution 'chrome' is not found"),
            context,
        ]

        result = asyncio.run(self.loader._launch(self.playwright, headless=True))

        self.assertIs(result, context)
        self.assertEqual(self._channels(), [None, "chrome", "msedge"])
        for call in self.launch.await_args_list:
            self.assertEqual(call.args, (str(self.loader.profile_dir),))
            self.assertTrue(call.kwargs["headless"])

    def test_bundled_chromium_first(self):
        context = MagicMock()
        self.launch.return_value = context

        self.assertIs(asyncio.run(self.loader._launch(self.playwright, headless=False)), context)
        self.assertEqual(self._channels(), [None])

    @patch("trae_monitor.page_loader.async_playwright")
    def test_open_session_without_any_browser(self, mock_async_playwright):
        mock_async_playwright.return_value.start = AsyncMock(return_value=self.playwright)
        self.launch.side_effect = PlaywrightError("not installed")

        self.assertIsNone(asyncio.run(self.loader.open_session()))
        self.assertEqual(self._channels(), [None, "chrome", "msedge"])
        self.playwright.stop.assert_awaited_once()
        self.assertTrue(self.loader.profile_dir.is_dir())

    @patch("trae_monitor.page_loader.async_playwright")
    def test_open_session_reuses_first_page(self, mock_async_playwright):
        mock_async_playwright.return_value.start = AsyncMock(return_value=self.playwright)
        page = MagicMock()
        context = MagicMock()
        context.pages = [page]
        self.launch.return_value = context

        session = asyncio.run(self.loader.open_session())

        self.assertIs(session.page, page)
        self.assertIs(session.context, context)
        page.on.assert_called_once_with("response", session._on_response)


if __name__ == "__main__":
    unittest.main()
