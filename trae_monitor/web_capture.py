"""Off-screen page capture through the widget's own QtWebEngine profile.

The live calendar view and the hidden capture page share one persistent
profile, so signing in through the live view also signs in the capture.
"""

import asyncio
import logging

from PySide6.QtCore import QObject, QTimer, QUrl, Signal, Slot
from PySide6.QtWebEngineCore import QWebEnginePage, QWebEngineProfile

from .config import app_data_dir
from .extract_activity import GRID_SELECTORS
from .snapshot import PageSnapshot

logger = logging.getLogger(__name__)

PROFILE_NAME = "trae-monitor"
CAPTURE_TIMEOUT_MS = 45_000
INNER_TEXT_JS = "document.body ? document.body.innerText : ''"
ISOLATE_TRIES = 12
ISOLATE_RETRY_MS = 500


def web_profile(parent=None) -> QWebEngineProfile:
    """Named, disk-backed profile; create it after the QApplication."""
    storage = app_data_dir() / "web-profile"
    profile = QWebEngineProfile(PROFILE_NAME, parent)
    profile.setPersistentStoragePath(str(storage))
    profile.setCachePath(str(storage / "cache"))
    profile.setPersistentCookiesPolicy(QWebEngineProfile.PersistentCookiesPolicy.ForcePersistentCookies)
    return profile


def isolate_calendar_js(selector: str = GRID_SELECTORS[0]) -> str:
    """Script that replaces the page body with a copy of the calendar section once it renders."""
    return f"""
(function () {{
  var left = {ISOLATE_TRIES};
  function isolate() {{
    var section = document.querySelector({selector!r});
    if (!section) {{
      if (--left > 0) setTimeout(isolate, {ISOLATE_RETRY_MS});
      return false;
    }}
    var holder = document.createElement('div');
    holder.style.cssText = 'position:absolute;inset:0;overflow:auto';
    holder.appendChild(section.cloneNode(true));
    document.body.replaceChildren(holder);
    return true;
  }}
  return isolate();
}})();
"""


class _CaptureJob(QObject):
    """One hidden page load: wait for load, settle, read HTML and innerText."""

    def __init__(self, profile: QWebEngineProfile, url: str, settle_ms: int, done, parent=None):
        super().__init__(parent)
        self._url = url
        self._settle_ms = settle_ms
        self._done = done
        self._html = ""
        self._loaded = False
        self._finished = False
        self._page = QWebEnginePage(profile, self)
        self._page.loadFinished.connect(self._on_loaded)
        QTimer.singleShot(CAPTURE_TIMEOUT_MS, self, self._on_timeout)
        self._page.load(QUrl(url))

    def _on_loaded(self, ok: bool):
        if self._finished or self._loaded:
            return
        self._loaded = True
        if not ok:
            logger.debug("hidden page failed to load %s", self._url)
            self._finish(None)
            return
        QTimer.singleShot(self._settle_ms, self, self._read_html)

    def _read_html(self):
        if not self._finished:
            self._page.toHtml(self._on_html)

    def _on_html(self, html: str):
        if self._finished:
            return
        self._html = html or ""
        self._page.runJavaScript(INNER_TEXT_JS, 0, self._on_text)

    def _on_text(self, text):
        if self._finished:
            return
        self._finish(PageSnapshot(
            url=self._page.url().toString(),
            html=self._html,
            text=text if isinstance(text, str) else "",
        ))

    def _on_timeout(self):
        if not self._finished:
            logger.info("hidden page capture of %s timed out", self._url)
            self._finish(None)

    def _finish(self, snap: PageSnapshot | None):
        self._finished = True
        self._done(snap)
        self.deleteLater()


def _settle(future: asyncio.Future, snap):
    if not future.done():
        future.set_result(snap)


class HiddenPageCapture(QObject):
    """Renders pages in an invisible QWebEnginePage on the GUI thread.

    ``snapshot`` is awaited from the controller's event loop; the request
    crosses to the GUI thread through a queued signal.
    """

    _requested = Signal(str, int, object)

    def __init__(self, profile: QWebEngineProfile, parent=None):
        super().__init__(parent)
        self._profile = profile
        self._requested.connect(self._start)

    @Slot(str, int, object)
    def _start(self, url: str, settle_ms: int, done):
        _CaptureJob(self._profile, url, settle_ms, done, self)

    async def snapshot(self, url: str, settle_ms: int = 0) -> PageSnapshot | None:
        loop = asyncio.get_running_loop()
        future = loop.create_future()

        def done(snap):
            try:
                loop.call_soon_threadsafe(_settle, future, snap)
            except RuntimeError:
                logger.debug("event loop closed before %s was captured", url)

        self._requested.emit(url, settle_ms, done)
        return await future
