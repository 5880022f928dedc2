"""Test doubles for the page loader, browser session and clock."""

from trae_monitor.snapshot import PageSnapshot


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float):
        self.sleeps.append(seconds)
        self.now += seconds


class FakeLoader:
    """Returns queued results; the last one repeats once the queue runs dry."""

    def __init__(self, usage=None, active=None, session=None):
        self.usage_results = list(usage or [None])
        self.active_results = list(active or [None])
        self.session = session
        self.usage_calls = 0
        self.active_calls = 0
        self.session_requests: list[bool] = []

    @staticmethod
    def _next(queue):
        value = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(value, Exception):
            raise value
        return value

    async def fetch_usage(self):
        self.usage_calls += 1
        return self._next(self.usage_results)

    async def fetch_active_days(self):
        self.active_calls += 1
        return self._next(self.active_results)

    async def open_session(self, headless: bool = True):
        self.session_requests.append(headless)
        return self.session


class FakeSession:
    """Serves scripted snapshots per URL, in order, repeating the last one."""

    def __init__(self, pages: dict[str, list[PageSnapshot]], cookies: bool = False, closed: bool = False):
        self.pages = {url: list(snaps) for url, snaps in pages.items()}
        self.cookies = cookies
        self.closed = closed
        self.current: str | None = None
        self.navigations: list[str] = []
        self.close_calls = 0

    def is_closed(self) -> bool:
        return self.closed

    async def navigate(self, url: str, settle_ms: int = 0) -> bool:
        self.navigations.append(url)
        self.current = url
        return True

    async def snapshot(self):
        queue = self.pages.get(self.current)
        if not queue:
            return None
        return queue.pop(0) if len(queue) > 1 else queue[0]

    async def has_site_cookies(self) -> bool:
        return self.cookies

    async def close(self):
        self.close_calls += 1
