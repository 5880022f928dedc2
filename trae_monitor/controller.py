"""In-memory cache of the last usage/activity records and the refresh rules around it."""

import asyncio
import logging
import time
from dataclasses import dataclass

from .extract_activity import extract_active_days
from .extract_usage import select_usage
from .models import ActiveDaysData, UsageData
from .page_loader import PROFILE_URL, USAGE_URL

logger = logging.getLogger(__name__)

MIN_REFRESH_GAP_S = 5
ACTIVE_TTL_S = 60 * 60
LOGIN_TIMEOUT_S = 120
LOGIN_POLL_S = 1.0


@dataclass
class MonitorState:
    usage: UsageData | None = None
    last_update: float = 0.0
    active: ActiveDaysData | None = None
    last_active_update: float = 0.0
    is_refreshing: bool = False
    is_resizing: bool = False


class MonitorController:
    """Owns MonitorState; every method is meant to run on one asyncio loop."""

    def __init__(self, loader, clock=time.monotonic, sleep=asyncio.sleep, on_usage_update=None):
        self.state = MonitorState()
        self.loader = loader
        # One browser profile directory; only one context may hold it at a time
        self._profile_lock = asyncio.Lock()
        self._clock = clock
        self._sleep = sleep
        self._on_usage_update = on_usage_update

    # -- usage ----------------------------------------------------------

    def _store_usage(self, data: UsageData, notify: bool = True):
        self.state.usage = data
        self.state.last_update = self._clock()
        if notify and self._on_usage_update is not None:
            self._on_usage_update(data)

    async def _fetch_usage(self) -> UsageData | None:
        try:
            return await self.loader.fetch_usage()
        except Exception:
            logger.exception("usage fetch failed")
            return None

    async def get_usage(self) -> UsageData | None:
        """Cached record if any, otherwise one fetch. The cache never expires on its own."""
        if self.state.usage is not None:
            return self.state.usage
        async with self._profile_lock:
            # filled by a refresh that held the profile while we waited
            if self.state.usage is None:
                data = await self._fetch_usage()
                if data is not None:
                    self._store_usage(data, notify=False)
        return self.state.usage

    def _throttled(self) -> bool:
        st = self.state
        return st.usage is not None and self._clock() - st.last_update < MIN_REFRESH_GAP_S

    async def refresh_now(self) -> UsageData | None:
        st = self.state
        if st.is_refreshing or st.is_resizing:
            logger.debug("refresh skipped (refreshing=%s, resizing=%s)", st.is_refreshing, st.is_resizing)
            return st.usage
        if self._throttled():
            return st.usage
        st.is_refreshing = True
        try:
            async with self._profile_lock:
                if self._throttled():
                    return st.usage
                data = await self._fetch_usage()
        finally:
            st.is_refreshing = False
        if data is not None:
            self._store_usage(data)
        return st.usage

    # -- activity -------------------------------------------------------

    async def _fetch_active(self) -> ActiveDaysData | None:
        try:
            async with self._profile_lock:
                return await self.loader.fetch_active_days()
        except Exception:
            logger.exception("activity fetch failed")
            return None

    def _store_active(self, data: ActiveDaysData):
        self.state.active = data
        self.state.last_active_update = self._clock()

    async def get_active_days(self) -> ActiveDaysData | None:
        st = self.state
        if st.active is not None and self._clock() - st.last_active_update < ACTIVE_TTL_S:
            return st.active
        data = await self._fetch_active()
        if data is not None:
            self._store_active(data)
        return st.active

    async def refresh_active_days(self) -> ActiveDaysData | None:
        data = await self._fetch_active()
        if data is not None:
            self._store_active(data)
        return self.state.active

    # -- login ----------------------------------------------------------

    async def _activity_from(self, session) -> ActiveDaysData | None:
        if not await session.navigate(PROFILE_URL):
            return None
        snap = await session.snapshot()
        return extract_active_days(snap) if snap else None

    async def _login_attempt(self, session):
        usage = active = None
        snap = await session.snapshot()
        if snap is not None:
            usage = select_usage(snap)
        if usage is not None and usage.items:
            return usage, None
        usage = None
        if await session.has_site_cookies():
            if await session.navigate(USAGE_URL):
                snap = await session.snapshot()
                usage = select_usage(snap) if snap else None
            active = await self._activity_from(session)
        return usage, active

    async def reset_login(self, timeout: float = LOGIN_TIMEOUT_S,
                          poll_interval: float = LOGIN_POLL_S) -> bool:
        """Open a visible browser and wait for the user to sign in."""
        async with self._profile_lock:
            success = await self._wait_for_login(timeout, poll_interval)
        logger.info("login flow finished: %s", "ok" if success else "no usage found")
        return success

    async def _wait_for_login(self, timeout: float, poll_interval: float) -> bool:
        session = await self.loader.open_session(headless=False)
        if session is None:
            return False
        success = False
        try:
            await session.navigate(USAGE_URL)
            start = self._clock()
            while self._clock() - start < timeout:
                if session.is_closed():
                    logger.info("login window closed by the user")
                    break
                try:
                    usage, active = await self._login_attempt(session)
                except Exception:
                    logger.debug("login poll failed", exc_info=True)
                    usage, active = None, None
                if usage is not None and usage.items:
                    self._store_usage(usage)
                    if active is None:
                        active = await self._activity_from(session)
                    if active is not None and active.cells:
                        self._store_active(active)
                    success = True
                    break
                await self._sleep(poll_interval)
        finally:
            await session.close()
        return success

    # -- misc -----------------------------------------------------------

    def set_usage_listener(self, callback):
        """Called with each usage record a refresh or login stores."""
        self._on_usage_update = callback

    def login_status(self) -> bool:
        return bool(self.state.usage or self.state.active)

    def set_resizing(self, flag: bool):
        self.state.is_resizing = bool(flag)
