"""Named request channels between the window and the controller."""

import inspect
import logging
import webbrowser
from typing import Protocol
from urllib.parse import urlparse

from .config import ConfigStore, WindowStateStore
from .controller import MonitorController
from .geometry import Bounds, clamp_position, clamp_size

logger = logging.getLogger(__name__)


class WindowHost(Protocol):
    def bounds(self) -> Bounds: ...

    def set_bounds(self, bounds: Bounds) -> None: ...

    def work_area(self) -> Bounds: ...

    def open_active_window(self) -> None: ...

    def show_live_calendar(self) -> bool: ...


def _payload(record):
    return record.to_dict() if record is not None else None


class MonitorBridge:
    """Dispatches channel names to controller, config and window operations.

    Controller channels are coroutines and go through ``invoke``; window
    channels are plain functions, so the GUI thread can use ``call``.
    """

    def __init__(self, controller: MonitorController, config_store: ConfigStore,
                 window_store: WindowStateStore, host: WindowHost | None = None):
        self.controller = controller
        self.config_store = config_store
        self.window_store = window_store
        self.host = host
        self._handlers = {
            "get-usage-data": self.get_usage_data,
            "get-config": self.get_config,
            "update-refresh-interval": self.update_refresh_interval,
            "reset-login": self.reset_login,
            "refresh-now": self.refresh_now,
            "get-active-days": self.get_active_days,
            "refresh-active-days": self.refresh_active_days,
            "get-login-status": self.get_login_status,
            "open-active-window": self.open_active_window,
            "show-live-calendar": self.show_live_calendar,
            "get-window-bounds": self.get_window_bounds,
            "set-window-size": self.set_window_size,
            "set-resizing": self.set_resizing,
            "set-window-position": self.set_window_position,
            "open-external": self.open_external,
        }

    @property
    def channels(self) -> list[str]:
        return list(self._handlers)

    async def invoke(self, channel: str, *args):
        result = self._handlers[channel](*args)
        if inspect.isawaitable(result):
            result = await result
        return result

    def call(self, channel: str, *args):
        result = self._handlers[channel](*args)
        if inspect.isawaitable(result):
            result.close()
            raise TypeError(f"{channel} is asynchronous, use invoke()")
        return result

    # ------------------------------------------------------------------
    # Controller channels
    # ------------------------------------------------------------------

    async def get_usage_data(self):
        return _payload(await self.controller.get_usage())

    async def refresh_now(self):
        return _payload(await self.controller.refresh_now())

    async def reset_login(self) -> bool:
        return await self.controller.reset_login()

    async def get_active_days(self):
        return _payload(await self.controller.get_active_days())

    async def refresh_active_days(self):
        return _payload(await self.controller.refresh_active_days())

    def get_login_status(self) -> bool:
        return self.controller.login_status()

    # ------------------------------------------------------------------
    # Config
    # ------------------------------------------------------------------

    def get_config(self) -> dict:
        return self.config_store.load().to_dict()

    def update_refresh_interval(self, seconds) -> dict:
        return self.config_store.save(refresh_interval_seconds=seconds).to_dict()

    # ------------------------------------------------------------------
    # Window
    # ------------------------------------------------------------------

    def _persist(self):
        if self.host is not None and not self.controller.state.is_resizing:
            self.window_store.save(self.host.bounds())

    def get_window_bounds(self):
        if self.host is None:
            return None
        return self.host.bounds().to_dict()

    def set_window_size(self, width, height) -> bool:
        if self.host is None:
            return False
        current = self.host.bounds()
        w, h = clamp_size(width, height, self.host.work_area())
        if (w, h) != (current.width, current.height):
            self.host.set_bounds(Bounds(current.x, current.y, w, h))
        self._persist()
        return True

    def set_window_position(self, x, y) -> None:
        if self.host is None:
            return
        current = self.host.bounds()
        nx, ny = clamp_position(x, y, current.width, current.height, self.host.work_area())
        self.host.set_bounds(Bounds(nx, ny, current.width, current.height))
        self._persist()

    def set_resizing(self, flag) -> None:
        self.controller.set_resizing(flag)
        if not flag:
            self._persist()

    def open_active_window(self) -> bool:
        if self.host is None:
            return False
        self.host.open_active_window()
        return True

    def show_live_calendar(self) -> bool:
        if self.host is None:
            return False
        return bool(self.host.show_live_calendar())

    def open_external(self, url: str) -> None:
        if urlparse(str(url)).scheme not in ("http", "https"):
            logger.warning("refusing to open %r", url)
            return
        try:
            webbrowser.open(url)
        except webbrowser.Error as e:
            logger.warning("could not open %s: %s", url, e)
