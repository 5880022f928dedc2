"""Translucent desktop widget showing Trae usage and the activity calendar."""

import logging
import time
from concurrent.futures import CancelledError
from datetime import date, timedelta

from PySide6.QtCore import QEvent, QPoint, QPointF, QRectF, QThread, QTimer, Qt, QUrl, Signal
from PySide6.QtGui import QColor, QFont, QPainter, QPainterPath, QPen
from PySide6.QtWebEngineCore import QWebEnginePage, QWebEngineProfile
from PySide6.QtWebEngineWidgets import QWebEngineView
from PySide6.QtWidgets import (
    QApplication,
    QHBoxLayout,
    QInputDialog,
    QLabel,
    QStackedWidget,
    QToolTip,
    QVBoxLayout,
    QWidget,
)

from .bridge import MonitorBridge
from .config import MAX_REFRESH_INTERVAL_S, MIN_REFRESH_INTERVAL_S
from .geometry import MIN_HEIGHT, MIN_WIDTH, Bounds, clamp_position, clamp_size
from .models import ActiveDayCell, ActiveDaysData, UsageData, UsageItem
from .page_loader import PROFILE_URL
from .runner import AsyncRunner
from .web_capture import HiddenPageCapture, isolate_calendar_js, web_profile

logger = logging.getLogger(__name__)

COUNTDOWN_INTERVAL_MS = 1000
DEFAULT_WIDTH = 380
DEFAULT_HEIGHT = 420
RESIZE_GRIP = 14
MAX_GRID_CELLS = 400
LEVEL_COLORS = ["#1A1A1A", "#134e4a", "#166534", "#1ea34a", "#22C55E"]
INVALID_LOGIN_TEXT = "Login expired. Click Re-login below."
ACTIVE_INVALID_LOGIN_TEXT = "Not signed in or no data yet. Refresh to try again."
NOTICE_STYLE = "color: white; background-color: #dc2626; font-size: 10px; padding: 2px 6px; border-radius: 4px;"


# ---------------------------------------------------------------------------
# Workers
# ---------------------------------------------------------------------------

class BridgeWorker(QThread):
    """Runs one asynchronous bridge channel on the shared event loop."""

    finished = Signal(object)

    def __init__(self, runner: AsyncRunner, bridge: MonitorBridge, channel: str, *args):
        super().__init__()
        self.runner = runner
        self.bridge = bridge
        self.channel = channel
        self.args = args

    def run(self):
        try:
            result = self.runner.run(self.bridge.invoke(self.channel, *self.args))
        except CancelledError:
            logger.debug("%s cancelled at shutdown", self.channel)
            result = None
        except Exception:
            logger.exception("%s failed", self.channel)
            result = None
        self.finished.emit(result)


class _WorkerPool:
    """At most one running worker per channel."""

    def __init__(self, runner: AsyncRunner, bridge: MonitorBridge):
        self._runner = runner
        self._bridge = bridge
        self._workers: dict[str, BridgeWorker] = {}

    def busy(self, channel: str) -> bool:
        worker = self._workers.get(channel)
        return bool(worker and worker.isRunning())

    def start(self, channel: str, callback, *args) -> bool:
        if self.busy(channel):
            return False
        worker = BridgeWorker(self._runner, self._bridge, channel, *args)
        worker.finished.connect(callback)
        self._workers[channel] = worker
        worker.start()
        return True

    def wait(self):
        for worker in self._workers.values():
            worker.wait(2000)


# ---------------------------------------------------------------------------
# UI helpers
# ---------------------------------------------------------------------------

def _bar_color(pct: float) -> QColor:
    if pct >= 90:
        return QColor(239, 68, 68)  # red
    if pct >= 75:
        return QColor(249, 115, 22)  # orange
    if pct >= 50:
        return QColor(234, 179, 8)  # yellow
    return QColor(34, 197, 94)  # green


def _cell_tip(cell: ActiveDayCell) -> str:
    if cell.count is None:
        return cell.date
    return f"{cell.date}  ·  {cell.count} activity"


def _fmt_amount(value: float) -> str:
    return f"{value:.2f}".rstrip("0").rstrip(".")


def _fmt_age(seconds: float) -> str:
    seconds = int(seconds)
    if seconds < 60:
        return f"{seconds}s"
    if seconds < 3600:
        return f"{seconds // 60}m"
    return f"{seconds // 3600}h"


def _separator() -> QWidget:
    sep = QWidget()
    sep.setFixedHeight(1)
    sep.setStyleSheet("background-color: rgba(100, 100, 120, 80);")
    return sep


def _link_label(text: str, callback, size: int = 11) -> QLabel:
    label = QLabel(text)
    label.setStyleSheet(f"color: #8888a0; font-size: {size}px; padding: 0 4px;")
    label.setCursor(Qt.CursorShape.PointingHandCursor)
    label.mousePressEvent = lambda _: callback()
    return label


def _paint_panel(widget: QWidget):
    p = QPainter(widget)
    p.setRenderHint(QPainter.RenderHint.Antialiasing)

    # Dark translucent background
    path = QPainterPath()
    path.addRoundedRect(0, 0, widget.width(), widget.height(), 16, 16)
    p.fillPath(path, QColor(20, 20, 30, 200))

    # Subtle border
    p.setPen(QPen(QColor(80, 80, 100, 60), 1))
    p.drawPath(path)

    # Resize grip
    p.setPen(QPen(QColor(100, 100, 120, 120), 1))
    w, h = widget.width(), widget.height()
    for off in (4, 8):
        p.drawLine(w - off - 4, h - 4, w - 4, h - off - 4)

    p.end()


class UsageBar(QWidget):
    """One usage item: title and tag, progress, amounts, and its reset or expiry caption."""

    def __init__(self, item: UsageItem, parent=None):
        super().__init__(parent)
        self._item = item
        self.setFixedHeight(58)

    def paintEvent(self, event):
        item = self._item
        p = QPainter(self)
        p.setRenderHint(QPainter.RenderHint.Antialiasing)
        w = self.width()

        # Title and tag
        label_font = QFont("sans-serif", 9)
        label_font.setWeight(QFont.Weight.Medium)
        p.setFont(label_font)
        fm = p.fontMetrics()
        p.setPen(QColor(200, 200, 220))
        p.drawText(0, 14, item.title)
        if item.tag:
            tag_x = fm.horizontalAdvance(item.title) + 8
            tag_w = fm.horizontalAdvance(item.tag) + 10
            tag_path = QPainterPath()
            tag_path.addRoundedRect(tag_x, 2, tag_w, 15, 4, 4)
            p.fillPath(tag_path, QColor(139, 92, 246, 70))
            p.setPen(QColor(196, 181, 253))
            p.drawText(tag_x + 5, 14, item.tag)

        # current / total (right-aligned)
        amount = f"{_fmt_amount(item.current)} / {_fmt_amount(item.total)}"
        p.setPen(_bar_color(item.percentage))
        p.drawText(w - fm.horizontalAdvance(amount), 14, amount)

        # Progress bar
        bar_y = 22
        bar_h = 12
        bar_radius = 6
        bg_path = QPainterPath()
        bg_path.addRoundedRect(0, bar_y, w, bar_h, bar_radius, bar_radius)
        p.fillPath(bg_path, QColor(40, 40, 55))
        if item.current > 0:
            fill_w = max(bar_h, w * item.percentage / 100)  # min width = height for rounded ends
            fill_path = QPainterPath()
            fill_path.addRoundedRect(0, bar_y, fill_w, bar_h, bar_radius, bar_radius)
            p.fillPath(fill_path, _bar_color(item.percentage))

        # Caption and remaining
        small = QFont("sans-serif", 8)
        p.setFont(small)
        fm = p.fontMetrics()
        p.setPen(QColor(120, 120, 140))
        p.drawText(0, 50, item.caption)
        left = f"{_fmt_amount(item.remaining)} {item.unit} left"
        p.drawText(w - fm.horizontalAdvance(left), 50, left)

        p.end()


class ActivityGrid(QWidget):
    """Week-column heatmap of activity cells."""

    CELL = 11
    GAP = 3

    def __init__(self, parent=None):
        super().__init__(parent)
        self._cells = []
        self._months: list[str] = []
        self._hits: list[tuple[QRectF, str]] = []
        self.setMinimumHeight(7 * (self.CELL + self.GAP) + 18)

    def set_data(self, data: ActiveDaysData):
        self._cells = sorted(data.cells, key=lambda c: c.date)[-MAX_GRID_CELLS:]
        self._months = data.months
        self.update()

    def paintEvent(self, event):
        p = QPainter(self)
        p.setRenderHint(QPainter.RenderHint.Antialiasing)
        step = self.CELL + self.GAP

        p.setFont(QFont("sans-serif", 7))
        p.setPen(QColor(100, 100, 120))
        if self._months:
            col_w = self.width() / len(self._months)
            for i, month in enumerate(self._months):
                p.drawText(int(i * col_w), 10, month)

        self._hits = []
        if not self._cells:
            p.setFont(QFont("sans-serif", 9))
            text = "No activity data"
            tw = p.fontMetrics().horizontalAdvance(text)
            p.drawText((self.width() - tw) // 2, self.height() // 2, text)
            p.end()
            return

        first = date.fromisoformat(self._cells[0].date)
        start = first - timedelta(days=first.weekday())
        # Keep the most recent weeks when the window is narrow
        max_cols = max(1, self.width() // step)
        last = date.fromisoformat(self._cells[-1].date)
        skip = max(0, (last - start).days // 7 + 1 - max_cols)

        p.setPen(Qt.PenStyle.NoPen)
        for cell in self._cells:
            d = date.fromisoformat(cell.date)
            col = (d - start).days // 7 - skip
            if col < 0:
                continue
            rect = QRectF(col * step, 16 + d.weekday() * step, self.CELL, self.CELL)
            p.setBrush(QColor(LEVEL_COLORS[cell.level]))
            p.drawRoundedRect(rect, 2, 2)
            self._hits.append((rect, _cell_tip(cell)))

        p.end()

    def event(self, event):
        if event.type() == QEvent.Type.ToolTip:
            pos = QPointF(event.pos())
            tip = next((t for r, t in self._hits if r.contains(pos)), None)
            if tip:
                QToolTip.showText(event.globalPos(), tip, self)
            else:
                QToolTip.hideText()
                event.ignore()
            return True
        return super().event(event)


# ---------------------------------------------------------------------------
# Activity window
# ---------------------------------------------------------------------------

class ActiveDaysWindow(QWidget):
    """Separate window with the painted calendar, its raw markup fallback, and a live view."""

    def __init__(self, pool: _WorkerPool, bridge: MonitorBridge, profile: QWebEngineProfile | None = None):
        super().__init__()
        self.setWindowFlags(
            Qt.WindowType.FramelessWindowHint
            | Qt.WindowType.WindowStaysOnTopHint
            | Qt.WindowType.Tool
        )
        self.setAttribute(Qt.WidgetAttribute.WA_TranslucentBackground)
        self.resize(560, 220)
        self._pool = pool
        self._bridge = bridge
        self._profile = profile
        self._drag_pos = QPoint()
        self._web: QWebEngineView | None = None
        self._build_ui()

    def _build_ui(self):
        layout = QVBoxLayout(self)
        layout.setContentsMargins(16, 12, 16, 12)
        layout.setSpacing(4)

        header = QHBoxLayout()
        self._title_label = QLabel("Active Days")
        title_font = QFont("sans-serif", 11)
        title_font.setWeight(QFont.Weight.Bold)
        self._title_label.setFont(title_font)
        self._title_label.setStyleSheet("color: #22C55E;")
        header.addWidget(self._title_label)
        header.addStretch()
        header.addWidget(_link_label("Live", self.show_live))
        header.addWidget(_link_label("⟳", self.refresh, 14))
        header.addWidget(_link_label("✕", self.close, 14))
        layout.addLayout(header)
        layout.addWidget(_separator())

        self._notice_label = QLabel(ACTIVE_INVALID_LOGIN_TEXT)
        self._notice_label.setStyleSheet(NOTICE_STYLE)
        self._notice_label.hide()
        layout.addWidget(self._notice_label)

        self._stack = QStackedWidget()
        self._grid = ActivityGrid()
        self._stack.addWidget(self._grid)
        self._markup = QLabel()
        self._markup.setTextFormat(Qt.TextFormat.RichText)
        self._markup.setWordWrap(True)
        self._markup.setStyleSheet("color: #c8c8dc; font-size: 10px;")
        self._stack.addWidget(self._markup)
        layout.addWidget(self._stack, 1)

        self._status_label = QLabel("Loading...")
        self._status_label.setStyleSheet("color: #666680; font-size: 10px;")
        layout.addWidget(self._status_label)

    def load(self):
        self._pool.start("get-active-days", self._on_fetched)

    def refresh(self):
        self._status_label.setText("Refreshing...")
        self._pool.start("refresh-active-days", self._on_fetched)

    def _on_fetched(self, payload):
        self._notice_label.setVisible(not self._bridge.call("get-login-status"))
        if not payload:
            self._status_label.setText("No activity data found")
            return
        data = ActiveDaysData.from_dict(payload)
        self._title_label.setText(data.title)
        if data.cells:
            self._grid.set_data(data)
            self._stack.setCurrentWidget(self._grid)
        elif data.grid_html:
            self._markup.setText(data.grid_html)
            self._stack.setCurrentWidget(self._markup)
        self._status_label.setText(f"{len(data.cells)} days  ·  {time.strftime('%H:%M')}")

    def show_live(self) -> bool:
        if self._web is None:
            self._web = QWebEngineView()
            if self._profile is not None:
                self._web.setPage(QWebEnginePage(self._profile, self._web))
            self._web.loadFinished.connect(self._isolate_calendar)
            self._stack.addWidget(self._web)
        self._web.load(QUrl(PROFILE_URL))
        self._stack.setCurrentWidget(self._web)
        self._status_label.setText("Live page")
        return True

    def _isolate_calendar(self, ok: bool):
        if ok and self._web is not None:
            self._web.page().runJavaScript(isolate_calendar_js())

    def paintEvent(self, event):
        _paint_panel(self)

    def mousePressEvent(self, event):
        if event.button() == Qt.MouseButton.LeftButton:
            self._drag_pos = event.globalPosition().toPoint() - self.frameGeometry().topLeft()
            event.accept()

    def mouseMoveEvent(self, event):
        if event.buttons() & Qt.MouseButton.LeftButton:
            self.move(event.globalPosition().toPoint() - self._drag_pos)
            event.accept()


# ---------------------------------------------------------------------------
# Main widget
# ---------------------------------------------------------------------------

class MonitorWidget(QWidget):
    """Translucent always-on-top widget displaying Trae usage."""

    usage_pushed = Signal(object)

    def __init__(self, runner: AsyncRunner, bridge: MonitorBridge, profile: QWebEngineProfile | None = None):
        super().__init__()
        self.setWindowFlags(
            Qt.WindowType.FramelessWindowHint
            | Qt.WindowType.WindowStaysOnTopHint
            | Qt.WindowType.Tool
        )
        self.setAttribute(Qt.WidgetAttribute.WA_TranslucentBackground)
        self.setMinimumSize(MIN_WIDTH, MIN_HEIGHT)

        self._runner = runner
        self._bridge = bridge
        self._profile = profile
        self._pool = _WorkerPool(runner, bridge)
        self._drag_pos = QPoint()
        self._resize_origin: tuple[QPoint, int, int] | None = None
        self._usage: UsageData | None = None
        self._has_data = False
        self._last_update: float = 0.0
        self._next_fetch_at: float = 0.0
        self._interval_s = bridge.call("get-config")["refreshIntervalSeconds"]
        self._active_window: ActiveDaysWindow | None = None
        self._bars: list[UsageBar] = []

        self.usage_pushed.connect(self._on_usage_fetched)
        self._build_ui()
        self._setup_timers()
        self._fetch_usage()

    def _build_ui(self):
        layout = QVBoxLayout(self)
        layout.setContentsMargins(20, 16, 20, 12)
        layout.setSpacing(4)

        # Header row
        header = QHBoxLayout()
        self._title_label = QLabel("TRAE")
        title_font = QFont("sans-serif", 13)
        title_font.setWeight(QFont.Weight.Bold)
        title_font.setLetterSpacing(QFont.SpacingType.AbsoluteSpacing, 1.5)
        self._title_label.setFont(title_font)
        self._title_label.setStyleSheet("color: #22C55E;")
        header.addWidget(self._title_label)
        header.addStretch()
        close_btn = QLabel("✕")
        close_btn.setStyleSheet("color: #666680; font-size: 14px; padding: 2px 6px;")
        close_btn.setCursor(Qt.CursorShape.PointingHandCursor)
        close_btn.mousePressEvent = lambda _: self.close()
        header.addWidget(close_btn)
        layout.addLayout(header)

        self._plan_label = QLabel("")
        self._plan_label.setStyleSheet("color: #888898; font-size: 10px; padding-left: 2px;")
        layout.addWidget(self._plan_label)

        self._notice_label = QLabel(INVALID_LOGIN_TEXT)
        self._notice_label.setStyleSheet(NOTICE_STYLE)
        self._notice_label.hide()
        layout.addWidget(self._notice_label)

        layout.addWidget(_separator())
        layout.addSpacing(4)

        # Usage bars
        self._bars_layout = QVBoxLayout()
        self._bars_layout.setSpacing(6)
        layout.addLayout(self._bars_layout)
        self._empty_label = QLabel("No usage data yet")
        self._empty_label.setStyleSheet("color: #666680; font-size: 11px;")
        self._bars_layout.addWidget(self._empty_label)
        layout.addStretch()

        layout.addWidget(_separator())

        # Actions
        actions = QHBoxLayout()
        self._relogin_btn = _link_label("Re-login", self._relogin)
        actions.addWidget(self._relogin_btn)
        actions.addWidget(_link_label("Interval", self._edit_interval))
        actions.addWidget(_link_label("Active Days", self._open_active_window))
        actions.addStretch()
        layout.addLayout(actions)

        # Status row
        status_layout = QHBoxLayout()
        self._status_label = QLabel("Fetching...")
        self._status_label.setStyleSheet("color: #666680; font-size: 10px;")
        status_layout.addWidget(self._status_label)
        status_layout.addStretch()
        status_layout.addWidget(_link_label("⟳", self._refresh_now, 16))
        layout.addLayout(status_layout)

    def _setup_timers(self):
        self._fetch_timer = QTimer(self)
        self._fetch_timer.timeout.connect(self._refresh_now)
        self._fetch_timer.start(self._interval_s * 1000)

        # Countdown timer - every second
        self._countdown_timer = QTimer(self)
        self._countdown_timer.timeout.connect(self._update_status)
        self._countdown_timer.start(COUNTDOWN_INTERVAL_MS)

    # -- usage ----------------------------------------------------------

    def _fetch_usage(self):
        self._next_fetch_at = time.time() + self._interval_s
        self._pool.start("get-usage-data", self._on_usage_fetched)

    def _refresh_now(self):
        self._next_fetch_at = time.time() + self._interval_s
        self._status_label.setText("Refreshing...")
        self._pool.start("refresh-now", self._on_usage_fetched)

    def _on_usage_fetched(self, payload):
        if not payload:
            if not self._has_data:
                self._notice_label.show()
            self._update_status()
            return
        self._has_data = True
        self._notice_label.hide()
        self._usage = UsageData.from_dict(payload)
        self._last_update = time.time()
        self._update_display()

    def _update_display(self):
        data = self._usage
        if data is None:
            return
        plan = data.plan_type or "—"
        parts = [plan]
        if data.reset_date:
            parts.append(f"resets {data.reset_date}")
        if data.days_remaining:
            parts.append(f"{data.days_remaining} days left")
        self._plan_label.setText("  ·  ".join(parts))

        for bar in self._bars:
            self._bars_layout.removeWidget(bar)
            bar.deleteLater()
        self._bars = [UsageBar(item) for item in data.display_items()]
        for bar in self._bars:
            self._bars_layout.addWidget(bar)
        self._empty_label.setVisible(not self._bars)
        self._update_status()

    def _update_status(self):
        """Update countdown strings every second without re-fetching."""
        if self._pool.busy("refresh-now") or self._pool.busy("reset-login"):
            return
        remaining = max(0, int(self._next_fetch_at - time.time()))
        if self._last_update:
            age = _fmt_age(time.time() - self._last_update)
            self._status_label.setText(f"Updated: {age} ago  ·  Next: {remaining}s")
        else:
            self._status_label.setText(f"No data  ·  Next: {remaining}s")

    # -- actions --------------------------------------------------------

    def _relogin(self):
        if self._pool.start("reset-login", self._on_login_finished):
            self._relogin_btn.setText("Signing in...")
            self._status_label.setText("Waiting for sign-in in the browser window...")

    def _on_login_finished(self, ok):
        self._relogin_btn.setText("Re-login")
        if ok:
            self._fetch_usage()
        else:
            self._update_status()

    def _edit_interval(self):
        seconds, ok = QInputDialog.getInt(
            self, "Refresh interval", "Seconds between refreshes:",
            self._interval_s, MIN_REFRESH_INTERVAL_S, MAX_REFRESH_INTERVAL_S,
        )
        if not ok:
            return
        cfg = self._bridge.call("update-refresh-interval", seconds)
        self._interval_s = cfg["refreshIntervalSeconds"]
        self._fetch_timer.start(self._interval_s * 1000)
        self._next_fetch_at = time.time() + self._interval_s
        self._update_status()

    def _open_active_window(self):
        self._bridge.call("open-active-window")

    # -- window host ----------------------------------------------------

    def bounds(self) -> Bounds:
        g = self.geometry()
        return Bounds(g.x(), g.y(), g.width(), g.height())

    def set_bounds(self, bounds: Bounds):
        self.setGeometry(bounds.x, bounds.y, bounds.width, bounds.height)

    def work_area(self) -> Bounds:
        g = QApplication.primaryScreen().availableGeometry()
        return Bounds(g.x(), g.y(), g.width(), g.height())

    def open_active_window(self):
        if self._active_window is None:
            self._active_window = ActiveDaysWindow(self._pool, self._bridge, self._profile)
            g = self.geometry()
            self._active_window.move(g.x(), g.y() + g.height() + 8)
        self._active_window.show()
        self._active_window.raise_()
        self._active_window.load()

    def show_live_calendar(self) -> bool:
        if self._active_window is None:
            return False
        return self._active_window.show_live()

    def restore_bounds(self, saved: Bounds | None):
        area = self.work_area()
        if saved is None:
            w, h = clamp_size(DEFAULT_WIDTH, DEFAULT_HEIGHT, area)
            # Position at top-right of screen with some padding
            saved = Bounds(area.x + area.width - w - 20, area.y + 40, w, h)
        w, h = clamp_size(saved.width, saved.height, area)
        x, y = clamp_position(saved.x, saved.y, w, h, area)
        self.set_bounds(Bounds(x, y, w, h))

    # -- painting and mouse --------------------------------------------

    def paintEvent(self, event):
        _paint_panel(self)

    def _in_grip(self, pos) -> bool:
        return pos.x() >= self.width() - RESIZE_GRIP and pos.y() >= self.height() - RESIZE_GRIP

    def mousePressEvent(self, event):
        if event.button() != Qt.MouseButton.LeftButton:
            return
        global_pos = event.globalPosition().toPoint()
        if self._in_grip(event.position().toPoint()):
            self._resize_origin = (global_pos, self.width(), self.height())
            self._bridge.call("set-resizing", True)
        else:
            self._drag_pos = global_pos - self.frameGeometry().topLeft()
        event.accept()

    def mouseMoveEvent(self, event):
        if not event.buttons() & Qt.MouseButton.LeftButton:
            self.setCursor(
                Qt.CursorShape.SizeFDiagCursor if self._in_grip(event.position().toPoint())
                else Qt.CursorShape.ArrowCursor
            )
            return
        global_pos = event.globalPosition().toPoint()
        if self._resize_origin is not None:
            origin, w, h = self._resize_origin
            delta = global_pos - origin
            self._bridge.call("set-window-size", w + delta.x(), h + delta.y())
        else:
            target = global_pos - self._drag_pos
            self._bridge.call("set-window-position", target.x(), target.y())
        event.accept()

    def mouseReleaseEvent(self, event):
        if self._resize_origin is not None:
            self._resize_origin = None
            self._bridge.call("set-resizing", False)
        event.accept()

    def wait_for_workers(self):
        self._pool.wait()

    def closeEvent(self, event):
        if self._active_window is not None:
            self._active_window.close()
        super().closeEvent(event)


def run_widget(runner: AsyncRunner, bridge: MonitorBridge, argv: list[str]) -> int:
    app = QApplication(argv)
    app.setApplicationName("Trae Usage Monitor")

    profile = web_profile(app)
    capture = HiddenPageCapture(profile, app)
    bridge.controller.loader.hidden_page = capture.snapshot

    widget = MonitorWidget(runner, bridge, profile)
    bridge.host = widget
    bridge.controller.set_usage_listener(lambda data: widget.usage_pushed.emit(data.to_dict()))
    widget.restore_bounds(bridge.window_store.load())
    widget.setMouseTracking(True)
    widget.show()

    code = app.exec()
    runner.stop()
    widget.wait_for_workers()
    return code
