"""Activity calendar extraction: JSON islands, SVG rects, DOM attributes, grid geometry."""

import logging
import math
import re
from datetime import date, datetime, timedelta

from bs4 import BeautifulSoup, Tag

from .extract_usage import to_number
from .models import ActiveDayCell, ActiveDaysData
from .snapshot import PageSnapshot

logger = logging.getLogger(__name__)

ACTIVE_TITLE = "Active Days"
MS_THRESHOLD = 1e12
DEFAULT_COLUMN_STEP = 16.0
MAX_JSON_DEPTH = 64

# Preferred first; the hashed class names are the live site's.
GRID_SELECTORS = (
    ".section-SqHrr3",
    ".calendarGrid-CKzXol",
    "#calendarGrid",
    '[class*="calendarGrid"], [role="grid"]',
)

_MONTHS = {
    "jan": "01", "feb": "02", "mar": "03", "apr": "04", "may": "05", "jun": "06",
    "jul": "07", "aug": "08", "sep": "09", "oct": "10", "nov": "11", "dec": "12",
}

_ISO_DATE_RE = re.compile(r"(\d{4})[-/]?(\d{2})[-/]?(\d{2})")
_DMY_DATE_RE = re.compile(
    r"(\d{1,2})\s+(Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)[a-z]*\s+(\d{4})",
    re.IGNORECASE,
)
_CLASS_LEVEL_RE = re.compile(r"level[-_\s]?(\d)", re.IGNORECASE)
_COUNT_DIGITS_RE = re.compile(r"^\d+$")
_ARIA_COUNT_RE = re.compile(r"(\d+)\s*(activity|次|条|events?)", re.IGNORECASE)
_HEX_RE = re.compile(r"#([0-9a-fA-F]{6})")
_RGB_RE = re.compile(r"rgba?\s*\(\s*(\d+)\s*,\s*(\d+)\s*,\s*(\d+)", re.IGNORECASE)
_FLOAT_PREFIX_RE = re.compile(r"\s*([-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?)")
_HEADING_RE = re.compile(r"Active\s*Days|活跃日|活跃看板", re.IGNORECASE)


def to_date_key(raw) -> str:
    """Normalize "2024/03/05", "20240305", "5 Mar 2024" ... to "2024-03-05"."""
    s = str(raw or "")
    if not s:
        return ""
    m = _ISO_DATE_RE.search(s)
    if m:
        return _valid_date(m.group(1), m.group(2), m.group(3))
    m = _DMY_DATE_RE.search(s)
    if m:
        month = _MONTHS.get(m.group(2)[:3].lower(), "01")
        return _valid_date(m.group(3), month, m.group(1))
    return ""


def _valid_date(year, month, day) -> str:
    try:
        return date(int(year), int(month), int(day)).isoformat()
    except ValueError:
        return ""


def level_from_rgb(r: float, g: float, b: float, opacity: float = 1.0) -> int:
    v = max(r, g, b) * opacity
    if v < 40:
        return 0
    if v < 80:
        return 1
    if v < 120:
        return 2
    if v < 160:
        return 3
    return 4


def parse_color(value: str | None) -> tuple[int, int, int] | None:
    if not value:
        return None
    m = _HEX_RE.search(value)
    if m:
        h = m.group(1)
        return int(h[0:2], 16), int(h[2:4], 16), int(h[4:6], 16)
    m = _RGB_RE.search(value)
    if m:
        return int(m.group(1)), int(m.group(2)), int(m.group(3))
    return None


class CellMerger:
    """Date-keyed cells; a later sighting never replaces a finite field with a missing one."""

    def __init__(self):
        self._cells: dict[str, tuple[int, int | None]] = {}

    def add(self, day: str, level: float = math.nan, count: float = math.nan):
        lv = level if math.isfinite(level) else None
        ct = int(count) if math.isfinite(count) else None
        prev = self._cells.get(day)
        if prev is None:
            self._cells[day] = (lv if lv is not None else 0, ct)
            return
        self._cells[day] = (
            lv if lv is not None else prev[0],
            ct if ct is not None else prev[1],
        )

    def __len__(self) -> int:
        return len(self._cells)

    def cells(self) -> list[ActiveDayCell]:
        return [ActiveDayCell(date=d, level=lv, count=ct) for d, (lv, ct) in self._cells.items()]


# ---------------------------------------------------------------------------
# Inline style helpers
# ---------------------------------------------------------------------------

def _style_value(el: Tag, prop: str) -> str:
    found = ""
    for decl in (el.get("style") or "").split(";"):
        name, sep, value = decl.partition(":")
        if sep and name.strip().lower() == prop:
            found = value.strip()
    return found


def _style_px(el: Tag, prop: str) -> float:
    value = _style_value(el, prop)
    if not value:
        return 0.0
    m = _FLOAT_PREFIX_RE.match(value)
    return float(m.group(1)) if m else math.nan


def _round_half_up(x: float) -> int:
    return math.floor(x + 0.5)


# ---------------------------------------------------------------------------
# JSON tree walk
# ---------------------------------------------------------------------------

def _first(obj: dict, *keys):
    for key in keys:
        value = obj.get(key)
        if value is not None:
            return value
    return None


def _json_date(value) -> str:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if not math.isfinite(value):
            return ""
        ms = value if value > MS_THRESHOLD else value * 1000
        try:
            return datetime.fromtimestamp(ms / 1000).date().isoformat()
        except (OverflowError, OSError, ValueError):
            return ""
    if isinstance(value, str):
        return to_date_key(value)
    return ""


def _push_json_cell(merger: CellMerger, raw_date, level, count):
    day = _json_date(raw_date)
    lv = to_number(level)
    ct = to_number(count)
    if day and (math.isfinite(lv) or math.isfinite(ct)):
        merger.add(day, lv, ct)


def _walk(node, merger: CellMerger, depth: int):
    if depth > MAX_JSON_DEPTH:
        return
    if isinstance(node, list):
        if (len(node) == 2 and node[0] is not None
                and not isinstance(node[0], (dict, list))
                and isinstance(node[1], (int, float)) and not isinstance(node[1], bool)):
            _push_json_cell(merger, node[0], None, node[1])
            return
        for el in node:
            _walk(el, merger, depth + 1)
        return
    if isinstance(node, dict):
        raw_date = _first(node, "date", "day", "dt", "timestamp", "createdAt")
        level = _first(node, "level", "intensity", "value")
        count = _first(node, "count", "times", "frequency")
        if raw_date is not None and (level is not None or count is not None):
            _push_json_cell(merger, raw_date, level, count)
        for value in node.values():
            if value is not None:
                _walk(value, merger, depth + 1)


def cells_from_json(obj) -> list[ActiveDayCell]:
    merger = CellMerger()
    _walk(obj, merger, 0)
    return merger.cells()


# ---------------------------------------------------------------------------
# DOM scans
# ---------------------------------------------------------------------------

def _heading_container(soup: BeautifulSoup) -> Tag | None:
    matches = [n for n in soup.select("h1, h2, h3, div, span") if _HEADING_RE.search(n.get_text())]
    heading = None
    for idx, node in enumerate(matches):
        nxt = matches[idx + 1] if idx + 1 < len(matches) else None
        if nxt is None or not any(p is node for p in nxt.parents):
            heading = node
            break
    if heading is None:
        return None
    p = heading.parent
    for _ in range(5):
        if p is None or p.name == "[document]":
            break
        if p.find(["div", "section"]) is not None:
            return p
        p = p.parent
    return None


def find_grid_container(soup: BeautifulSoup) -> Tag:
    el = soup.find(id="calendarGrid")
    if el is None:
        el = soup.select_one('[id*="calendarGrid"], [class*="calendarGrid"], [role="grid"]')
    if el is None:
        el = _heading_container(soup)
    if el is None:
        el = soup.body or soup
    return el


def _icon_level(el: Tag) -> float:
    rect = el.select_one("svg rect")
    if rect is None:
        return math.nan
    rgb = parse_color(rect.get("fill") or "")
    if rgb is None:
        return math.nan
    op = to_number(rect.get("fill-opacity") or rect.get("opacity") or "1")
    return float(level_from_rgb(*rgb, opacity=op if math.isfinite(op) else 1.0))


def _element_level(el: Tag) -> float:
    level = to_number(el.get("data-level"))
    if math.isfinite(level):
        return level
    m = _CLASS_LEVEL_RE.search(" ".join(el.get("class") or []))
    if m:
        return float(m.group(1))
    rgb = parse_color(_style_value(el, "background-color") or _style_value(el, "background"))
    if rgb is not None:
        return float(level_from_rgb(*rgb))
    return _icon_level(el)


def _element_count(el: Tag) -> float:
    dc = el.get("data-count") or ""
    if _COUNT_DIGITS_RE.match(dc):
        return float(dc)
    m = _ARIA_COUNT_RE.search(el.get("aria-label") or "")
    if m:
        return float(m.group(1))
    return math.nan


def cells_from_svg_rects(soup: BeautifulSoup) -> list[ActiveDayCell]:
    merger = CellMerger()
    for rect in soup.find_all("rect"):
        day = to_date_key(rect.get("data-date") or rect.get("aria-label") or rect.get("title") or "")
        if not day:
            continue
        level = to_number(rect.get("data-level"))
        if not math.isfinite(level):
            rgb = parse_color(rect.get("fill") or "")
            if rgb is not None:
                level = float(level_from_rgb(*rgb))
        count = to_number(rect.get("data-count"))
        if math.isfinite(level) or math.isfinite(count):
            merger.add(day, level, count)
    return merger.cells()


def cells_from_dom(soup: BeautifulSoup) -> list[ActiveDayCell]:
    container = find_grid_container(soup)
    merger = CellMerger()
    for el in container.select("[data-date], [aria-label], [title]"):
        raw = (el.get("data-date") or el.get("title") or el.get("aria-label") or "").strip()
        day = to_date_key(raw)
        if not day:
            continue
        merger.add(day, _element_level(el), _element_count(el))
    return merger.cells()


def cells_from_geometry(soup: BeautifulSoup, today: date | None = None) -> list[ActiveDayCell]:
    """Rebuild dates from absolutely positioned week rows, newest row = current week."""
    container = find_grid_container(soup)
    rows = container.select('[class*="weekRow"], [style*="top:"]')

    def row_top(row):
        top = _style_px(row, "top")
        return top if math.isfinite(top) else 0.0

    rows = sorted(rows, key=row_top)
    today = today or date.today()
    base_monday = today - timedelta(days=today.weekday())
    merger = CellMerger()

    for ri, row in enumerate(rows):
        cells = row.select('[class*="calendarDay"], div, span')
        lefts = sorted(v for v in (_style_px(c, "left") for c in cells) if math.isfinite(v))
        step = DEFAULT_COLUMN_STEP
        if len(lefts) > 1:
            step = min(b - a for a, b in zip(lefts, lefts[1:])) or DEFAULT_COLUMN_STEP
        week_start = base_monday - timedelta(weeks=len(rows) - 1 - ri)
        for cell in cells:
            left = _style_px(cell, "left")
            col = _round_half_up(left / step) if math.isfinite(left) else 0
            day = week_start + timedelta(days=col)
            merger.add(day.isoformat(), _icon_level(cell))
    return merger.cells()


def grid_markup(soup: BeautifulSoup) -> str:
    for selector in GRID_SELECTORS:
        el = soup.select_one(selector)
        if el is not None:
            return str(el)
    return ""


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

def _attempt(strategy, *args):
    try:
        return strategy(*args)
    except Exception:
        logger.debug("activity strategy %s failed", strategy.__name__, exc_info=True)
        return None


def extract_active_days(snapshot: PageSnapshot, today: date | None = None) -> ActiveDaysData | None:
    islands = []
    if snapshot.next_data is not None:
        islands.append(snapshot.next_data)
    islands.extend(snapshot.json_scripts)
    for payload in islands:
        cells = _attempt(cells_from_json, payload)
        if cells:
            return ActiveDaysData(title=ACTIVE_TITLE, cells=cells)

    soup = snapshot.soup
    cells = _attempt(cells_from_svg_rects, soup)
    if cells:
        return ActiveDaysData(title=ACTIVE_TITLE, cells=cells)

    cells = _attempt(cells_from_dom, soup) or _attempt(cells_from_geometry, soup, today)
    markup = _attempt(grid_markup, soup) or ""
    if cells:
        return ActiveDaysData(title=ACTIVE_TITLE, cells=cells, grid_html=markup)
    if markup:
        logger.info("no structured activity cells, falling back to raw grid markup")
        return ActiveDaysData(title=ACTIVE_TITLE, cells=[], grid_html=markup)
    return None
