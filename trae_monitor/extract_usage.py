"""Usage extraction from data islands, captured API responses and page text."""

import logging
import math
import re

from .models import UsageData, UsageItem
from .snapshot import PageSnapshot

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Usage"
JSON_PLAN_TYPE = "Pro plan"
MISSING_PLAN_TYPE = "—"
MAX_TEXT_ITEMS = 10
TITLE_LOOKBACK = 5
ANNOTATION_WINDOW = 3
MAX_JSON_DEPTH = 64

_METRIC_KEYS = ("used", "limit", "total", "current")
_ITEM_TYPES = ("plan", "package")

_RATIO_RE = re.compile(r"^(\d+(?:\.\d+)?)\s*/\s*(\d+(?:\.\d+)?)$")
_TITLE_KEYWORD_RE = re.compile(r"Pro plan|Extra package|计划|套餐|礼包", re.IGNORECASE)
_PLAN_TITLE_RE = re.compile(r"Pro plan|专业计划|计划", re.IGNORECASE)
_NOT_A_TITLE_RE = re.compile(r"Left|Expire|Reset", re.IGNORECASE)
_RESET_AT_RE = re.compile(r"Reset at\s+(.+)", re.IGNORECASE)
_EXPIRE_AT_RE = re.compile(r"Expire at\s+(.+)", re.IGNORECASE)
_CONSUMING_RE = re.compile(r"Consuming", re.IGNORECASE)
_PLAN_TYPE_RE = re.compile(r"You are on\s+(.+?)\s+plan", re.IGNORECASE)
_DAYS_LEFT_RE = re.compile(r"Usage reset in\s+(\d+)\s+days", re.IGNORECASE)
_RESET_DATE_RE = re.compile(r"on\s+(\d{4}/\d{2}/\d{2}\s+\d{2}:\d{2})")
_RESET_DATE_CN_RE = re.compile(r"使用量将于(\d{4}年\s*\d{1,2}月\s*\d{1,2}日\s*\d{2}:\d{2})重置")


def to_number(value) -> float:
    """Loose numeric coercion; anything unusable becomes NaN."""
    if value is None or isinstance(value, bool):
        return math.nan
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return math.nan
    return math.nan


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _first(obj: dict, *keys):
    for key in keys:
        value = obj.get(key)
        if value is not None:
            return value
    return None


# ---------------------------------------------------------------------------
# Structured JSON walk
# ---------------------------------------------------------------------------

def _push(out: list, title: str, current, total, kind: str):
    cur = to_number(current)
    tot = to_number(total)
    if math.isfinite(cur) and math.isfinite(tot) and tot > 0:
        out.append((title, cur, tot, kind))


def _visit(key: str, obj: dict, out: list, depth: int):
    if depth > MAX_JSON_DEPTH:
        return
    if any(k in obj for k in _METRIC_KEYS):
        kind = "plan" if "plan" in key.lower() else "package"
        _push(out, key, _first(obj, "used", "current"), _first(obj, "limit", "total"), kind)
    items = obj.get("items")
    expanded = isinstance(items, list)
    if expanded:
        for it in items:
            if not isinstance(it, dict):
                continue
            kind = it.get("type") if it.get("type") in _ITEM_TYPES else "package"
            _push(out, str(it.get("title") or key),
                  _first(it, "used", "current"), _first(it, "limit", "total"), kind)
    _visit_children(obj, out, depth + 1, skip_items=expanded)


def _visit_children(obj: dict, out: list, depth: int, skip_items: bool = False):
    for key, child in obj.items():
        if skip_items and key == "items":
            continue
        if isinstance(child, dict):
            _visit(str(key), child, out, depth)
        elif isinstance(child, list):
            _visit_list(str(key), child, out, depth)


def _visit_list(key: str, values: list, out: list, depth: int):
    if depth > MAX_JSON_DEPTH:
        return
    for el in values:
        if isinstance(el, dict):
            _visit(str(el.get("title") or key), el, out, depth)
        elif isinstance(el, list):
            _visit_list(key, el, out, depth + 1)


def usage_from_json(obj) -> UsageData | None:
    if isinstance(obj, list):
        obj = {"items": obj}
    if not isinstance(obj, dict):
        return None

    found: list = []
    if _is_number(obj.get("limit")) or _is_number(obj.get("used")):
        _push(found, DEFAULT_TITLE, obj.get("used"), obj.get("limit"), "plan")
    if _is_number(obj.get("total")) or _is_number(obj.get("current")):
        _push(found, DEFAULT_TITLE, obj.get("current"), obj.get("total"), "plan")
    _visit_children(obj, found, 1)

    if not found:
        return None
    items = [
        UsageItem(id=f"{title or DEFAULT_TITLE}-{idx}", title=title or DEFAULT_TITLE,
                  type=kind, current=cur, total=tot)
        for idx, (title, cur, tot, kind) in enumerate(found)
    ]
    return UsageData(plan_type=JSON_PLAN_TYPE, reset_date="", days_remaining=0, items=items)


# ---------------------------------------------------------------------------
# Text-line heuristic
# ---------------------------------------------------------------------------

def _guess_title(lines: list[str], i: int) -> str:
    for k in range(i - 1, max(0, i - TITLE_LOOKBACK) - 1, -1):
        t = lines[k]
        if _TITLE_KEYWORD_RE.search(t):
            return t
        if not re.search(r"\d", t) and 0 < len(t) <= 60 and not _NOT_A_TITLE_RE.search(t):
            return t
    return ""


def usage_from_text(text: str) -> UsageData:
    raw = text or ""
    lines = [s.strip() for s in raw.split("\n") if s.strip()]

    data = UsageData()
    m = _PLAN_TYPE_RE.search(raw)
    if m:
        data.plan_type = m.group(1).strip()
    m = _DAYS_LEFT_RE.search(raw)
    if m:
        data.days_remaining = int(m.group(1))
    m = _RESET_DATE_RE.search(raw)
    if m:
        data.reset_date = m.group(1).strip()
    if not data.reset_date:
        m = _RESET_DATE_CN_RE.search(raw)
        if m:
            data.reset_date = m.group(1).strip()

    for i, line in enumerate(lines):
        m = _RATIO_RE.match(line)
        if not m:
            continue
        current = float(m.group(1))
        total = float(m.group(2))
        if total <= 0:
            continue

        reset_time = expiry_time = tag = None
        for t in lines[max(0, i - ANNOTATION_WINDOW):i + ANNOTATION_WINDOW + 1]:
            rm = _RESET_AT_RE.search(t)
            em = _EXPIRE_AT_RE.search(t)
            if rm and not reset_time:
                reset_time = rm.group(1).strip()
            if em and not expiry_time:
                expiry_time = em.group(1).strip()
            if _CONSUMING_RE.search(t):
                tag = "Consuming"
            if "消费" in t:
                tag = "消费"

        title = _guess_title(lines, i) or DEFAULT_TITLE
        kind = "plan" if _PLAN_TITLE_RE.search(title) else "package"
        data.items.append(UsageItem(
            id=f"{title}-{i}", title=title, type=kind, current=current, total=total,
            tag=tag, reset_time=reset_time, expiry_time=expiry_time,
        ))
        if len(data.items) >= MAX_TEXT_ITEMS:
            break
    return data


# ---------------------------------------------------------------------------
# Selection policy
# ---------------------------------------------------------------------------

def _attempt(strategy, payload) -> UsageData | None:
    try:
        return strategy(payload)
    except Exception:
        logger.debug("usage strategy %s failed", strategy.__name__, exc_info=True)
        return None


def select_usage(snapshot: PageSnapshot) -> UsageData | None:
    """First strategy with a non-empty item list wins."""
    if not snapshot.is_account_page:
        logger.debug("not on the account page (%s), treating as logged out", snapshot.url)
        return None

    islands = []
    if snapshot.next_data is not None:
        islands.append(snapshot.next_data)
    islands.extend(snapshot.json_scripts)
    for payload in islands:
        parsed = _attempt(usage_from_json, payload)
        if parsed and parsed.items:
            return parsed

    for payload in reversed(snapshot.network_jsons):
        parsed = _attempt(usage_from_json, payload)
        if parsed and parsed.items:
            return parsed

    data = _attempt(usage_from_text, snapshot.text)
    if data is None or (not data.items and not data.reset_date):
        return None
    if not data.plan_type:
        data.plan_type = MISSING_PLAN_TYPE
    return data
