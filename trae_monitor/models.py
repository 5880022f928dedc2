"""Records produced by the usage and activity extractors."""

from dataclasses import dataclass, field

DEFAULT_UNIT = "requests"


@dataclass
class UsageItem:
    id: str
    title: str
    type: str = "package"  # "plan" | "package"
    current: float = 0.0
    total: float = 0.0
    unit: str = DEFAULT_UNIT
    tag: str | None = None
    reset_time: str | None = None
    expiry_time: str | None = None

    @property
    def remaining(self) -> float:
        return max(self.total - self.current, 0.0)

    @property
    def percentage(self) -> float:
        if self.total <= 0:
            return 0.0
        return min(self.current / self.total * 100, 100.0)

    @property
    def caption(self) -> str:
        if self.reset_time:
            return f"Resets {self.reset_time}"
        if self.expiry_time:
            return f"Expires {self.expiry_time}"
        return ""

    @classmethod
    def from_dict(cls, d: dict) -> "UsageItem":
        return cls(
            id=str(d.get("id", "")),
            title=str(d.get("title", "")),
            type=d.get("type", "package"),
            current=float(d.get("current", 0)),
            total=float(d.get("total", 0)),
            unit=d.get("unit", DEFAULT_UNIT),
            tag=d.get("tag"),
            reset_time=d.get("resetTime"),
            expiry_time=d.get("expiryTime"),
        )

    def to_dict(self) -> dict:
        d = {
            "id": self.id,
            "title": self.title,
            "type": self.type,
            "current": self.current,
            "total": self.total,
            "unit": self.unit,
        }
        if self.tag:
            d["tag"] = self.tag
        if self.reset_time:
            d["resetTime"] = self.reset_time
        if self.expiry_time:
            d["expiryTime"] = self.expiry_time
        return d


@dataclass
class UsageData:
    plan_type: str = ""
    reset_date: str = ""
    days_remaining: int = 0
    items: list[UsageItem] = field(default_factory=list)

    def display_items(self) -> list[UsageItem]:
        """Items with quota left first, each group by remaining, largest first."""
        positive = [it for it in self.items if it.remaining > 0]
        exhausted = [it for it in self.items if it.remaining <= 0]
        positive.sort(key=lambda it: it.remaining, reverse=True)
        exhausted.sort(key=lambda it: it.remaining, reverse=True)
        return positive + exhausted

    @classmethod
    def from_dict(cls, d: dict) -> "UsageData":
        return cls(
            plan_type=d.get("planType", ""),
            reset_date=d.get("resetDate", ""),
            days_remaining=int(d.get("daysRemaining", 0)),
            items=[UsageItem.from_dict(it) for it in d.get("items", [])],
        )

    def to_dict(self) -> dict:
        return {
            "planType": self.plan_type,
            "resetDate": self.reset_date,
            "daysRemaining": self.days_remaining,
            "items": [it.to_dict() for it in self.items],
        }


@dataclass
class ActiveDayCell:
    date: str  # YYYY-MM-DD
    level: int = 0
    count: int | None = None

    def __post_init__(self):
        self.level = max(0, min(4, int(self.level)))

    def to_dict(self) -> dict:
        d = {"date": self.date, "level": self.level}
        if self.count is not None:
            d["count"] = self.count
        return d


@dataclass
class ActiveDaysData:
    title: str = "Active Days"
    months: list[str] = field(default_factory=list)
    cells: list[ActiveDayCell] = field(default_factory=list)
    grid_html: str = ""

    @classmethod
    def from_dict(cls, d: dict) -> "ActiveDaysData":
        return cls(
            title=d.get("title", "Active Days"),
            months=list(d.get("months", [])),
            cells=[ActiveDayCell(c["date"], c.get("level", 0), c.get("count")) for c in d.get("cells", [])],
            grid_html=d.get("gridHtml", ""),
        )

    def to_dict(self) -> dict:
        d = {
            "title": self.title,
            "months": list(self.months),
            "cells": [c.to_dict() for c in self.cells],
        }
        if self.grid_html:
            d["gridHtml"] = self.grid_html
        return d
