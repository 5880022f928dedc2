"""Window bounds and the clamping rules applied to them."""

import math
from dataclasses import dataclass

MIN_WIDTH = 360
MIN_HEIGHT = 300
MAX_WIDTH = 1200
MAX_HEIGHT = 900


@dataclass(frozen=True)
class Bounds:
    x: int
    y: int
    width: int
    height: int

    @classmethod
    def from_dict(cls, data: dict) -> "Bounds":
        return cls(
            x=int(data["x"]),
            y=int(data["y"]),
            width=int(data["width"]),
            height=int(data["height"]),
        )

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


def clamp_size(width: float, height: float, work_area: Bounds) -> tuple[int, int]:
    max_w = min(MAX_WIDTH, work_area.width)
    max_h = min(MAX_HEIGHT, work_area.height)
    w = max(MIN_WIDTH, min(max_w, math.floor(width)))
    h = max(MIN_HEIGHT, min(max_h, math.floor(height)))
    return w, h


def clamp_position(x: float, y: float, width: int, height: int, work_area: Bounds) -> tuple[int, int]:
    """Keep a width x height window at (x, y) inside the work area."""
    nx = min(max(x, work_area.x), work_area.x + work_area.width - width)
    ny = min(max(y, work_area.y), work_area.y + work_area.height - height)
    return int(nx), int(ny)
