from __future__ import annotations

import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Tuple

from .crop import parse_number

Point = Tuple[float, float]


class PickState(str, Enum):
    EMPTY = "empty"
    HAS_START = "has_start"
    HAS_BOTH = "has_both"


@dataclass(frozen=True)
class PointPicker:
    """
    Two-click distance picker on the original scale bar.

    EMPTY --click--> HAS_START --click--> HAS_BOTH --click--> HAS_START (new start)
    """
    start: Optional[Point] = None
    end: Optional[Point] = None
    pixel_distance: float = 0.0

    @property
    def state(self) -> PickState:
        if self.start is None:
            return PickState.EMPTY
        if self.end is None:
            return PickState.HAS_START
        return PickState.HAS_BOTH

    def click(self, point: Point) -> "PointPicker":
        p = (float(point[0]), float(point[1]))
        st = self.state
        if st is PickState.EMPTY:
            return PointPicker(start=p)
        if st is PickState.HAS_START:
            dx = p[0] - self.start[0]
            dy = p[1] - self.start[1]
            return PointPicker(start=self.start, end=p, pixel_distance=math.hypot(dx, dy))
        # HAS_BOTH: restart from the new point
        return PointPicker(start=p)

    def reset(self) -> "PointPicker":
        return PointPicker()


@dataclass(frozen=True)
class Calibration:
    pixel_distance: float = 0.0
    known_distance: float = 10.0
    unit: str = "µm"

    @property
    def pixels_per_unit(self) -> float:
        # 0 known distance means "not calibrated"; return a non-finite ratio
        # instead of raising
        if self.known_distance == 0:
            return math.inf if self.pixel_distance > 0 else math.nan
        return self.pixel_distance / self.known_distance

    @property
    def is_valid(self) -> bool:
        ppu = self.pixels_per_unit
        return math.isfinite(ppu) and ppu > 0

    def with_pixels(self, pixel_distance: float) -> "Calibration":
        return replace(self, pixel_distance=float(pixel_distance))

    def with_known_distance(self, text) -> "Calibration":
        return replace(self, known_distance=parse_number(text))

    def with_unit(self, unit: str) -> "Calibration":
        return replace(self, unit=str(unit))


def parse_scale_text(text: Optional[str]) -> Optional[Tuple[float, str]]:
    """
    Parse "<number> <unit>" as read off an instrument footer ("10 µm", "200 nm").

    The first whitespace-separated token must be numeric; the rest of the text
    is the unit label. Returns None when the text does not have that shape.
    """
    if not text:
        return None
    parts = text.strip().split()
    if len(parts) < 2:
        return None
    try:
        value = float(parts[0])
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return value, " ".join(parts[1:])
