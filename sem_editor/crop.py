from __future__ import annotations

import math
import re
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Tuple

MIN_CROP_SIZE = 10

_LEADING_NUMBER = re.compile(r"^\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


class Edge(str, Enum):
    TOP = "top"
    BOTTOM = "bottom"
    LEFT = "left"
    RIGHT = "right"


@dataclass(frozen=True)
class CropRect:
    # native pixels; right/bottom are exclusive
    x: int
    y: int
    width: int
    height: int

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    def box(self) -> Tuple[int, int, int, int]:
        """(left, upper, right, lower) as PIL's crop() expects."""
        return (self.x, self.y, self.right, self.bottom)

    def is_valid_for(self, image_size: Tuple[int, int]) -> bool:
        iw, ih = image_size
        return (
            self.x >= 0 and self.y >= 0
            and self.width >= MIN_CROP_SIZE and self.height >= MIN_CROP_SIZE
            and self.right <= iw and self.bottom <= ih
        )


def round_half_up(v: float) -> int:
    return int(math.floor(v + 0.5))


def parse_number(text) -> float:
    """
    Lenient numeric parse for form fields.

    Reads the leading number of the text ("12.5px" -> 12.5). Anything without a
    leading number, or a non-finite result, reads as 0.
    """
    if isinstance(text, (int, float)):
        v = float(text)
        return v if math.isfinite(v) else 0.0
    m = _LEADING_NUMBER.match(str(text or ""))
    if not m:
        return 0.0
    v = float(m.group(0))
    return v if math.isfinite(v) else 0.0


def parse_inset_input(text, dimension: int, use_percent: bool) -> int:
    num = parse_number(text)
    if use_percent:
        return round_half_up(num / 100.0 * dimension)
    return round_half_up(num)


def format_inset(pixels: int, dimension: int, use_percent: bool) -> str:
    if use_percent:
        return f"{(pixels / max(1, dimension)) * 100.0:.1f}"
    return str(round_half_up(pixels))


def initial_crop(image_width: int, image_height: int, suggested_y: Optional[int] = None) -> CropRect:
    """
    Full width; height is the suggested footer line when there is one, else the
    whole image. The suggestion is clamped into [MIN_CROP_SIZE, image_height].
    """
    height = image_height
    if suggested_y is not None and suggested_y > 0:
        height = max(MIN_CROP_SIZE, min(int(suggested_y), image_height))
    return CropRect(0, 0, image_width, height)


def inset_of(rect: CropRect, edge: Edge, image_size: Tuple[int, int]) -> int:
    iw, ih = image_size
    edge = Edge(edge)
    if edge is Edge.TOP:
        return rect.y
    if edge is Edge.BOTTOM:
        return ih - rect.bottom
    if edge is Edge.LEFT:
        return rect.x
    return iw - rect.right


def with_inset(rect: CropRect, edge: Edge, value: int, image_size: Tuple[int, int]) -> CropRect:
    """
    Return a new rect with one inset changed and the opposite edge held fixed.

    Negative insets read as 0, so the result never leaves the image and never
    drops below MIN_CROP_SIZE on either axis.
    """
    iw, ih = image_size
    edge = Edge(edge)
    value = max(0, int(value))

    if edge is Edge.TOP:
        bottom = rect.bottom
        y = max(0, min(value, bottom - MIN_CROP_SIZE))
        return replace(rect, y=y, height=bottom - y)

    if edge is Edge.BOTTOM:
        return replace(rect, height=max(MIN_CROP_SIZE, ih - rect.y - value))

    if edge is Edge.LEFT:
        right = rect.right
        x = max(0, min(value, right - MIN_CROP_SIZE))
        return replace(rect, x=x, width=right - x)

    return replace(rect, width=max(MIN_CROP_SIZE, iw - rect.x - value))


def edit_inset(rect: CropRect, edge: Edge, text, image_size: Tuple[int, int], *, use_percent: bool = False) -> CropRect:
    """Parse a form-field value for one inset and apply it."""
    iw, ih = image_size
    dim = ih if Edge(edge) in (Edge.TOP, Edge.BOTTOM) else iw
    return with_inset(rect, edge, parse_inset_input(text, dim, use_percent), image_size)
