from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from enum import Enum
from functools import lru_cache
from typing import Optional, Tuple

from PIL import Image, ImageDraw, ImageFont

log = logging.getLogger(__name__)

LABEL_GAP_PX = 8
# FreeType refuses very large pixel sizes
MAX_FONT_SIZE_PX = 1000
MAX_BAR_PX = 10000

# tried in order; the first one Pillow can open wins
_FONT_CANDIDATES = (
    "DejaVuSans-Bold.ttf",
    "arialbd.ttf",
    "Arial Bold.ttf",
    "LiberationSans-Bold.ttf",
    "Arial.ttf",
    "arial.ttf",
)


class Corner(str, Enum):
    TOP_LEFT = "top-left"
    TOP_RIGHT = "top-right"
    BOTTOM_LEFT = "bottom-left"
    BOTTOM_RIGHT = "bottom-right"


@dataclass(frozen=True)
class ScaleBarSettings:
    visible: bool = True
    length_value: float = 5.0
    length_unit: str = "µm"
    bar_thickness_px: int = 8
    label_font_size_px: int = 24
    label_color: str = "#ffffff"
    bar_color: str = "#ffffff"
    corner: Corner = Corner.BOTTOM_RIGHT
    padding_px: int = 40

    def updated(self, **changes) -> "ScaleBarSettings":
        if "corner" in changes:
            changes["corner"] = Corner(changes["corner"])
        return replace(self, **changes)


@dataclass(frozen=True)
class ScaleBarGeometry:
    """
    Bar placement in the coordinates of the surface it is drawn on.

    (x, y) is the anchor: y is the bar's bottom edge, so the bar covers
    [x, x+width) x [y-thickness, y). The label is centered on the bar with its
    baseline LABEL_GAP_PX above the bar's top edge.
    """
    x: float
    y: float
    width: float
    thickness: int
    label: str

    @property
    def bar_box(self) -> Tuple[float, float, float, float]:
        return (self.x, self.y - self.thickness, self.x + self.width, self.y)

    @property
    def label_anchor(self) -> Tuple[float, float]:
        return (self.x + self.width / 2.0, self.y - self.thickness - LABEL_GAP_PX)

    def translated(self, dx: float, dy: float) -> "ScaleBarGeometry":
        return replace(self, x=self.x + dx, y=self.y + dy)


def format_number(v: float) -> str:
    # 5.0 -> "5", 2.5 -> "2.5"
    v = float(v)
    if v.is_integer():
        return str(int(v))
    return repr(v)


def format_label(settings: ScaleBarSettings) -> str:
    return f"{format_number(settings.length_value)} {settings.length_unit}"


def bar_pixel_width(length_value: float, pixels_per_unit: float) -> float:
    return float(length_value) * float(pixels_per_unit)


def compute_geometry(
    settings: ScaleBarSettings,
    pixels_per_unit: float,
    ref_rect: Tuple[float, float, float, float],
) -> Optional[ScaleBarGeometry]:
    """
    Place the bar in a corner of ref_rect = (left, top, right, bottom).

    Returns None when there is nothing to draw: a ratio that is not a positive
    finite number, or a bar whose width is not positive.
    """
    if not (math.isfinite(pixels_per_unit) and pixels_per_unit > 0):
        return None
    width = bar_pixel_width(settings.length_value, pixels_per_unit)
    if not (math.isfinite(width) and width > 0):
        return None

    left, top, right, bottom = ref_rect
    p = settings.padding_px
    corner = Corner(settings.corner)
    if corner is Corner.BOTTOM_RIGHT:
        x, y = right - width - p, bottom - p
    elif corner is Corner.BOTTOM_LEFT:
        x, y = left + p, bottom - p
    elif corner is Corner.TOP_RIGHT:
        x, y = right - width - p, top + p + settings.label_font_size_px
    else:
        x, y = left + p, top + p + settings.label_font_size_px

    return ScaleBarGeometry(
        x=float(x),
        y=float(y),
        width=width,
        thickness=int(settings.bar_thickness_px),
        label=format_label(settings),
    )


@lru_cache(maxsize=32)
def load_label_font(size: int) -> ImageFont.ImageFont:
    size = max(1, min(int(size), MAX_FONT_SIZE_PX))
    for name in _FONT_CANDIDATES:
        try:
            return ImageFont.truetype(name, size)
        except OSError:
            continue
    log.debug("No TrueType label font found; using Pillow's default font at %dpx", size)
    return ImageFont.load_default(size=size)


def draw_scale_bar(image: Image.Image, geometry: Optional[ScaleBarGeometry], settings: ScaleBarSettings) -> Image.Image:
    """Draw bar and label in place; a None geometry draws nothing."""
    if geometry is None:
        return image
    draw = ImageDraw.Draw(image)
    x0, y0, x1, y1 = (int(round(v)) for v in geometry.bar_box)
    # PIL rectangles include the far edge; shrink by one so the bar is exactly
    # width x thickness pixels
    if x1 > x0 and y1 > y0:
        draw.rectangle((x0, y0, x1 - 1, y1 - 1), fill=settings.bar_color)
    font = load_label_font(settings.label_font_size_px)
    draw.text(geometry.label_anchor, geometry.label, fill=settings.label_color, font=font, anchor="ms")
    return image
