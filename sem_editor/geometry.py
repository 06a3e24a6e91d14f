from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class DisplayTransform:
    """
    Mapping between where the image is drawn on screen and its native pixels.

    Horizontal and vertical scale are independent. Build a fresh one from the
    current layout on every interaction; nothing here is clamped.
    """
    origin_x: float
    origin_y: float
    display_w: float
    display_h: float
    native_w: int
    native_h: int

    @classmethod
    def fit(cls, canvas_w: int, canvas_h: int, native_w: int, native_h: int, *, upscale: bool = True) -> "DisplayTransform":
        """Centered, aspect-preserving fit of the native image into a canvas."""
        cw = max(10, int(canvas_w))
        ch = max(10, int(canvas_h))
        scale = min(cw / native_w, ch / native_h)
        if not upscale:
            scale = min(1.0, scale)
        disp_w = max(1, int(native_w * scale))
        disp_h = max(1, int(native_h * scale))
        return cls(
            origin_x=(cw - disp_w) // 2,
            origin_y=(ch - disp_h) // 2,
            display_w=disp_w,
            display_h=disp_h,
            native_w=native_w,
            native_h=native_h,
        )

    @property
    def scale_x(self) -> float:
        # native pixels per display pixel
        return self.native_w / self.display_w

    @property
    def scale_y(self) -> float:
        return self.native_h / self.display_h

    @property
    def display_size(self) -> Tuple[int, int]:
        return (int(self.display_w), int(self.display_h))

    def to_native(self, sx: float, sy: float) -> Tuple[float, float]:
        return ((sx - self.origin_x) * self.scale_x, (sy - self.origin_y) * self.scale_y)

    def to_display(self, nx: float, ny: float) -> Tuple[float, float]:
        return (self.origin_x + nx / self.scale_x, self.origin_y + ny / self.scale_y)

    def contains_native(self, nx: float, ny: float) -> bool:
        return 0 <= nx < self.native_w and 0 <= ny < self.native_h
