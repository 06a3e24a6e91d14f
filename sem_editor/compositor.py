from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Tuple

import numpy as np
from PIL import Image, ImageDraw

from .crop import CropRect
from .cv_utils import pil_to_gray
from .model import EditorState, Mode
from .scale_bar import compute_geometry, draw_scale_bar

log = logging.getLogger(__name__)

MASK_RGBA = (0, 0, 0, 179)          # 70% black
BORDER_COLOR = "#ef4444"
BORDER_WIDTH = 2
BORDER_DASH = (10, 10)
MARKER_COLOR = "#3b82f6"
MARKER_RADIUS = 5
MARKER_LINE_WIDTH = 3

EXPORT_FORMATS = {".png": "PNG", ".tif": "TIFF", ".tiff": "TIFF", ".bmp": "BMP"}


class ExportBlockedError(RuntimeError):
    """Raised when an export is requested without a usable calibration."""


def to_display_rgb(image: Image.Image) -> Image.Image:
    """8-bit RGB copy of any source mode (16-bit/float greyscale is stretched)."""
    if image.mode in ("I;16", "I;16B", "I;16L", "I", "F"):
        gray = pil_to_gray(image)
        return Image.fromarray(np.clip(np.rint(gray), 0, 255).astype(np.uint8), "L").convert("RGB")
    if image.mode == "RGB":
        return image.copy()
    if image.mode in ("RGBA", "LA", "PA") or (image.mode == "P" and "transparency" in image.info):
        # flatten onto black like a canvas would show it
        rgba = image.convert("RGBA")
        base = Image.new("RGBA", rgba.size, (0, 0, 0, 255))
        base.alpha_composite(rgba)
        return base.convert("RGB")
    return image.convert("RGB")


def mask_regions(crop: CropRect, width: int, height: int) -> List[Tuple[int, int, int, int]]:
    """
    The four bands outside the crop as (x0, y0, x1, y1), exclusive ends.

    Top and bottom span the full width; left and right only span the crop's
    rows, so no pixel is covered twice. Empty bands are left out.
    """
    bands = [
        (0, 0, width, crop.y),
        (0, crop.bottom, width, height),
        (0, crop.y, crop.x, crop.bottom),
        (crop.right, crop.y, width, crop.bottom),
    ]
    return [b for b in bands if b[2] > b[0] and b[3] > b[1]]


def _dashed_line(draw: ImageDraw.ImageDraw, p0, p1, *, fill, width: int, dash: Tuple[int, int]) -> None:
    (x0, y0), (x1, y1) = p0, p1
    length = max(abs(x1 - x0), abs(y1 - y0))
    if length == 0:
        return
    on, off = dash
    ux, uy = (x1 - x0) / length, (y1 - y0) / length
    t = 0
    while t < length:
        t1 = min(t + on, length)
        draw.line((x0 + ux * t, y0 + uy * t, x0 + ux * t1, y0 + uy * t1), fill=fill, width=width)
        t += on + off


def draw_crop_border(image: Image.Image, crop: CropRect) -> None:
    draw = ImageDraw.Draw(image)
    x0, y0 = crop.x, crop.y
    x1, y1 = crop.right - 1, crop.bottom - 1
    kw = dict(fill=BORDER_COLOR, width=BORDER_WIDTH, dash=BORDER_DASH)
    _dashed_line(draw, (x0, y0), (x1, y0), **kw)
    _dashed_line(draw, (x1, y0), (x1, y1), **kw)
    _dashed_line(draw, (x1, y1), (x0, y1), **kw)
    _dashed_line(draw, (x0, y1), (x0, y0), **kw)


def draw_calibration_markers(image: Image.Image, state: EditorState) -> None:
    picker = state.picker
    draw = ImageDraw.Draw(image)
    if picker.start is not None and picker.end is not None:
        draw.line((*picker.start, *picker.end), fill=MARKER_COLOR, width=MARKER_LINE_WIDTH)
    r = MARKER_RADIUS
    for pt in (picker.start, picker.end):
        if pt is None:
            continue
        x, y = pt
        draw.ellipse((x - r, y - r, x + r, y + r), fill=MARKER_COLOR)


def render_preview(state: EditorState, base: Optional[Image.Image] = None) -> Image.Image:
    """
    Full-size working view: image, dimmed outside the crop, dashed crop border,
    then calibration markers (CALIBRATE) or the new scale bar (EDIT).

    base is the 8-bit RGB view of state.image when the caller already has one.
    """
    if base is None:
        base = to_display_rgb(state.image)
    base = base.convert("RGBA")
    w, h = base.size

    shade = Image.new("RGBA", (w, h), (0, 0, 0, 0))
    sd = ImageDraw.Draw(shade)
    for x0, y0, x1, y1 in mask_regions(state.crop, w, h):
        sd.rectangle((x0, y0, x1 - 1, y1 - 1), fill=MASK_RGBA)
    base.alpha_composite(shade)

    out = base.convert("RGB")
    draw_crop_border(out, state.crop)

    if state.mode is Mode.CALIBRATE:
        draw_calibration_markers(out, state)
    elif state.mode is Mode.EDIT and state.settings.visible:
        geom = compute_geometry(state.settings, state.pixels_per_unit, state.crop.box())
        draw_scale_bar(out, geom, state.settings)
    return out


def can_export(state: EditorState) -> bool:
    return state.calibration.is_valid


def render_export(state: EditorState, base: Optional[Image.Image] = None) -> Image.Image:
    """
    The cropped scene at native resolution with the scale bar placed relative to
    the output rectangle. No mask, border or markers.
    """
    if not can_export(state):
        raise ExportBlockedError("Calibrate the scale (pick two points and a known distance) before exporting.")
    crop = state.crop
    if base is None:
        base = to_display_rgb(state.image)
    out = base.crop(crop.box())
    if state.settings.visible:
        geom = compute_geometry(state.settings, state.pixels_per_unit, (0, 0, crop.width, crop.height))
        draw_scale_bar(out, geom, state.settings)
    return out


def save_export(image: Image.Image, path) -> Path:
    """Write a lossless file; the format follows the extension (PNG when unknown)."""
    path = Path(path)
    fmt = EXPORT_FORMATS.get(path.suffix.lower())
    if fmt is None:
        path = path.with_suffix(".png")
        fmt = "PNG"
    save_kw = {"compression": "tiff_lzw"} if fmt == "TIFF" else {}
    image.save(path, format=fmt, **save_kw)
    log.info("Exported %dx%d image to %s", image.width, image.height, path)
    return path
