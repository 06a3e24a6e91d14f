from __future__ import annotations

from typing import Optional, Tuple

from PIL import Image, ImageDraw

from .scale_bar import load_label_font

MAG_SIZE = 160
MAG_ZOOM = 3

BACKGROUND = (30, 41, 59, 255)
CROSSHAIR = (59, 130, 246, 153)
RING = (255, 255, 255, 255)
READOUT_BG = (0, 0, 0, 128)
READOUT_FG = (255, 255, 255, 204)


def sample_window(image: Image.Image, cx: float, cy: float, size: float) -> Image.Image:
    """
    Square window of the image centered on (cx, cy), size x size native pixels.

    Parts of the window outside the raster come back transparent; a cursor far
    off the image just yields an empty window.
    """
    side = max(1, int(round(size)))
    x0 = int(round(cx - size / 2.0))
    y0 = int(round(cy - size / 2.0))
    out = Image.new("RGBA", (side, side), (0, 0, 0, 0))

    iw, ih = image.size
    sx0, sy0 = max(0, x0), max(0, y0)
    sx1, sy1 = min(iw, x0 + side), min(ih, y0 + side)
    if sx1 <= sx0 or sy1 <= sy0:
        return out
    patch = image.crop((sx0, sy0, sx1, sy1)).convert("RGBA")
    out.paste(patch, (sx0 - x0, sy0 - y0))
    return out


def render_magnifier(
    image: Image.Image,
    cursor: Optional[Tuple[float, float]],
    *,
    diameter: int = MAG_SIZE,
    zoom: float = MAG_ZOOM,
    show_readout: bool = True,
) -> Optional[Image.Image]:
    """
    Zoomed circular view of the image around the cursor (native coordinates).

    Returns None when there is no cursor. The result is diameter x diameter RGBA,
    transparent outside the circle.
    """
    if cursor is None:
        return None
    cx, cy = cursor
    diameter = max(8, int(diameter))
    zoom = max(1e-3, float(zoom))

    window = sample_window(image, cx, cy, diameter / zoom)
    zoomed = window.resize((diameter, diameter), Image.NEAREST)

    view = Image.new("RGBA", (diameter, diameter), BACKGROUND)
    view.alpha_composite(zoomed)

    overlay = Image.new("RGBA", (diameter, diameter), (0, 0, 0, 0))
    d = ImageDraw.Draw(overlay)
    mid = diameter // 2
    d.line((mid, 0, mid, diameter), fill=CROSSHAIR, width=1)
    d.line((0, mid, diameter, mid), fill=CROSSHAIR, width=1)

    if show_readout:
        text = f"{cx:.0f}, {cy:.0f}"
        font = load_label_font(10)
        band_h = 16
        band_y = diameter - 8 - band_h
        d.rectangle((0, band_y, diameter, band_y + band_h), fill=READOUT_BG)
        d.text((mid, band_y + band_h // 2), text, fill=READOUT_FG, font=font, anchor="mm")
    view.alpha_composite(overlay)

    # clip to a circle and ring it
    mask = Image.new("L", (diameter, diameter), 0)
    ImageDraw.Draw(mask).ellipse((0, 0, diameter - 1, diameter - 1), fill=255)
    out = Image.new("RGBA", (diameter, diameter), (0, 0, 0, 0))
    out.paste(view, (0, 0), mask)
    ImageDraw.Draw(out).ellipse((1, 1, diameter - 2, diameter - 2), outline=RING, width=2)
    return out
