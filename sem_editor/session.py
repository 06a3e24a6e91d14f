from __future__ import annotations

import logging
import threading
from typing import Callable, List, Optional, Tuple

from PIL import Image

from .calibration import parse_scale_text
from .compositor import can_export, render_export, render_preview, save_export, to_display_rgb
from .config import AppConfig
from .crop import Edge, edit_inset, format_inset, initial_crop, inset_of, parse_number
from .magnifier import render_magnifier
from .model import EditorState, Mode
from .scale_bar import MAX_BAR_PX, MAX_FONT_SIZE_PX
from .suggest import SemAnalysisResult

log = logging.getLogger(__name__)


class EditorSession:
    """
    One loaded image and everything edited on it.

    State lives in an immutable EditorState; every accepted edit swaps in a new
    snapshot and notifies listeners so the host can re-render.
    """

    def __init__(self, image: Image.Image, suggestion: Optional[SemAnalysisResult] = None, *, config: Optional[AppConfig] = None):
        cfg = config or AppConfig()
        self.config = cfg
        self.use_percent = False
        self.cursor: Optional[Tuple[float, float]] = None
        self._listeners: List[Callable[[EditorState], None]] = []

        iw, ih = image.size
        # 8-bit RGB view (16-bit sources stretched) shared by preview, loupe and export
        self.display_image: Optional[Image.Image] = to_display_rgb(image)
        suggestion = suggestion or SemAnalysisResult()
        crop = initial_crop(iw, ih, suggestion.suggested_crop_y)

        calibration = cfg.calibration()
        settings = cfg.scale_bar_settings()
        seeded = parse_scale_text(suggestion.detected_scale_text)
        if seeded is not None:
            value, unit = seeded
            calibration = calibration.with_unit(unit).with_known_distance(value)
            settings = settings.updated(length_value=value / 2.0, length_unit=unit)
            log.info("Seeded calibration from footer text %r", suggestion.detected_scale_text)
        elif suggestion.detected_scale_text:
            log.info("Could not parse footer text %r; calibration left unseeded", suggestion.detected_scale_text)

        self.state: Optional[EditorState] = EditorState(
            image=image,
            crop=crop,
            calibration=calibration,
            settings=settings,
            mode=Mode.CALIBRATE,
        )

    # ---------- state plumbing ----------

    @property
    def is_open(self) -> bool:
        return self.state is not None

    @property
    def mode(self) -> Mode:
        return self.state.mode if self.state is not None else Mode.UPLOAD

    def subscribe(self, listener: Callable[[EditorState], None]) -> None:
        self._listeners.append(listener)

    def _commit(self, new_state: EditorState) -> bool:
        if self.state is None or new_state == self.state:
            return False
        self.state = new_state
        for cb in list(self._listeners):
            cb(new_state)
        return True

    def close(self) -> None:
        """Drop the image and all edits; the session is unusable afterwards."""
        self.state = None
        self.display_image = None
        self.cursor = None
        self._listeners.clear()

    # ---------- mode ----------

    def set_mode(self, mode: Mode) -> bool:
        mode = Mode(mode)
        if mode is Mode.UPLOAD:
            raise ValueError("Leaving the editor goes through close(), not set_mode()")
        if mode is not Mode.CALIBRATE:
            self.cursor = None
        return self._commit(self.state.evolve(mode=mode))

    # ---------- calibration ----------

    def click(self, point: Tuple[float, float]) -> bool:
        """Calibration click in native pixels; ignored outside CALIBRATE."""
        if self.mode is not Mode.CALIBRATE:
            return False
        picker = self.state.picker.click(point)
        # a restart (third click) discards the measured distance
        calibration = self.state.calibration.with_pixels(picker.pixel_distance)
        return self._commit(self.state.evolve(picker=picker, calibration=calibration))

    def reset_calibration(self) -> bool:
        return self._commit(self.state.evolve(
            picker=self.state.picker.reset(),
            calibration=self.state.calibration.with_pixels(0.0),
        ))

    def set_known_distance(self, text) -> bool:
        return self._commit(self.state.evolve(calibration=self.state.calibration.with_known_distance(text)))

    def set_unit(self, unit: str) -> bool:
        return self._commit(self.state.evolve(calibration=self.state.calibration.with_unit(unit)))

    @property
    def pixels_per_unit(self) -> float:
        return self.state.calibration.pixels_per_unit

    # ---------- crop ----------

    def edit_inset(self, edge: Edge, text) -> bool:
        crop = edit_inset(self.state.crop, edge, text, self.state.image_size, use_percent=self.use_percent)
        return self._commit(self.state.evolve(crop=crop))

    def inset(self, edge: Edge) -> int:
        return inset_of(self.state.crop, edge, self.state.image_size)

    def inset_text(self, edge: Edge) -> str:
        iw, ih = self.state.image_size
        dim = ih if Edge(edge) in (Edge.TOP, Edge.BOTTOM) else iw
        return format_inset(self.inset(edge), dim, self.use_percent)

    def set_use_percent(self, flag: bool) -> None:
        # view-only; stored crop stays in pixels
        self.use_percent = bool(flag)

    # ---------- scale bar ----------

    def update_settings(self, **changes) -> bool:
        for key in ("length_value",):
            if key in changes:
                changes[key] = parse_number(changes[key])
        limits = {
            "bar_thickness_px": MAX_BAR_PX,
            "label_font_size_px": MAX_FONT_SIZE_PX,
            "padding_px": MAX_BAR_PX,
        }
        for key, hi in limits.items():
            if key in changes:
                changes[key] = max(0, min(int(parse_number(changes[key])), hi))
        return self._commit(self.state.evolve(settings=self.state.settings.updated(**changes)))

    # ---------- rendering ----------

    def move_cursor(self, point: Optional[Tuple[float, float]]) -> None:
        self.cursor = point if self.mode is Mode.CALIBRATE else None

    def preview(self) -> Image.Image:
        return render_preview(self.state, self.display_image)

    def magnifier(self) -> Optional[Image.Image]:
        if self.mode is not Mode.CALIBRATE or self.cursor is None:
            return None
        return render_magnifier(
            self.display_image,
            self.cursor,
            diameter=self.config.magnifier_size,
            zoom=self.config.magnifier_zoom,
        )

    @property
    def can_export(self) -> bool:
        return self.state is not None and can_export(self.state)

    def export(self) -> Image.Image:
        return render_export(self.state, self.display_image)

    def export_to(self, path):
        return save_export(self.export(), path)


class SuggestionGate:
    """
    Hands out a token per analysis request so that results arriving after the
    session was discarded, or superseded by a newer request, are dropped.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._current = 0
        self._active = False

    def begin(self) -> int:
        with self._lock:
            self._current += 1
            self._active = True
            return self._current

    def cancel(self) -> None:
        with self._lock:
            self._current += 1
            self._active = False

    def accept(self, token: int) -> bool:
        """True once for the live token; stale or cancelled tokens are refused."""
        with self._lock:
            if not self._active or token != self._current:
                log.info("Dropping stale footer analysis result (token %d)", token)
                return False
            self._active = False
            return True

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._active
