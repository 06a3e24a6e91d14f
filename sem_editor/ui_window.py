from __future__ import annotations

import logging
import platform
import tkinter as tk
import traceback
from tkinter import messagebox, ttk
from typing import Callable, Optional

from PIL import Image

from .config import AppConfig
from .model import Mode
from .scale_bar import format_number
from .session import EditorSession
from .suggest import SemAnalysisResult
from .ui_panel_canvas import CanvasActor, CanvasPanel
from .ui_panel_crop import CalibrationPanel, Calibrator, CropPanel
from .ui_panel_scalebar import Exporter, ScaleBarPanel
from .ui_panel_toolbar import ToolbarPanel

log = logging.getLogger(__name__)


class EditorWindow(tk.Toplevel):
    def __init__(
        self,
        parent: tk.Tk,
        *,
        image: Image.Image,
        suggestion: Optional[SemAnalysisResult],
        config: AppConfig,
        source_name: str = "",
        on_reset: Callable[[], None],
    ):
        super().__init__(parent)
        self.title(f"SEM Scaler - {source_name}" if source_name else "SEM Scaler")
        self.geometry("1280x820")
        self.resizable(True, True)
        if platform.system().lower() != "windows":
            self.transient(parent)  # modeless: no grab_set
        self._on_reset = on_reset
        self.config_prefs = config

        self.session = EditorSession(image, suggestion, config=config)
        self._iw, self._ih = image.size

        self.mode = tk.StringVar(value=self.session.mode.value)
        self.var_fit_image = tk.BooleanVar(value=True)
        self.var_use_percent = tk.BooleanVar(value=False)

        st = self.session.state
        self.var_inset = {edge: tk.StringVar(value=self.session.inset_text(edge)) for edge in ("top", "bottom", "left", "right")}
        self.var_known_distance = tk.StringVar(value=format_number(st.calibration.known_distance))
        self.var_unit = tk.StringVar(value=st.calibration.unit)
        self.var_pixels = tk.StringVar(value="")

        s = st.settings
        self.var_show_bar = tk.BooleanVar(value=s.visible)
        self.var_bar_length = tk.StringVar(value=format_number(s.length_value))
        self.var_bar_unit = tk.StringVar(value=s.length_unit)
        self.var_corner = tk.StringVar(value=s.corner.value)
        self.var_font_size = tk.StringVar(value=str(s.label_font_size_px))
        self.var_bar_thickness = tk.StringVar(value=str(s.bar_thickness_px))
        self.var_padding = tk.StringVar(value=str(s.padding_px))

        self._transform = None
        self._photo = None
        self._mag_photo = None
        self._preview_img = None
        self._render_after_id = None
        self._suppress_field_events = False

        self.canvas_actor = CanvasActor(self)
        self.calibrator = Calibrator(self)
        self.exporter = Exporter(self)

        self._build_ui()
        self.session.subscribe(lambda _st: self._on_state_change())
        self.protocol("WM_DELETE_WINDOW", self._request_reset)
        self._on_state_change()

    # ---------- UI ----------
    def _build_ui(self):
        root = ttk.Frame(self, padding=8)
        root.pack(fill="both", expand=True)

        self._panes = ttk.Panedwindow(root, orient="horizontal")
        self._panes.pack(fill="both", expand=True)

        left = ttk.Frame(self._panes)
        right = ttk.Frame(self._panes, width=360)
        self._panes.add(left, weight=3)
        self._panes.add(right, weight=1)

        self.toolbar_panel = ToolbarPanel(self, left, on_mode_change=self._on_mode_change)
        self.canvas_panel = CanvasPanel(self, left, actor=self.canvas_actor)

        self._calibrate_frame = ttk.Frame(right)
        self.crop_panel = CropPanel(
            self,
            self._calibrate_frame,
            on_inset_commit=self.calibrator._on_inset_commit,
            on_units_toggle=self.calibrator._on_units_toggle,
        )
        self.calibration_panel = CalibrationPanel(
            self,
            self._calibrate_frame,
            on_calibration_commit=self.calibrator._on_calibration_commit,
            on_reset_points=self.calibrator._reset_points,
        )

        self._finalize_frame = ttk.Frame(right)
        self.scalebar_panel = ScaleBarPanel(
            self,
            self._finalize_frame,
            on_settings_commit=self.exporter._on_settings_commit,
            on_pick_color=self.exporter._pick_color,
            on_save_defaults=self.exporter._save_defaults,
        )

        bottom = ttk.Frame(right)
        bottom.pack(side="bottom", fill="x", pady=(8, 0))
        self.btn_export = ttk.Button(bottom, text="Export image...", command=self.exporter._export_image)
        self.btn_export.pack(side="top", fill="x")
        ttk.Button(bottom, text="Start over with a new image", command=self._request_reset).pack(side="top", fill="x", pady=(8, 0))

        self._show_mode_panels()

    def _show_mode_panels(self) -> None:
        self._calibrate_frame.pack_forget()
        self._finalize_frame.pack_forget()
        if self.session.mode is Mode.CALIBRATE:
            self._calibrate_frame.pack(side="top", fill="x")
        else:
            self._finalize_frame.pack(side="top", fill="x")

    # ---------- state sync ----------
    def _on_state_change(self) -> None:
        """Re-render and refresh read-outs after any accepted edit."""
        self._sync_fields()
        self.canvas_actor._render_image()
        self.canvas_actor._update_tip()
        self.btn_export.state(["!disabled"] if self.session.can_export else ["disabled"])

    def _sync_fields(self) -> None:
        st = self.session.state
        if st is None:
            return
        self._suppress_field_events = True
        try:
            for edge, var in self.var_inset.items():
                var.set(self.session.inset_text(edge))
            pd = st.calibration.pixel_distance
            if pd > 0:
                ppu = st.calibration.pixels_per_unit
                ratio = f"{ppu:.3f} px/{st.calibration.unit}" if st.calibration.is_valid else "invalid known distance"
                self.var_pixels.set(f"Measured: {pd:.1f} px  ({ratio})")
            else:
                self.var_pixels.set("Measured: not set - click two points on the old scale bar")
        finally:
            self._suppress_field_events = False

    def _on_mode_change(self) -> None:
        try:
            self.session.set_mode(Mode(self.mode.get()))
        except Exception:
            self._report_error("Mode change failed")
            return
        self._show_mode_panels()
        self.canvas_actor._clear_magnifier()
        self.canvas_actor._update_tip()

    def _on_fit_toggle(self):
        self.canvas_actor._render_image()

    # ---------- lifecycle ----------
    def _request_reset(self) -> None:
        if not messagebox.askyesno("Start over", "Discard this image and all edits?", parent=self):
            return
        self.session.close()
        cb = self._on_reset
        self.destroy()
        if cb is not None:
            cb()

    def _show_info(self, title: str, message: str) -> None:
        messagebox.showinfo(title, message, parent=self)

    def _report_error(self, title: str) -> None:
        log.error("%s\n%s", title, traceback.format_exc())
        messagebox.showerror(title, "See the log for details.", parent=self)
