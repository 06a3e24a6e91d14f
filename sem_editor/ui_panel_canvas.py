from __future__ import annotations

import tkinter as tk
from tkinter import ttk
from typing import Optional, Tuple

from PIL import Image, ImageTk

from .geometry import DisplayTransform
from .model import Mode


class CanvasPanel:
    def __init__(self, owner, parent: tk.Widget, *, actor) -> None:
        self.owner = owner
        self.actor = actor

        frame = ttk.Frame(parent)
        self.frame = frame
        frame.pack(side="top", fill="both", expand=True)

        loupe_frm = ttk.Frame(frame)
        loupe_frm.pack(side="top", fill="x", pady=(8, 0))
        size = int(owner.config_prefs.magnifier_size)
        owner.loupe = tk.Canvas(loupe_frm, width=size, height=size, highlightthickness=0, background="#0f172a")
        owner.loupe.pack(side="left")
        ttk.Checkbutton(
            loupe_frm,
            text="Fit",
            variable=owner.var_fit_image,
            command=owner._on_fit_toggle,
        ).pack(side="left", padx=(10, 0), anchor="n")
        owner.tip_var = tk.StringVar(value="")
        owner.tip_label = ttk.Label(loupe_frm, textvariable=owner.tip_var, wraplength=700, justify="left")
        owner.tip_label.pack(side="left", padx=(10, 0), fill="x", expand=True, anchor="n")

        owner.canvas = tk.Canvas(frame, background="#1e293b", highlightthickness=1, highlightbackground="#333")
        owner.canvas.pack(side="bottom", fill="both", expand=True, pady=(8, 0))
        owner.canvas.bind("<Configure>", actor._on_canvas_configure)
        owner.canvas.bind("<Button-1>", actor._on_click)
        owner.canvas.bind("<Motion>", actor._on_motion)
        owner.canvas.bind("<Leave>", actor._on_canvas_leave)


class CanvasActor:
    def __init__(self, owner) -> None:
        object.__setattr__(self, "owner", owner)

    def __getattr__(self, name):
        return getattr(self.owner, name)

    def __setattr__(self, name, value) -> None:
        if name == "owner":
            object.__setattr__(self, name, value)
            return
        setattr(self.owner, name, value)

    def _on_canvas_configure(self, _evt=None):
        # coalesce bursts of resize events into one render
        if getattr(self, "_render_after_id", None) is not None:
            try:
                self.after_cancel(self._render_after_id)
            except Exception:
                pass
        self._render_after_id = self.after(30, self._render_image)

    def _current_transform(self) -> DisplayTransform:
        # layout can change between events; always measure again
        self.canvas.update_idletasks()
        return DisplayTransform.fit(
            self.canvas.winfo_width(),
            self.canvas.winfo_height(),
            self._iw,
            self._ih,
            upscale=bool(self.var_fit_image.get()),
        )

    def _render_image(self):
        self._render_after_id = None
        if not self.session.is_open:
            return
        self._preview_img = self.session.preview()
        self._transform = self._current_transform()
        disp = self._preview_img.resize(self._transform.display_size, Image.BILINEAR)
        self._photo = ImageTk.PhotoImage(disp)
        self.canvas.delete("all")
        self.canvas.create_image(self._transform.origin_x, self._transform.origin_y, image=self._photo, anchor="nw", tags=("img",))

    # ---------- coordinate transforms ----------

    def _to_image_px(self, cx: float, cy: float) -> Tuple[float, float]:
        self._transform = self._current_transform()
        return self._transform.to_native(self.canvas.canvasx(cx), self.canvas.canvasy(cy))

    # ---------- events ----------

    def _on_click(self, event):
        if self.session.mode is not Mode.CALIBRATE:
            return
        xpx, ypx = self._to_image_px(event.x, event.y)
        self.session.click((xpx, ypx))

    def _on_motion(self, event):
        if self.session.mode is not Mode.CALIBRATE:
            return
        self.session.move_cursor(self._to_image_px(event.x, event.y))
        self._draw_magnifier()

    def _on_canvas_leave(self, _event):
        self.session.move_cursor(None)
        self._clear_magnifier()

    # ---------- Magnifier ----------

    def _draw_magnifier(self) -> None:
        view: Optional[Image.Image] = self.session.magnifier()
        if view is None:
            self._clear_magnifier()
            return
        self._mag_photo = ImageTk.PhotoImage(view)
        self.loupe.delete("all")
        self.loupe.create_image(0, 0, image=self._mag_photo, anchor="nw")

    def _clear_magnifier(self) -> None:
        self.loupe.delete("all")
        self._mag_photo = None

    def _update_tip(self):
        mode = self.session.mode
        if mode is Mode.CALIBRATE:
            picker = self.session.state.picker
            if picker.start is None:
                step = "Click the first end of the original scale bar."
            elif picker.end is None:
                step = "Click the other end of the original scale bar."
            else:
                step = "Calibrated. Clicking again starts a new measurement."
            msg = (
                "Crop & Calibrate: hover the image to inspect it in the magnifier. "
                "Set the crop insets to remove the instrument footer, then enter the old bar's "
                "length and unit. " + step
            )
        elif mode is Mode.EDIT:
            if self.session.can_export:
                msg = "Finalize: adjust the new scale bar and export. The preview shows the crop and bar as they will be saved."
            else:
                msg = "Finalize: no calibration yet. Go back to step 1 and click two points on the old scale bar to enable the bar and export."
        else:
            msg = ""
        self.tip_var.set(msg)
