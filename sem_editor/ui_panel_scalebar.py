from __future__ import annotations

import tkinter as tk
from dataclasses import replace
from pathlib import Path
from tkinter import colorchooser, filedialog, ttk
from typing import Callable

from .compositor import ExportBlockedError
from .config import save_config
from .scale_bar import Corner, format_number


class ScaleBarPanel:
    def __init__(
        self,
        owner,
        parent: tk.Widget,
        *,
        on_settings_commit: Callable[[], None],
        on_pick_color: Callable[[str], None],
        on_save_defaults: Callable[[], None],
    ) -> None:
        self.owner = owner
        frame = ttk.LabelFrame(parent, text="New scale bar", padding=8)
        self.frame = frame
        frame.pack(side="top", fill="x")

        ttk.Checkbutton(frame, text="Show scale bar", variable=owner.var_show_bar, command=on_settings_commit).pack(anchor="w")

        grid = ttk.Frame(frame)
        grid.pack(fill="x", pady=(6, 0))
        for col in range(4):
            grid.columnconfigure(col, weight=1)

        entries = [
            ("Length", owner.var_bar_length, 0, 0),
            ("Unit", owner.var_bar_unit, 0, 2),
            ("Font size", owner.var_font_size, 1, 0),
            ("Bar height", owner.var_bar_thickness, 1, 2),
            ("Padding", owner.var_padding, 2, 0),
        ]
        for label, var, row, col in entries:
            ttk.Label(grid, text=label).grid(row=row, column=col, sticky="w", pady=(4, 0))
            ent = ttk.Entry(grid, textvariable=var, width=8)
            ent.grid(row=row, column=col + 1, sticky="w", padx=(6, 8), pady=(4, 0))
            ent.bind("<Return>", lambda _e: on_settings_commit())
            ent.bind("<FocusOut>", lambda _e: on_settings_commit())

        ttk.Label(grid, text="Position").grid(row=3, column=0, sticky="w", pady=(6, 0))
        cmb = ttk.Combobox(
            grid,
            textvariable=owner.var_corner,
            state="readonly",
            width=12,
            values=[c.value for c in Corner],
        )
        cmb.grid(row=3, column=1, columnspan=3, sticky="w", padx=(6, 0), pady=(6, 0))
        cmb.bind("<<ComboboxSelected>>", lambda _e: on_settings_commit())

        colors = ttk.Frame(frame)
        colors.pack(fill="x", pady=(8, 0))
        owner.swatch = {}
        for label, key in [("Text color", "label_color"), ("Bar color", "bar_color")]:
            ttk.Label(colors, text=label).pack(side="left")
            sw = tk.Label(colors, width=3, relief="sunken", background=getattr(owner.session.state.settings, key))
            sw.pack(side="left", padx=(4, 4))
            ttk.Button(colors, text="...", width=3, command=lambda k=key: on_pick_color(k)).pack(side="left", padx=(0, 10))
            owner.swatch[key] = sw

        ttk.Button(frame, text="Save as defaults", command=on_save_defaults).pack(anchor="w", pady=(8, 0))


class Exporter:
    def __init__(self, owner) -> None:
        object.__setattr__(self, "owner", owner)

    def __getattr__(self, name):
        return getattr(self.owner, name)

    def __setattr__(self, name, value) -> None:
        if name == "owner":
            object.__setattr__(self, name, value)
            return
        setattr(self.owner, name, value)

    def _on_settings_commit(self) -> None:
        if self._suppress_field_events or not self.session.is_open:
            return
        self.session.update_settings(
            visible=bool(self.var_show_bar.get()),
            length_value=self.var_bar_length.get(),
            length_unit=self.var_bar_unit.get().strip(),
            corner=self.var_corner.get(),
            label_font_size_px=self.var_font_size.get(),
            bar_thickness_px=self.var_bar_thickness.get(),
            padding_px=self.var_padding.get(),
        )
        s = self.session.state.settings
        self.var_bar_length.set(format_number(s.length_value))
        self.var_font_size.set(str(s.label_font_size_px))
        self.var_bar_thickness.set(str(s.bar_thickness_px))
        self.var_padding.set(str(s.padding_px))

    def _pick_color(self, key: str) -> None:
        current = getattr(self.session.state.settings, key)
        _rgb, hex_color = colorchooser.askcolor(color=current, parent=self.owner, title="Choose color")
        if not hex_color:
            return
        self.session.update_settings(**{key: hex_color})
        self.swatch[key].configure(background=hex_color)

    def _save_defaults(self) -> None:
        s = self.session.state.settings
        cal = self.session.state.calibration
        cfg = replace(
            self.config_prefs,
            bar_length=s.length_value,
            bar_unit=s.length_unit,
            bar_thickness_px=s.bar_thickness_px,
            label_font_size_px=s.label_font_size_px,
            label_color=s.label_color,
            bar_color=s.bar_color,
            corner=s.corner.value,
            padding_px=s.padding_px,
            known_distance=cal.known_distance,
            unit=cal.unit,
        )
        try:
            path = save_config(cfg)
        except Exception:
            self._report_error("Save failed")
            return
        self.config_prefs = cfg
        self._show_info("Defaults saved", f"Scale bar defaults saved to {path.name}")

    def _export_image(self) -> None:
        if not self.session.can_export:
            # the button is disabled in this state; keyboard activation can still get here
            self._show_info("Export", "Calibrate first: click two points on the original scale bar.")
            return

        default_name = self.config_prefs.export_filename
        path = filedialog.asksaveasfilename(
            parent=self.owner,
            initialfile=default_name,
            defaultextension=Path(default_name).suffix or ".png",
            filetypes=[("PNG image", "*.png"), ("TIFF image", "*.tif *.tiff"), ("All files", "*.*")],
        )
        if not path:
            return
        try:
            saved = self.session.export_to(path)
        except ExportBlockedError as e:
            self._show_info("Export", str(e))
            return
        except Exception:
            self._report_error("Export failed")
            return
        self._show_info("Export", f"Saved:\n{saved}")
