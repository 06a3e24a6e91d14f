from __future__ import annotations

import tkinter as tk
from tkinter import ttk
from typing import Callable

from .crop import Edge
from .scale_bar import format_number


class CropPanel:
    def __init__(
        self,
        owner,
        parent: tk.Widget,
        *,
        on_inset_commit: Callable[[str], None],
        on_units_toggle: Callable[[], None],
    ) -> None:
        self.owner = owner
        frame = ttk.LabelFrame(parent, text="Crop boundaries", padding=8)
        self.frame = frame
        frame.pack(side="top", fill="x")

        units = ttk.Frame(frame)
        units.pack(fill="x")
        ttk.Label(units, text="Insets in").pack(side="left")
        ttk.Radiobutton(units, text="px", value=False, variable=owner.var_use_percent, command=on_units_toggle).pack(side="left", padx=(8, 0))
        ttk.Radiobutton(units, text="%", value=True, variable=owner.var_use_percent, command=on_units_toggle).pack(side="left", padx=(4, 0))

        grid = ttk.Frame(frame)
        grid.pack(fill="x", pady=(6, 0))
        for col in range(4):
            grid.columnconfigure(col, weight=1)

        owner.ent_inset = {}
        layout = [
            ("Top", Edge.TOP, 0, 0),
            ("Bottom (footer)", Edge.BOTTOM, 0, 2),
            ("Left", Edge.LEFT, 1, 0),
            ("Right", Edge.RIGHT, 1, 2),
        ]
        for label, edge, row, col in layout:
            ttk.Label(grid, text=label).grid(row=row, column=col, sticky="w", pady=(4, 0))
            ent = ttk.Entry(grid, textvariable=owner.var_inset[edge.value], width=8)
            ent.grid(row=row, column=col + 1, sticky="w", padx=(6, 8), pady=(4, 0))
            ent.bind("<Return>", lambda _e, e=edge.value: on_inset_commit(e))
            ent.bind("<FocusOut>", lambda _e, e=edge.value: on_inset_commit(e))
            owner.ent_inset[edge.value] = ent


class CalibrationPanel:
    def __init__(
        self,
        owner,
        parent: tk.Widget,
        *,
        on_calibration_commit: Callable[[], None],
        on_reset_points: Callable[[], None],
    ) -> None:
        self.owner = owner
        frame = ttk.LabelFrame(parent, text="Calibration (original scale bar)", padding=8)
        self.frame = frame
        frame.pack(side="top", fill="x", pady=(8, 0))

        ttk.Label(frame, textvariable=owner.var_pixels, wraplength=320, justify="left").pack(fill="x")

        row = ttk.Frame(frame)
        row.pack(fill="x", pady=(6, 0))
        ttk.Label(row, text="Known distance").pack(side="left")
        ent_dist = ttk.Entry(row, textvariable=owner.var_known_distance, width=8)
        ent_dist.pack(side="left", padx=(6, 0))
        ttk.Label(row, text="unit").pack(side="left", padx=(10, 0))
        ent_unit = ttk.Entry(row, textvariable=owner.var_unit, width=6)
        ent_unit.pack(side="left", padx=(6, 0))
        for ent in (ent_dist, ent_unit):
            ent.bind("<Return>", lambda _e: on_calibration_commit())
            ent.bind("<FocusOut>", lambda _e: on_calibration_commit())

        ttk.Button(frame, text="Reset points", command=on_reset_points).pack(side="left", pady=(8, 0))


class Calibrator:
    def __init__(self, owner) -> None:
        object.__setattr__(self, "owner", owner)

    def __getattr__(self, name):
        return getattr(self.owner, name)

    def __setattr__(self, name, value) -> None:
        if name == "owner":
            object.__setattr__(self, name, value)
            return
        setattr(self.owner, name, value)

    def _on_inset_commit(self, edge: str) -> None:
        if self._suppress_field_events or not self.session.is_open:
            return
        self.session.edit_inset(Edge(edge), self.var_inset[edge].get())
        # clamped edits may leave the rect unchanged; show what was kept
        self._sync_fields()

    def _on_units_toggle(self) -> None:
        self.session.set_use_percent(bool(self.var_use_percent.get()))
        self._sync_fields()

    def _on_calibration_commit(self) -> None:
        if self._suppress_field_events or not self.session.is_open:
            return
        self.session.set_known_distance(self.var_known_distance.get())
        self.session.set_unit(self.var_unit.get().strip())
        # the known distance reads back as parsed (non-numbers become 0)
        cal = self.session.state.calibration
        self.var_known_distance.set(format_number(cal.known_distance))
        self._sync_fields()

    def _reset_points(self) -> None:
        self.session.reset_calibration()
        self._sync_fields()
