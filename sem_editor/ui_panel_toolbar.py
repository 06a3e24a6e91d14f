from __future__ import annotations

import tkinter as tk
from tkinter import ttk
from typing import Callable

from .model import Mode


class ToolbarPanel:
    def __init__(self, owner, parent: tk.Widget, *, on_mode_change: Callable[[], None]) -> None:
        self.owner = owner
        self.frame = ttk.Frame(parent)
        self.frame.pack(side="top", fill="x")

        ttk.Label(self.frame, text="Step:").pack(side="left")
        for lbl, val in [
            ("1. Crop & Calibrate", Mode.CALIBRATE.value),
            ("2. Finalize", Mode.EDIT.value),
        ]:
            ttk.Radiobutton(
                self.frame,
                text=lbl,
                value=val,
                variable=owner.mode,
                command=on_mode_change,
            ).pack(side="left", padx=(8, 0))
