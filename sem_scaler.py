from __future__ import annotations

import io
import logging
import sys
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime
from pathlib import Path
from typing import Optional

import tkinter as tk
from tkinter import ttk, filedialog, messagebox

import mss
from PIL import Image, ImageTk

from sem_editor.config import AppConfig, load_config
from sem_editor.session import SuggestionGate
from sem_editor.suggest import DEFAULT_SUGGESTION, OcrSettings, SemAnalysisResult, analyze_sem_image, ensure_tesseract_configured
from sem_editor.ui_window import EditorWindow

log = logging.getLogger("sem_scaler")

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
IMAGE_FILETYPES = [
    ("Images", "*.png *.jpg *.jpeg *.tif *.tiff *.bmp"),
    ("All files", "*.*"),
]


def setup_logging(level: str = "INFO") -> logging.Logger:
    """
    Log to stderr and to a daily file in the user's home directory.
    """
    log_file = Path.home() / f".sem_scaler-{datetime.now().strftime('%Y%m%d')}.log"
    handlers = [logging.StreamHandler(sys.stderr)]
    try:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    except OSError:
        # read-only home: stderr only
        pass
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers,
    )
    return log


# -----------------------------
# Screen snip
# -----------------------------

class SnipOverlay(tk.Toplevel):
    """Full-screen overlay: drag a rectangle to take that part of the screenshot."""

    def __init__(self, parent: tk.Tk, screenshot: Image.Image, origin, on_snip):
        super().__init__(parent)
        self.on_snip = on_snip
        self.screenshot = screenshot

        self.overrideredirect(True)
        self.attributes("-topmost", True)

        vleft, vtop = origin
        self.width, self.height = screenshot.size
        self.geometry(f"{self.width}x{self.height}+{vleft}+{vtop}")

        self.canvas = tk.Canvas(self, width=self.width, height=self.height, highlightthickness=0, cursor="crosshair")
        self.canvas.pack(fill="both", expand=True)

        self.photo = ImageTk.PhotoImage(screenshot)
        self.canvas.create_image(0, 0, image=self.photo, anchor="nw")

        # everything outside the selection is dimmed by four bands
        self.dim_ids = [
            self.canvas.create_rectangle(0, 0, 0, 0, fill="black", stipple="gray50", outline="")
            for _ in range(4)
        ]

        self.start = None
        self.rect_id = None

        self.canvas.bind("<ButtonPress-1>", self._on_press)
        self.canvas.bind("<B1-Motion>", self._on_drag)
        self.canvas.bind("<ButtonRelease-1>", self._on_release)
        self.canvas.bind("<ButtonPress-3>", lambda _e: self.destroy())
        self.bind("<Escape>", lambda _e: self.destroy())
        self.focus_force()

    def _selection(self, event):
        x = self.canvas.canvasx(event.x)
        y = self.canvas.canvasy(event.y)
        sx, sy = self.start
        return min(sx, x), min(sy, y), max(sx, x), max(sy, y)

    def _on_press(self, event):
        self.start = (self.canvas.canvasx(event.x), self.canvas.canvasy(event.y))
        if self.rect_id is not None:
            self.canvas.delete(self.rect_id)
        self.rect_id = self.canvas.create_rectangle(*self.start, *self.start, outline="#3b82f6", width=2)

    def _on_drag(self, event):
        if self.rect_id is None:
            return
        x1, y1, x2, y2 = self._selection(event)
        self.canvas.coords(self.rect_id, x1, y1, x2, y2)
        bands = [
            (0, 0, self.width, y1),
            (0, y2, self.width, self.height),
            (0, y1, x1, y2),
            (x2, y1, self.width, y2),
        ]
        for rid, box in zip(self.dim_ids, bands):
            self.canvas.coords(rid, *box)

    def _on_release(self, event):
        if self.rect_id is None:
            return
        x1, y1, x2, y2 = (int(v) for v in self._selection(event))
        if (x2 - x1) < 10 or (y2 - y1) < 10:
            self.destroy()
            return

        cropped = self.screenshot.crop((x1, y1, x2, y2))
        # destroy first so the grab is released before the editor opens
        cb = self.on_snip
        master = self.master
        self.destroy()
        master.after(1, lambda: cb(cropped))


def grab_screen():
    with mss.mss() as sct:
        mon0 = sct.monitors[0]
        shot = sct.grab(mon0)
    img = Image.frombytes("RGB", (shot.width, shot.height), shot.rgb)
    return img, (int(mon0.get("left", 0)), int(mon0.get("top", 0)))


# -----------------------------
# Upload stage
# -----------------------------

class SemScalerApp(tk.Tk):
    def __init__(self, config: Optional[AppConfig] = None):
        super().__init__()
        self.title("SEM Scaler")
        self.geometry("560x240")
        self.prefs = config or load_config()

        self.gate = SuggestionGate()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="footer-analysis")
        self.editor: Optional[EditorWindow] = None

        self._build_ui()
        self.protocol("WM_DELETE_WINDOW", self._quit)

        if self.prefs.auto_analyze:
            try:
                ensure_tesseract_configured(self.prefs.tesseract_cmd)
            except Exception as e:
                log.warning("%s", e)
                self.set_status("Tesseract not found: scale text will not be read automatically.")

    def _build_ui(self):
        body = ttk.Frame(self, padding=16)
        body.pack(fill="both", expand=True)

        ttk.Label(
            body,
            text="Load an SEM micrograph to crop off the instrument footer and add a clean scale bar.",
            wraplength=500,
            justify="left",
        ).pack(side="top", anchor="w")

        buttons = ttk.Frame(body)
        buttons.pack(side="top", fill="x", pady=(16, 0))
        self.btn_open = ttk.Button(buttons, text="Open image…", command=self.open_image)
        self.btn_open.pack(side="left")
        self.btn_snip = ttk.Button(buttons, text="Snip from screen", command=self.begin_snip)
        self.btn_snip.pack(side="left", padx=(8, 0))
        self.btn_cancel = ttk.Button(buttons, text="Cancel analysis", command=self.cancel_analysis)
        self.btn_cancel.pack(side="left", padx=(8, 0))

        self.status_var = tk.StringVar(value="Ready.")
        ttk.Label(body, textvariable=self.status_var, wraplength=500, justify="left").pack(side="top", anchor="w", pady=(16, 0))

        self._set_busy(False)

    def set_status(self, msg: str):
        self.status_var.set(msg)
        self.update_idletasks()

    def _set_busy(self, busy: bool):
        """Busy while analysing or while an editor is open."""
        self.btn_open.state(["disabled"] if busy else ["!disabled"])
        self.btn_snip.state(["disabled"] if busy else ["!disabled"])
        self.btn_cancel.state(["!disabled"] if self.gate.pending else ["disabled"])

    # ---------- sources ----------

    def open_image(self, path: Optional[str] = None):
        if path is None:
            path = filedialog.askopenfilename(parent=self, title="Open SEM image", filetypes=IMAGE_FILETYPES)
        if not path:
            return
        try:
            data = Path(path).read_bytes()
            image = self._decode(data)
        except Exception as e:
            log.error("Could not open %s", path, exc_info=True)
            messagebox.showerror("Open failed", str(e), parent=self)
            return
        self.start_analysis(data, image, Path(path).name)

    def begin_snip(self):
        self.withdraw()
        # let the window manager finish hiding us before grabbing
        self.after(200, self._snip)

    def _snip(self):
        try:
            screenshot, origin = grab_screen()
        except Exception as e:
            log.error("Screen capture failed", exc_info=True)
            self.deiconify()
            messagebox.showerror("Screen capture failed", str(e), parent=self)
            return

        def on_snip(cropped: Image.Image):
            buf = io.BytesIO()
            cropped.save(buf, format="PNG")
            self.start_analysis(buf.getvalue(), cropped, "screen snip")

        overlay = SnipOverlay(self, screenshot, origin, on_snip)

        def restore(event=None):
            if event is not None and event.widget is not overlay:
                return
            self.deiconify()

        overlay.bind("<Destroy>", restore)

    @staticmethod
    def _decode(data: bytes) -> Image.Image:
        with Image.open(io.BytesIO(data)) as im:
            im.load()
            return im.copy()

    # ---------- suggestion ----------

    def start_analysis(self, data: bytes, image: Image.Image, name: str):
        if not self.prefs.auto_analyze:
            self.open_editor(image, DEFAULT_SUGGESTION, name)
            return
        token = self.gate.begin()
        future = self._executor.submit(analyze_sem_image, data, OcrSettings.from_config(self.prefs))
        self._set_busy(True)
        self.set_status(f"Analysing {name}…")
        self.after(100, self._poll_analysis, token, future, image, name)

    def _poll_analysis(self, token: int, future: Future, image: Image.Image, name: str):
        if not future.done():
            if self.gate.pending:
                self.after(100, self._poll_analysis, token, future, image, name)
            return
        if not self.gate.accept(token):
            return
        # analyze_sem_image never raises
        suggestion: SemAnalysisResult = future.result()
        log.info(
            "Suggestion for %s: crop y=%d, scale text=%r",
            name, suggestion.suggested_crop_y, suggestion.detected_scale_text,
        )
        self.open_editor(image, suggestion, name)

    def cancel_analysis(self):
        self.gate.cancel()
        self._set_busy(False)
        self.set_status("Analysis cancelled.")

    # ---------- editor ----------

    def open_editor(self, image: Image.Image, suggestion: SemAnalysisResult, name: str):
        try:
            self.editor = EditorWindow(
                self,
                image=image,
                suggestion=suggestion,
                config=self.prefs,
                source_name=name,
                on_reset=self._on_editor_reset,
            )
        except Exception as e:
            log.error("Editor failed to open", exc_info=True)
            messagebox.showerror("Editor failed to open", str(e), parent=self)
            self.editor = None
            self._set_busy(False)
            self.set_status("Ready.")
            return
        self._set_busy(True)
        self.set_status(f"Editing {name}.")

    def _on_editor_reset(self):
        # any analysis still running belongs to the discarded image
        self.gate.cancel()
        if self.editor is not None:
            self.prefs = self.editor.config_prefs
        self.editor = None
        self._set_busy(False)
        self.set_status("Ready.")

    def _quit(self):
        self.gate.cancel()
        self._executor.shutdown(wait=False, cancel_futures=True)
        self.destroy()


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    cfg = load_config()
    setup_logging(cfg.log_level)
    app = SemScalerApp(cfg)
    if argv:
        app.after(50, lambda: app.open_image(argv[0]))
    app.mainloop()


if __name__ == "__main__":
    main()
