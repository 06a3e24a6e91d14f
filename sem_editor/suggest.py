"""
Footer analysis for freshly loaded micrographs.

Proposes where the instrument's information bar starts (the crop line) and reads
the label of the old scale bar from it. The result is exchanged as a small JSON
payload::

    {"suggestedCropY": 700, "detectedScaleText": "10 µm"}

and whatever goes wrong along the way (no Tesseract, unreadable image, a
malformed payload) the caller gets the default suggestion: crop line 0 and no
text.
"""
from __future__ import annotations

import io
import json
import logging
import os
import platform
import re
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import numpy as np
import pytesseract
from PIL import Image, ImageFilter, ImageOps

from .crop import MIN_CROP_SIZE
from .cv_utils import pil_to_gray, row_gradient_profile
from .scale_bar import format_number

log = logging.getLogger(__name__)

# footer search is limited to the lower part of the image
FOOTER_SEARCH_FRACTION = 0.4
# mean |d/dy| a row transition needs before it counts as a footer edge
FOOTER_MIN_STRENGTH = 12.0

_SCALE_TEXT_RE = re.compile(
    r"(?<![\d.,])(\d+(?:[.,]\d+)?)\s*(nm|µm|μm|um|mm|cm|Å|m)(?![A-Za-z])",
)
_UNIT_ALIASES = {"um": "µm", "μm": "µm"}


@dataclass(frozen=True)
class SemAnalysisResult:
    suggested_crop_y: int = 0
    detected_scale_text: Optional[str] = None


DEFAULT_SUGGESTION = SemAnalysisResult()


@dataclass(frozen=True)
class OcrSettings:
    lang: str = "eng"
    psm: int = 6
    oem: int = 3
    tesseract_cmd: str = ""

    @classmethod
    def from_config(cls, cfg) -> "OcrSettings":
        return cls(lang=cfg.ocr_lang, psm=int(cfg.ocr_psm), tesseract_cmd=cfg.tesseract_cmd)

    def build_tesseract_config(self) -> str:
        return f"--oem {int(self.oem)} --psm {int(self.psm)}"


# -----------------------------
# Tesseract discovery
# -----------------------------

def _candidate_tesseract_paths() -> List[str]:
    sysname = platform.system().lower()
    candidates: List[Path] = []
    if "windows" in sysname:
        for var in ("ProgramFiles", "ProgramFiles(x86)", "LocalAppData"):
            base = os.environ.get(var)
            if base:
                candidates.append(Path(base) / "Tesseract-OCR" / "tesseract.exe")
                candidates.append(Path(base) / "Programs" / "Tesseract-OCR" / "tesseract.exe")
    elif "darwin" in sysname:
        candidates += [Path("/opt/homebrew/bin/tesseract"), Path("/usr/local/bin/tesseract")]
    else:
        candidates += [Path("/usr/bin/tesseract"), Path("/usr/local/bin/tesseract"), Path("/snap/bin/tesseract")]
    return [str(p) for p in candidates]


def _resolve_executable(cmd: str) -> Optional[str]:
    if not cmd:
        return None
    p = Path(cmd)
    if p.is_file():
        return str(p.resolve())
    return shutil.which(cmd)


def ensure_tesseract_configured(cmd: str = "") -> str:
    """
    Point pytesseract at a Tesseract binary and return its path.

    Resolution order: the explicit command, TESSERACT_CMD, PATH, then the usual
    install locations for this OS.
    """
    for explicit in (cmd.strip(), os.environ.get("TESSERACT_CMD", "").strip()):
        if explicit:
            resolved = _resolve_executable(explicit)
            if not resolved:
                raise RuntimeError(f"Tesseract command could not be resolved: {explicit}")
            pytesseract.pytesseract.tesseract_cmd = resolved
            return resolved

    resolved = _resolve_executable("tesseract")
    if not resolved:
        resolved = next((c for c in _candidate_tesseract_paths() if Path(c).is_file()), None)
    if not resolved:
        raise RuntimeError(
            "Tesseract OCR engine not found. Install it and add it to PATH, "
            "or set TESSERACT_CMD to the tesseract executable."
        )
    pytesseract.pytesseract.tesseract_cmd = resolved
    return resolved


# -----------------------------
# Footer line
# -----------------------------

def detect_footer_y(image: Image.Image) -> int:
    """
    Row where the information bar starts, or 0 when none stands out.

    Instrument footers are a full-width band, so their top edge is the row with
    the strongest mean vertical gradient in the lower part of the image.
    """
    gray = pil_to_gray(image)
    h = gray.shape[0]
    if h < 2 * MIN_CROP_SIZE:
        return 0
    prof = row_gradient_profile(gray)
    lo = max(MIN_CROP_SIZE, int(h * (1.0 - FOOTER_SEARCH_FRACTION)))
    window = prof[lo:]
    if window.size == 0:
        return 0
    r = int(np.argmax(window))
    strength = float(window[r])
    if strength < FOOTER_MIN_STRENGTH:
        log.debug("No footer edge found (best row %d, strength %.1f)", lo + r, strength)
        return 0
    return lo + r


# -----------------------------
# Scale text
# -----------------------------

def preprocess_for_ocr(img: Image.Image) -> Image.Image:
    g = ImageOps.grayscale(img.convert("RGB"))
    w, h = g.size
    g = g.resize((max(1, w * 2), max(1, h * 2)), Image.Resampling.LANCZOS)
    g = g.filter(ImageFilter.MedianFilter(size=3))
    g = ImageOps.autocontrast(g)
    # footers are usually light text on dark; Tesseract prefers dark on light
    if float(np.asarray(g).mean()) < 128:
        g = ImageOps.invert(g)
    threshold = 165
    return g.point(lambda p: 255 if p > threshold else 0)


def extract_scale_text(text: str) -> Optional[str]:
    """First "<number> <unit>" in OCR output, normalised to e.g. "10 µm"."""
    m = _SCALE_TEXT_RE.search(text or "")
    if not m:
        return None
    value = float(m.group(1).replace(",", "."))
    unit = _UNIT_ALIASES.get(m.group(2), m.group(2))
    return f"{format_number(value)} {unit}"


def read_scale_text(footer: Image.Image, settings: OcrSettings) -> Optional[str]:
    pre = preprocess_for_ocr(footer)
    raw = pytesseract.image_to_string(pre, lang=settings.lang, config=settings.build_tesseract_config())
    log.debug("Footer OCR: %r", raw)
    return extract_scale_text(raw)


# -----------------------------
# Payload
# -----------------------------

def analyze_image(image: Image.Image, settings: OcrSettings) -> str:
    w, h = image.size
    crop_y = detect_footer_y(image)
    # without a detected line, look for the label in the bottom fifth
    footer_top = crop_y if crop_y > 0 else int(h * 0.8)
    text = None
    if footer_top < h:
        ensure_tesseract_configured(settings.tesseract_cmd)
        text = read_scale_text(image.crop((0, footer_top, w, h)), settings)
    payload = {"suggestedCropY": int(crop_y)}
    if text:
        payload["detectedScaleText"] = text
    return json.dumps(payload, ensure_ascii=False)


def parse_analysis_payload(text: str) -> SemAnalysisResult:
    """Validate a suggestion payload; raises ValueError when it is malformed."""
    if not text:
        raise ValueError("empty analysis payload")
    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError("analysis payload must be a JSON object")

    y = data.get("suggestedCropY")
    if isinstance(y, bool) or not isinstance(y, (int, float)):
        raise ValueError(f"suggestedCropY must be a number, got {y!r}")
    if isinstance(y, float):
        if not y.is_integer():
            raise ValueError(f"suggestedCropY must be an integer, got {y!r}")
        y = int(y)
    if y < 0:
        raise ValueError(f"suggestedCropY must be >= 0, got {y}")

    scale_text = data.get("detectedScaleText")
    if scale_text is not None and not isinstance(scale_text, str):
        raise ValueError("detectedScaleText must be a string")
    return SemAnalysisResult(suggested_crop_y=y, detected_scale_text=scale_text or None)


def analyze_sem_image(data: bytes, settings: Optional[OcrSettings] = None) -> SemAnalysisResult:
    """
    Suggest a crop line and read the old scale label from raw image bytes.

    Never raises: any failure is logged and the default suggestion returned.
    """
    settings = settings or OcrSettings()
    try:
        with Image.open(io.BytesIO(data)) as im:
            im.load()
            payload = analyze_image(im, settings)
        return parse_analysis_payload(payload)
    except Exception:
        log.warning("Footer analysis failed; using the default suggestion", exc_info=True)
        return DEFAULT_SUGGESTION
