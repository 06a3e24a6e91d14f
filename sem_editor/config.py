from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Optional

from .calibration import Calibration
from .scale_bar import Corner, ScaleBarSettings

log = logging.getLogger(__name__)

CONFIG_ENV = "SEM_SCALER_CONFIG"
DEFAULT_CONFIG_PATH = Path.home() / ".sem_scaler_config.json"


def config_path() -> Path:
    env = os.environ.get(CONFIG_ENV, "").strip()
    return Path(env) if env else DEFAULT_CONFIG_PATH


@dataclass
class AppConfig:
    # new scale bar defaults
    bar_length: float = 5.0
    bar_unit: str = "µm"
    bar_thickness_px: int = 8
    label_font_size_px: int = 24
    label_color: str = "#ffffff"
    bar_color: str = "#ffffff"
    corner: str = Corner.BOTTOM_RIGHT.value
    padding_px: int = 40

    # calibration defaults (until the footer text or the user says otherwise)
    known_distance: float = 10.0
    unit: str = "µm"

    magnifier_size: int = 160
    magnifier_zoom: float = 3.0

    export_filename: str = "sem-processed.png"

    # footer OCR
    tesseract_cmd: str = ""
    ocr_lang: str = "eng"
    ocr_psm: int = 6
    auto_analyze: bool = True

    log_level: str = "INFO"

    def scale_bar_settings(self) -> ScaleBarSettings:
        try:
            corner = Corner(self.corner)
        except ValueError:
            corner = Corner.BOTTOM_RIGHT
        return ScaleBarSettings(
            visible=True,
            length_value=float(self.bar_length),
            length_unit=self.bar_unit,
            bar_thickness_px=int(self.bar_thickness_px),
            label_font_size_px=int(self.label_font_size_px),
            label_color=self.label_color,
            bar_color=self.bar_color,
            corner=corner,
            padding_px=int(self.padding_px),
        )

    def calibration(self) -> Calibration:
        return Calibration(pixel_distance=0.0, known_distance=float(self.known_distance), unit=self.unit)


def load_config(path: Optional[Path] = None) -> AppConfig:
    """
    Read preferences; unknown keys are ignored and a missing or corrupt file
    gives the defaults.
    """
    path = Path(path) if path is not None else config_path()
    if not path.exists():
        return AppConfig()

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError("config root must be an object")
        known = {f.name for f in fields(AppConfig)}
        merged = {**asdict(AppConfig()), **{k: v for k, v in data.items() if k in known}}
        return AppConfig(**merged)
    except Exception:
        # If config is corrupt, fall back without blocking app usage.
        log.warning("Ignoring unreadable config at %s", path, exc_info=True)
        return AppConfig()


def save_config(cfg: AppConfig, path: Optional[Path] = None) -> Path:
    path = Path(path) if path is not None else config_path()
    path.write_text(json.dumps(asdict(cfg), indent=2, ensure_ascii=False), encoding="utf-8")
    return path
