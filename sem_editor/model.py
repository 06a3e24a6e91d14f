from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Tuple

from PIL import Image

from .calibration import Calibration, PointPicker
from .crop import CropRect
from .scale_bar import ScaleBarSettings


class Mode(str, Enum):
    UPLOAD = "upload"
    CALIBRATE = "calibrate"
    EDIT = "edit"


@dataclass(frozen=True)
class EditorState:
    """Everything a render needs; one immutable snapshot per accepted edit."""
    image: Image.Image = field(repr=False, compare=False)
    crop: CropRect
    picker: PointPicker = PointPicker()
    calibration: Calibration = Calibration()
    settings: ScaleBarSettings = ScaleBarSettings()
    mode: Mode = Mode.CALIBRATE

    @property
    def image_size(self) -> Tuple[int, int]:
        return self.image.size

    @property
    def pixels_per_unit(self) -> float:
        return self.calibration.pixels_per_unit

    def evolve(self, **changes) -> "EditorState":
        return replace(self, **changes)
