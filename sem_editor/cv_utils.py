from __future__ import annotations

import numpy as np
from PIL import Image


def require_cv2():
    try:
        import cv2  # noqa
    except Exception as e:
        raise RuntimeError(
            "OpenCV (cv2) is required for footer detection.\n"
            "Install with:\n"
            "  pip install opencv-python"
        ) from e
    return cv2


def pil_to_gray(pil_img: Image.Image) -> np.ndarray:
    """
    Convert a PIL image of any mode to a float32 (H,W) luminance array in 0..255.
    Alpha is dropped. 16-bit data brighter than 255 is scaled down so its
    maximum lands on 255.
    """
    if pil_img.mode in ("I;16", "I;16B", "I;16L", "I"):
        arr = np.asarray(pil_img, dtype=np.float32)
        hi = float(arr.max()) if arr.size else 0.0
        if hi > 255.0:
            arr = arr * (255.0 / hi)
        return arr
    return np.asarray(pil_img.convert("L"), dtype=np.float32)


def row_gradient_profile(gray: np.ndarray) -> np.ndarray:
    """
    Mean absolute vertical gradient per row, shape (H,).

    Row r holds the transition between rows r-1 and r, so a footer starting at
    row r shows up as a peak at index r. Row 0 is always 0.
    """
    if gray.ndim != 2:
        raise ValueError("gray must be HxW")
    cv2 = require_cv2()
    # ksize=1 is the plain [-1, 0, 1] derivative, no smoothing
    sobel = cv2.Sobel(gray, cv2.CV_32F, 0, 1, ksize=1)
    prof = np.abs(sobel).mean(axis=1)
    out = np.zeros(gray.shape[0], dtype=np.float32)
    # central difference at r spans r-1..r+1; attribute it to the lower row
    out[1:] = prof[:-1]
    return out
