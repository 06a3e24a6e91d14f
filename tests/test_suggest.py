import io
import json

import pytest
from PIL import Image

from sem_editor import suggest
from sem_editor.suggest import (
    DEFAULT_SUGGESTION,
    OcrSettings,
    SemAnalysisResult,
    analyze_sem_image,
    detect_footer_y,
    ensure_tesseract_configured,
    extract_scale_text,
    parse_analysis_payload,
)


def footer_image(w=200, h=100, footer_at=80):
    img = Image.new("L", (w, h), 60)
    img.paste(220, (0, footer_at, w, h))
    return img


def png_bytes(img: Image.Image) -> bytes:
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def fake_ocr(monkeypatch):
    calls = []

    def image_to_string(image, lang=None, config=None):
        calls.append((image.size, lang, config))
        return "HV 15.00 kV   WD 5.1\n10 um |-----|"

    monkeypatch.setattr(suggest, "ensure_tesseract_configured", lambda cmd="": "/usr/bin/tesseract")
    monkeypatch.setattr(suggest.pytesseract, "image_to_string", image_to_string)
    return calls


def test_payload_parses():
    res = parse_analysis_payload(json.dumps({"suggestedCropY": 700, "detectedScaleText": "10 µm"}))
    assert res == SemAnalysisResult(700, "10 µm")
    assert parse_analysis_payload('{"suggestedCropY": 12.0}') == SemAnalysisResult(12, None)


@pytest.mark.parametrize(
    "payload",
    [
        "",
        "not json",
        "[700]",
        "{}",
        '{"suggestedCropY": "700"}',
        '{"suggestedCropY": true}',
        '{"suggestedCropY": 1.5}',
        '{"suggestedCropY": -4}',
        '{"suggestedCropY": 700, "detectedScaleText": 10}',
    ],
)
def test_malformed_payloads_raise(payload):
    with pytest.raises(ValueError):
        parse_analysis_payload(payload)


def test_malformed_payload_falls_back_to_default(monkeypatch):
    monkeypatch.setattr(suggest, "analyze_image", lambda image, settings: '{"suggestedCropY": ')
    assert analyze_sem_image(png_bytes(footer_image())) == DEFAULT_SUGGESTION


def test_undecodable_bytes_fall_back_to_default():
    assert analyze_sem_image(b"definitely not an image") == DEFAULT_SUGGESTION


def test_missing_tesseract_falls_back_to_default(monkeypatch):
    def boom(cmd=""):
        raise RuntimeError("Tesseract OCR engine not found")

    monkeypatch.setattr(suggest, "ensure_tesseract_configured", boom)
    assert analyze_sem_image(png_bytes(footer_image())) == DEFAULT_SUGGESTION


def test_footer_line_and_label(fake_ocr):
    res = analyze_sem_image(png_bytes(footer_image()), OcrSettings(lang="eng", psm=6))
    assert res == SemAnalysisResult(80, "10 µm")
    # OCR only sees the footer, upscaled 2x
    assert fake_ocr == [((400, 40), "eng", "--oem 3 --psm 6")]


def test_plain_image_has_no_footer(fake_ocr, monkeypatch):
    monkeypatch.setattr(suggest.pytesseract, "image_to_string", lambda image, lang=None, config=None: "")
    assert analyze_sem_image(png_bytes(Image.new("L", (200, 100), 128))) == DEFAULT_SUGGESTION


def test_detect_footer_y():
    assert detect_footer_y(footer_image(footer_at=85)) == 85
    assert detect_footer_y(Image.new("RGB", (50, 50), (9, 9, 9))) == 0
    assert detect_footer_y(Image.new("L", (50, 15), 0)) == 0


def test_footer_above_search_window_is_ignored():
    assert detect_footer_y(footer_image(footer_at=20)) == 0


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("Scale 200nm", "200 nm"),
        ("0,5 µm", "0.5 µm"),
        ("1 μm", "1 µm"),
        ("2.50 um", "2.5 µm"),
        ("Mag 5000x", None),
        ("", None),
    ],
)
def test_extract_scale_text(raw, expected):
    assert extract_scale_text(raw) == expected


def test_unresolvable_tesseract_command_raises():
    with pytest.raises(RuntimeError):
        ensure_tesseract_configured("/nonexistent/dir/tesseract")
