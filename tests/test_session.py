from concurrent.futures import ThreadPoolExecutor

import pytest
from PIL import Image

from sem_editor.config import AppConfig
from sem_editor.crop import CropRect, Edge
from sem_editor.model import Mode
from sem_editor.session import EditorSession, SuggestionGate
from sem_editor.suggest import SemAnalysisResult


@pytest.fixture
def micrograph():
    return Image.new("RGB", (1000, 800), (0, 0, 0))


@pytest.fixture
def session(micrograph):
    return EditorSession(micrograph, SemAnalysisResult(700, "10 µm"), config=AppConfig())


def test_suggestion_seeds_crop_and_calibration(session):
    st = session.state
    assert st.crop == CropRect(0, 0, 1000, 700)
    assert st.mode is Mode.CALIBRATE
    assert (st.calibration.known_distance, st.calibration.unit) == (10.0, "µm")
    assert (st.settings.length_value, st.settings.length_unit) == (5.0, "µm")
    assert not session.can_export


def test_unparseable_scale_text_keeps_crop_line(micrograph):
    session = EditorSession(micrograph, SemAnalysisResult(700, "ten microns"), config=AppConfig(known_distance=20.0, unit="nm"))
    st = session.state
    assert st.crop.height == 700
    assert (st.calibration.known_distance, st.calibration.unit) == (20.0, "nm")


def test_no_suggestion_uses_whole_image(micrograph):
    session = EditorSession(micrograph)
    assert session.state.crop == CropRect(0, 0, 1000, 800)


def test_calibrate_then_export(session):
    session.click((100, 750))
    session.click((150, 750))
    assert session.pixels_per_unit == 5.0
    assert session.can_export

    session.set_mode(Mode.EDIT)
    out = session.export()
    assert out.size == (1000, 700)
    # 5 µm at 5 px/µm -> 25 px bar in the bottom-right corner, padding 40
    assert out.getpixel((940, 655)) == (255, 255, 255)
    assert out.getpixel((930, 655)) == (0, 0, 0)


def test_clicks_ignored_outside_calibrate(session):
    session.set_mode(Mode.EDIT)
    before = session.state
    assert session.click((10, 10)) is False
    assert session.state is before


def test_third_click_clears_ratio(session):
    for pt in [(0, 0), (30, 40), (5, 5)]:
        session.click(pt)
    picker = session.state.picker
    assert picker.start == (5.0, 5.0) and picker.end is None
    assert session.state.calibration.pixel_distance == 0.0
    assert not session.can_export


def test_reset_keeps_known_distance_and_unit(session):
    session.set_known_distance("200")
    session.set_unit("nm")
    session.click((0, 0))
    session.click((30, 40))
    session.reset_calibration()
    cal = session.state.calibration
    assert (cal.pixel_distance, cal.known_distance, cal.unit) == (0.0, 200.0, "nm")
    assert session.state.picker.start is None
    assert not session.can_export


def test_listeners_only_hear_real_changes(session):
    seen = []
    session.subscribe(seen.append)
    session.set_unit("µm")
    assert seen == []
    session.set_unit("nm")
    assert len(seen) == 1
    assert seen[0].calibration.unit == "nm"


def test_inset_edits_in_percent(session):
    session.set_use_percent(True)
    session.edit_inset(Edge.BOTTOM, "12.5")
    assert session.inset(Edge.BOTTOM) == 100
    assert session.inset_text("bottom") == "12.5"
    session.set_use_percent(False)
    assert session.inset_text(Edge.BOTTOM) == "100"


def test_settings_parse_form_text(session):
    session.update_settings(length_value="abc", bar_thickness_px="-3", padding_px="12.7", corner="top-left")
    s = session.state.settings
    assert s.length_value == 0.0
    assert s.bar_thickness_px == 0
    assert s.padding_px == 12
    assert s.corner.value == "top-left"


def test_magnifier_only_in_calibrate(session):
    session.move_cursor((500, 400))
    assert session.magnifier().size == (160, 160)
    session.set_mode(Mode.EDIT)
    assert session.cursor is None
    assert session.magnifier() is None


def test_upload_mode_goes_through_close(session):
    with pytest.raises(ValueError):
        session.set_mode(Mode.UPLOAD)
    session.close()
    assert not session.is_open
    assert session.mode is Mode.UPLOAD
    assert not session.can_export


def test_gate_accepts_only_latest_request():
    gate = SuggestionGate()
    first = gate.begin()
    second = gate.begin()
    assert not gate.accept(first)
    assert gate.accept(second)
    assert not gate.accept(second)
    assert not gate.pending


def test_gate_drops_result_after_cancel():
    gate = SuggestionGate()
    with ThreadPoolExecutor(max_workers=1) as pool:
        token = gate.begin()
        future = pool.submit(lambda: SemAnalysisResult(700, "10 µm"))
        gate.cancel()
        future.result()
    assert not gate.pending
    assert not gate.accept(token)


def test_oversized_settings_are_bounded(session):
    session.click((100, 750))
    session.click((150, 750))
    session.set_mode(Mode.EDIT)
    session.update_settings(label_font_size_px="100000", bar_thickness_px="99999999", padding_px="1e9")
    s = session.state.settings
    assert (s.label_font_size_px, s.bar_thickness_px, s.padding_px) == (1000, 10000, 10000)
    assert session.preview().size == (1000, 800)
    assert session.export().size == (1000, 700)
