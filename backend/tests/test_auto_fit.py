import asyncio
import re

import pytest

from domain.errors import MeasurementError, MeasurementTimeout
from domain.models import Box, TextMeasurement
from services.auto_fit import (
    auto_fit,
    compute_fixed_font_size,
    compute_growing_fit,
    find_text_box,
    plan_container_boxes,
)
from services.text_injector import get_zone_attr, inject_text

GROWING_DOC = (
    '<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 400 200">'
    '<rect x="100" y="60" width="200" height="80" fill="#E4002B"/>'
    '<text transform="matrix(1 0 0 1 200 110)" font-size="40" fill="#FFFFFF">SAMPLE</text>'
    "</svg>"
)

FIXED_DOC = (
    '<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 800 400">'
    '<image width="800" height="400" href="frame.png"/>'
    '<rect id="text-box" x="100" y="100" width="600" height="200" fill="none"/>'
    '<text transform="matrix(1 0 0 1 10 10)" font-size="40">SAMPLE</text>'
    "</svg>"
)


class FakeMeasurer:
    def __init__(self, widths=None, error=None):
        self.widths = widths
        self.error = error
        self.calls = 0

    async def measure(self, document, zone_index):
        self.calls += 1
        if self.error:
            raise self.error
        return TextMeasurement(line_widths=list(self.widths))


def _fit(doc, measurer, max_width=200, font=40):
    return asyncio.run(auto_fit(doc, 0, max_width, font, 1.0, measurer=measurer))


def test_overflow_shrinks_font_proportionally():
    fit = compute_growing_fit(300, 40, 200, 40)
    assert fit.font_size == pytest.approx(40 * 200 / 300)
    assert fit.scale_x == 1.0


def test_font_never_grows_past_original():
    fit = compute_growing_fit(100, 40, 200, 40)
    assert fit.font_size == 40


def test_floor_compresses_horizontal_scale():
    fit = compute_growing_fit(1000, 40, 200, 40)
    assert fit.font_size == pytest.approx(16)
    assert fit.scale_x == pytest.approx(0.5)


def test_growing_fit_resizes_font_and_container():
    doc = inject_text(GROWING_DOC, 0, "HELLO")
    out = _fit(doc, FakeMeasurer([300]))

    assert get_zone_attr(out, 0, "font-size") == "26.67"
    assert get_zone_attr(out, 0, "transform") == "matrix(1.0000 0.0000 0.0000 1.0000 200.0000 110.0000)"
    rect = re.search(r"<rect[^>]*>", out).group(0)
    assert 'width="226.67"' in rect
    assert 'height="80.00"' in rect


@pytest.mark.parametrize(
    "measurer",
    [
        FakeMeasurer(error=MeasurementTimeout("slow")),
        FakeMeasurer(error=MeasurementError("broken")),
        FakeMeasurer([]),
        FakeMeasurer([120, 80]),
        FakeMeasurer([0]),
    ],
)
def test_bad_measurements_leave_document_untouched(measurer):
    doc = inject_text(GROWING_DOC, 0, "HELLO")
    assert _fit(doc, measurer) == doc


def test_missing_zone_and_zero_width_are_noops():
    measurer = FakeMeasurer([300])
    assert asyncio.run(auto_fit(GROWING_DOC, 4, 200, 40, measurer=measurer)) == GROWING_DOC
    assert _fit(GROWING_DOC, measurer, max_width=0) == GROWING_DOC
    assert measurer.calls == 0


def test_fixed_font_size_caps():
    box = Box.from_xywh(100, 100, 600, 200)
    assert compute_fixed_font_size(["HI"], box) == pytest.approx(200 * 0.85 / 1.15)
    assert compute_fixed_font_size(["HAPPY", "BIRTHDAY"], box) == pytest.approx(200 * 0.85 / (2 * 1.15))
    huge = Box.from_xywh(0, 0, 5000, 5000)
    assert compute_fixed_font_size(["HI"], huge) == 180
    assert compute_fixed_font_size(["HI", "YO"], huge) == 140


def test_find_text_box_prefers_named_rect():
    assert find_text_box(FIXED_DOC) == Box.from_xywh(100, 100, 600, 200)
    fallback = '<svg viewBox="0 0 100 100"><image href="a.png"/></svg>'
    assert find_text_box(fallback) == Box.from_xywh(15, 25, 70, 50)


def test_fixed_frame_centers_text_in_text_box():
    doc = inject_text(FIXED_DOC, 0, "HI")
    out = _fit(doc, FakeMeasurer([40]))

    assert get_zone_attr(out, 0, "font-size") == "147.83"
    assert get_zone_attr(out, 0, "transform") == "matrix(1.0000 0.0000 0.0000 1.0000 400.0000 251.7391)"
    # the text box itself never moves
    assert '<rect id="text-box" x="100" y="100" width="600" height="200" fill="none"/>' in out


def test_plan_container_boxes_keeps_outer_margin():
    outer = Box(0, 0, 400, 200)
    inner = Box(100, 60, 300, 140)
    planned = plan_container_boxes([outer, inner], 300, 100)
    assert planned[1] == Box(50, 50, 350, 150)
    assert planned[0] == Box(-50, -10, 450, 210)


def test_plan_container_boxes_never_shrinks():
    box = Box(0, 0, 100, 100)
    assert plan_container_boxes([box], 50, 50) == [box]
    assert plan_container_boxes([], 50, 50) == []


TSPAN_DOC = (
    '<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 400 200">'
    '<text transform="matrix(1 0 0 1 200 110)">'
    '<tspan x="0" y="0" fill="#E4002B" font-family="\'Oswald\'" font-size="36" font-weight="500">Sample</tspan>'
    "</text></svg>"
)


def test_growing_fit_resizes_tspan_styled_text():
    doc = inject_text(TSPAN_DOC, 0, "HELLO")
    out = _fit(doc, FakeMeasurer([300]), max_width=200, font=36)
    sizes = re.findall(r'font-size="([^"]+)"', out)
    assert sizes
    assert set(sizes) == {"24.00"}


def test_fixed_frame_resizes_tspan_styled_text():
    doc = FIXED_DOC.replace(
        '<text transform="matrix(1 0 0 1 10 10)" font-size="40">SAMPLE</text>',
        '<text transform="matrix(1 0 0 1 10 10)"><tspan font-size="40">SAMPLE</tspan></text>',
    )
    doc = inject_text(doc, 0, "HELLO")
    out = _fit(doc, FakeMeasurer([100]))
    assert 'font-size="40"' not in out
    assert len(set(re.findall(r'font-size="([^"]+)"', out))) == 1
