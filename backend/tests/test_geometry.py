from domain.models import Box
from services.geometry import STROKE_MARGIN, crop_to_raster_frame, raster_box, tighten_bounds
from services.svg_markup import read_view_box

STAMP_DOC = (
    '<svg xmlns="http://www.w3.org/2000/svg" width="1000" height="800" viewBox="0 0 1000 800">'
    '<rect x="0" y="0" width="1000" height="800" fill="#FFFFFF"/>'
    '<rect x="200" y="300" width="400" height="100" fill="#E4002B"/>'
    '<rect x="150" y="250" width="500" height="200" fill="none" stroke="#E4002B" stroke-width="6"/>'
    '<rect x="10" y="10" width="50" height="50" style="display:none" fill="#E4002B"/>'
    "</svg>"
)


def test_tighten_bounds_wraps_content_rects_with_margin():
    out = tighten_bounds(STAMP_DOC)
    x, y, w, h = read_view_box(out)
    assert (x, y) == (150 - STROKE_MARGIN, 250 - STROKE_MARGIN)
    assert (w, h) == (500 + 2 * STROKE_MARGIN, 200 + 2 * STROKE_MARGIN)
    assert 'width="570.00"' in out
    assert 'height="270.00"' in out


def test_tighten_bounds_includes_extra_boxes():
    out = tighten_bounds(STAMP_DOC, extra_boxes=[Box(100, 260, 700, 300)])
    x, _, w, _ = read_view_box(out)
    assert x == 100 - STROKE_MARGIN
    assert w == 600 + 2 * STROKE_MARGIN


def test_tighten_bounds_is_idempotent():
    once = tighten_bounds(STAMP_DOC)
    assert tighten_bounds(once) == once


def test_tighten_bounds_without_content_is_noop():
    doc = (
        '<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 300 300">'
        '<rect width="300" height="300" fill="white"/><path d="M0 0L10 10"/></svg>'
    )
    assert tighten_bounds(doc) == doc


def test_crop_to_raster_frame_applies_image_transform():
    doc = (
        '<svg xmlns="http://www.w3.org/2000/svg" width="1200" height="1200" viewBox="0 0 1200 1200">'
        '<image width="2000" height="1000" transform="matrix(0.5 0 0 0.5 100 300)" href="bg.png"/>'
        "</svg>"
    )
    assert raster_box(doc) == Box(100, 300, 1100, 800)
    out = crop_to_raster_frame(doc)
    assert read_view_box(out) == (100, 300, 1000, 500)
    assert 'width="1000.00"' in out


def test_crop_without_raster_is_noop():
    assert crop_to_raster_frame(STAMP_DOC) == STAMP_DOC
