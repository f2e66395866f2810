import math

import pytest

from services.svg_markup import read_view_box
from services.tilt import apply_tilt, rotated_size

DOC = (
    '<svg xmlns="http://www.w3.org/2000/svg" width="200" height="100" viewBox="0 0 200 100">'
    '<rect x="10" y="10" width="180" height="80" fill="#E4002B"/>'
    "</svg>"
)


def test_rotated_size_matches_bounding_formula():
    w, h = rotated_size(200, 100, -20)
    rad = math.radians(20)
    assert w == pytest.approx(200 * math.cos(rad) + 100 * math.sin(rad))
    assert h == pytest.approx(200 * math.sin(rad) + 100 * math.cos(rad))
    assert rotated_size(200, 100, 90) == pytest.approx((100, 200))


def test_apply_tilt_wraps_content_and_grows_view_box():
    out = apply_tilt(DOC, -20)
    assert out.count('<g transform="rotate(-20 100.00 50.00)">') == 1
    assert out.endswith("</g></svg>")
    x, y, w, h = read_view_box(out)
    exp_w, exp_h = rotated_size(200, 100, -20)
    assert w == pytest.approx(exp_w, abs=0.01)
    assert h == pytest.approx(exp_h, abs=0.01)
    # still centered on the original center
    assert x + w / 2 == pytest.approx(100, abs=0.01)
    assert y + h / 2 == pytest.approx(50, abs=0.01)
    assert f'width="{exp_w:.2f}"' in out


def test_zero_tilt_and_missing_view_box_are_noops():
    assert apply_tilt(DOC, 0) == DOC
    bare = '<svg xmlns="http://www.w3.org/2000/svg"><rect width="1" height="1"/></svg>'
    assert apply_tilt(bare, 15) == bare
