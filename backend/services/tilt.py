"""
Tilt: rotate a finished stamp inside its own document.
"""
import math

from services.svg_markup import fmt, read_view_box, root_content_span, set_root_size, set_view_box


def rotated_size(width: float, height: float, angle: float):
    """Bounding size of a width x height rectangle rotated by `angle` degrees."""
    rad = math.radians(abs(angle))
    cos_a = math.cos(rad)
    sin_a = math.sin(rad)
    return width * cos_a + height * sin_a, width * sin_a + height * cos_a


def apply_tilt(doc: str, angle: float) -> str:
    """
    Wrap all content in one rotate() group about the viewBox center and grow
    the viewBox to the rotated bounding box. Negative angles tilt
    counter-clockwise. 0, or no viewBox, leaves the document unchanged.
    """
    if not angle:
        return doc
    view_box = read_view_box(doc)
    if view_box is None:
        return doc
    x, y, width, height = view_box
    cx = x + width / 2
    cy = y + height / 2
    new_w, new_h = rotated_size(width, height, angle)

    result = set_view_box(doc, cx - new_w / 2, cy - new_h / 2, new_w, new_h)
    span = root_content_span(result)
    if span is None:
        return doc
    start, end = span
    angle_text = f"{angle:g}"
    group = f'<g transform="rotate({angle_text} {fmt(cx)} {fmt(cy)})">'
    result = result[:start] + group + result[start:end] + "</g>" + result[end:]
    return set_root_size(result, new_w, new_h)
