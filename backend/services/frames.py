"""
Border framing and corner rounding.

`detect_border` finds the outermost stroked primitive; `apply_frame` adds a
second parallel border (double) or a two-color dashed overlay (split) on top
of it; `apply_corner_style` rewrites rect corner radii to a tier.
"""
import logging
import math
from dataclasses import dataclass
from typing import Dict, FrozenSet, Optional

from domain.models import Box, CornerStyle, FrameRendering, split_border_style
from services.colorizer import normalize_color, normalize_hex
from services.geometry import content_rect_box
from services.svg_markup import (
    fmt,
    get_attr,
    get_paint,
    is_hidden,
    iter_open_tags,
    parse_length,
    read_view_box,
    remove_attr,
    rewrite_open_tags,
    root_content_span,
    set_attr,
    set_root_size,
    set_view_box,
)

logger = logging.getLogger(__name__)

_ALL = frozenset(FrameRendering)
_SINGLE_DOUBLE = frozenset({FrameRendering.SINGLE, FrameRendering.DOUBLE})
_SINGLE_SPLIT = frozenset({FrameRendering.SINGLE, FrameRendering.SPLIT})
_SINGLE_ONLY = frozenset({FrameRendering.SINGLE})

# Border family -> frame renderings its geometry supports
FRAME_COMPATIBILITY: Dict[str, FrozenSet[FrameRendering]] = {
    "straight": _ALL,
    "wavy": _SINGLE_DOUBLE,
    "zigzag": _SINGLE_DOUBLE,
    "stitch": _SINGLE_SPLIT,
    "perforated": _SINGLE_ONLY,
    "brushstroke": _SINGLE_ONLY,
    "ripped": _SINGLE_ONLY,
}

# Corner tier -> radius as a fraction of the rect's short side
CORNER_RADIUS_RATIOS: Dict[CornerStyle, float] = {
    CornerStyle.STRAIGHT: 0.0,
    CornerStyle.SOFT: 0.06,
    CornerStyle.MEDIUM: 0.12,
    CornerStyle.STRONG: 0.20,
}

MIN_DOUBLE_GAP = 4.0
SPLIT_SEGMENTS = 8
DARK_LUMA_THRESHOLD = 150


@dataclass
class BorderInfo:
    kind: str  # rect, circle or ellipse
    box: Box
    stroke_width: float
    stroke_color: Optional[str]
    rx: float = 0.0
    ry: float = 0.0
    dash: Optional[str] = None
    end: int = 0  # offset just past the border element


def compatible_frames(border_style: Optional[str]) -> FrozenSet[FrameRendering]:
    family, _ = split_border_style(border_style)
    return FRAME_COMPATIBILITY.get(family, _SINGLE_ONLY)


def is_color_dark(color: str) -> bool:
    hex_value = normalize_color(color) or "#000000"
    r, g, b = (int(hex_value[i:i + 2], 16) for i in (1, 3, 5))
    return r * 0.299 + g * 0.587 + b * 0.114 < DARK_LUMA_THRESHOLD


def contrast_color(color: str) -> str:
    return "#FFFFFF" if is_color_dark(color) else "#000000"


def _element_end(doc: str, tag_end: int, name: str, self_closing: bool) -> int:
    if self_closing:
        return tag_end
    close = doc.find(f"</{name}>", tag_end)
    return close + len(f"</{name}>") if close != -1 else tag_end


def _border_from_tag(name: str, tag: str) -> Optional[BorderInfo]:
    if name == "rect":
        x = parse_length(get_attr(tag, "x")) or 0.0
        y = parse_length(get_attr(tag, "y")) or 0.0
        w = parse_length(get_attr(tag, "width")) or 0.0
        h = parse_length(get_attr(tag, "height")) or 0.0
        if w <= 0 or h <= 0:
            return None
        rx = parse_length(get_attr(tag, "rx"))
        ry = parse_length(get_attr(tag, "ry"))
        rx = rx if rx is not None else (ry or 0.0)
        ry = ry if ry is not None else rx
        return BorderInfo("rect", Box.from_xywh(x, y, w, h), 0.0, None, rx=rx, ry=ry)
    cx = parse_length(get_attr(tag, "cx")) or 0.0
    cy = parse_length(get_attr(tag, "cy")) or 0.0
    if name == "circle":
        r = parse_length(get_attr(tag, "r")) or 0.0
        rx = ry = r
    else:
        rx = parse_length(get_attr(tag, "rx")) or 0.0
        ry = parse_length(get_attr(tag, "ry")) or 0.0
    if rx <= 0 or ry <= 0:
        return None
    return BorderInfo(name, Box(cx - rx, cy - ry, cx + rx, cy + ry), 0.0, None, rx=rx, ry=ry)


def detect_border(doc: str) -> Optional[BorderInfo]:
    """The stroked rect, circle or ellipse with the largest extent, if any."""
    best: Optional[BorderInfo] = None
    for name in ("rect", "circle", "ellipse"):
        for match in iter_open_tags(doc, name):
            tag = match.group(0)
            stroke = get_paint(tag, "stroke")
            if is_hidden(tag) or not stroke or stroke.lower() in ("none", "transparent"):
                continue
            border = _border_from_tag(name, tag)
            if border is None:
                continue
            border.stroke_width = parse_length(get_paint(tag, "stroke-width")) or 1.0
            border.stroke_color = normalize_color(stroke) or stroke
            border.dash = get_paint(tag, "stroke-dasharray")
            border.end = _element_end(doc, match.end(), name, tag.endswith("/>"))
            area = border.box.width * border.box.height
            if best is None or area > best.box.width * best.box.height:
                best = border
    return best


def border_perimeter(border: BorderInfo) -> float:
    if border.kind == "rect":
        r = min(border.rx, border.box.width / 2, border.box.height / 2)
        return 2 * (border.box.width + border.box.height) - 8 * r + 2 * math.pi * r
    a, b = border.rx, border.ry
    # Ramanujan's approximation; exact for circles
    return math.pi * (3 * (a + b) - math.sqrt((3 * a + b) * (a + 3 * b)))


def _shape_markup(border: BorderInfo, offset: float, attrs: str) -> str:
    if border.kind == "rect":
        box = border.box.expand(offset)
        radius = ""
        if border.rx > 0:
            radius = f' rx="{fmt(border.rx + offset)}" ry="{fmt(border.ry + offset)}"'
        return (
            f'<rect x="{fmt(box.min_x)}" y="{fmt(box.min_y)}" width="{fmt(box.width)}" '
            f'height="{fmt(box.height)}"{radius}{attrs}/>'
        )
    cx, cy = border.box.center_x, border.box.center_y
    if border.kind == "circle":
        return f'<circle cx="{fmt(cx)}" cy="{fmt(cy)}" r="{fmt(border.rx + offset)}"{attrs}/>'
    return (
        f'<ellipse cx="{fmt(cx)}" cy="{fmt(cy)}" rx="{fmt(border.rx + offset)}" '
        f'ry="{fmt(border.ry + offset)}"{attrs}/>'
    )


def _double_frame(doc: str, border: BorderInfo, color: str) -> str:
    gap = max(MIN_DOUBLE_GAP, 2 * border.stroke_width)
    offset = gap + border.stroke_width
    dash = f' stroke-dasharray="{border.dash}"' if border.dash else ""
    attrs = f' fill="none" stroke="{color}" stroke-width="{fmt(border.stroke_width)}"{dash}'
    span = root_content_span(doc)
    if span is None:
        return doc
    end = span[1]
    result = doc[:end] + _shape_markup(border, offset, attrs) + doc[end:]
    view_box = read_view_box(result)
    if view_box is None:
        return result
    outer = Box.from_xywh(*view_box).union(border.box.expand(offset + border.stroke_width))
    result = set_view_box(result, outer.min_x, outer.min_y, outer.width, outer.height)
    return set_root_size(result, outer.width, outer.height)


def _split_frame(doc: str, border: BorderInfo, color: str) -> str:
    dash = border_perimeter(border) / SPLIT_SEGMENTS
    attrs = (
        f' fill="none" stroke="{contrast_color(color)}" stroke-width="{fmt(border.stroke_width)}"'
        f' stroke-dasharray="{fmt(dash)} {fmt(dash)}"'
    )
    return doc[:border.end] + _shape_markup(border, 0.0, attrs) + doc[border.end:]


def apply_frame(
    doc: str,
    rendering: FrameRendering,
    color: Optional[str] = None,
    border_style: Optional[str] = None,
    border: Optional[BorderInfo] = None,
) -> str:
    """
    Add frame geometry for `rendering`. SINGLE, an undetectable border, or a
    rendering the border style does not support leave the document unchanged.
    """
    rendering = FrameRendering(rendering)
    if rendering == FrameRendering.SINGLE:
        return doc
    if rendering not in compatible_frames(border_style):
        logger.debug("[frames] %s not supported for border style %r", rendering.value, border_style)
        return doc
    border = border or detect_border(doc)
    if border is None:
        logger.debug("[frames] No stroked border found; skipping %s frame", rendering.value)
        return doc
    frame_color = normalize_hex(color) if color else (border.stroke_color or "#000000")
    if rendering == FrameRendering.DOUBLE:
        return _double_frame(doc, border, frame_color)
    return _split_frame(doc, border, frame_color)


def apply_corner_style(doc: str, corner_style: Optional[CornerStyle]) -> str:
    """Rewrite content rect corner radii to the tier's fraction of the short side."""
    if corner_style is None:
        return doc
    ratio = CORNER_RADIUS_RATIOS[CornerStyle(corner_style)]
    frame = read_view_box(doc)

    def rewrite(tag: str) -> str:
        box = content_rect_box(tag, frame)
        if box is None:
            return tag
        radius = min(box.width, box.height) * ratio
        if radius <= 0:
            return remove_attr(remove_attr(tag, "rx"), "ry")
        tag = set_attr(tag, "rx", fmt(radius))
        return set_attr(tag, "ry", fmt(radius))

    return rewrite_open_tags(doc, "rect", rewrite)
