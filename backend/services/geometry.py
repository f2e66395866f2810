"""
Viewport tightening.

Recomputes a document's viewBox and root size from the bounds of its content
rectangles so finished stamps carry no dead space.
"""
import logging
import re
from typing import Iterable, List, Optional, Tuple

from domain.models import Box
from services.svg_markup import (
    get_attr,
    is_hidden,
    is_invisible,
    is_neutral_fill,
    iter_open_tags,
    parse_length,
    parse_matrix,
    read_view_box,
    rect_box,
    set_root_size,
    set_view_box,
)

logger = logging.getLogger(__name__)

STROKE_MARGIN = 35.0
BACKGROUND_ORIGIN_TOLERANCE = 10.0
BACKGROUND_SIZE_TOLERANCE = 30.0


def is_background(box: Box, tag: str, frame: Optional[Tuple[float, float, float, float]]) -> bool:
    """Full-bleed rect: at the origin, at least frame-sized, neutral fill."""
    if frame is None:
        return False
    _, _, frame_w, frame_h = frame
    return (
        box.min_x < BACKGROUND_ORIGIN_TOLERANCE
        and box.min_y < BACKGROUND_ORIGIN_TOLERANCE
        and box.width >= frame_w - BACKGROUND_SIZE_TOLERANCE
        and box.height >= frame_h - BACKGROUND_SIZE_TOLERANCE
        and is_neutral_fill(tag)
    )


def content_rect_box(tag: str, frame: Optional[Tuple[float, float, float, float]]) -> Optional[Box]:
    """Box of a visible, non-background rect tag; None for anything else."""
    if is_hidden(tag) or is_invisible(tag):
        return None
    box = rect_box(tag)
    if box is None or box.width <= 0 or box.height <= 0:
        return None
    if is_background(box, tag, frame):
        return None
    return box


def content_rects(doc: str) -> List[Tuple[re.Match, Box]]:
    """Content <rect> tag matches with their boxes, in document order."""
    frame = read_view_box(doc)
    rects: List[Tuple[re.Match, Box]] = []
    for match in iter_open_tags(doc, "rect"):
        box = content_rect_box(match.group(0), frame)
        if box is not None:
            rects.append((match, box))
    return rects


def content_bounds(doc: str) -> Optional[Box]:
    bounds: Optional[Box] = None
    for _, box in content_rects(doc):
        bounds = box if bounds is None else bounds.union(box)
    return bounds


def tighten_bounds(doc: str, extra_boxes: Optional[Iterable[Box]] = None) -> str:
    """
    Fit the viewBox to content rects plus `extra_boxes`, padded by the
    stroke margin. Returns `doc` unchanged when there is no content.
    """
    bounds = content_bounds(doc)
    for box in extra_boxes or ():
        bounds = box if bounds is None else bounds.union(box)
    if bounds is None:
        return doc
    fitted = bounds.expand(STROKE_MARGIN)
    logger.debug(
        "[geometry] viewBox -> %.2f %.2f %.2f %.2f", fitted.min_x, fitted.min_y, fitted.width, fitted.height
    )
    doc = set_view_box(doc, fitted.min_x, fitted.min_y, fitted.width, fitted.height)
    return set_root_size(doc, fitted.width, fitted.height)


def raster_box(doc: str) -> Optional[Box]:
    """Box of the first embedded <image>, with its transform's scale and offset applied."""
    for match in iter_open_tags(doc, "image"):
        tag = match.group(0)
        width = parse_length(get_attr(tag, "width"))
        height = parse_length(get_attr(tag, "height"))
        if not width or not height:
            continue
        x = parse_length(get_attr(tag, "x")) or 0.0
        y = parse_length(get_attr(tag, "y")) or 0.0
        matrix = parse_matrix(get_attr(tag, "transform"))
        if matrix:
            a, _, _, d, e, f = matrix
            return Box.from_xywh(a * x + e, d * y + f, a * width, d * height)
        return Box.from_xywh(x, y, width, height)
    return None


def crop_to_raster_frame(doc: str) -> str:
    """Crop the viewBox to the embedded raster frame; no raster, no change."""
    box = raster_box(doc)
    if box is None:
        return doc
    doc = set_view_box(doc, box.min_x, box.min_y, box.width, box.height)
    return set_root_size(doc, box.width, box.height)
