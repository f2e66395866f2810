"""
Auto-fit: choose font size, horizontal scale and container geometry so the
injected text fits its zone.

Two container models:
- growing container (no raster background): text shrinks toward the
  zone's bounding width, never below 40% of the authored size (horizontal
  scale is compressed past that), and container rects grow to wrap it;
- fixed frame (raster background): the font size is derived analytically
  from a designated text box that never moves or resizes.

A failed or partial measurement leaves the document untouched.
"""
import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional

from domain.errors import MeasurementError, MeasurementTimeout, ZoneNotFound
from domain.models import Box, TextMeasurement
from services.geometry import content_bounds, content_rects, tighten_bounds
from services.svg_markup import (
    fmt,
    format_matrix,
    get_attr,
    has_raster_background,
    is_invisible,
    iter_open_tags,
    parse_length,
    parse_matrix,
    read_view_box,
    rect_box,
    set_attr,
)
from services.text_injector import (
    get_zone_attr,
    get_zone_font_attr,
    set_line_offsets,
    set_zone_font_size,
    set_zone_attr,
    uses_absolute_offsets,
    zone_lines,
)
from services.text_measure import TextMeasurer, get_default_measurer

logger = logging.getLogger(__name__)

# Growing-container model
MIN_FONT_RATIO = 0.4
LINE_HEIGHT_RATIO = 1.0
FIRST_LINE_SHIFT_RATIO = 0.40  # all-caps visual center sits above the baseline
CAP_HEIGHT_RATIO = 0.7
PAD_Y_RATIO = 0.4
PAD_X_RATIO = 0.5
INNER_CONTAINER_RATIO = 0.95

# Fixed-frame model
CHAR_WIDTH_FACTOR = 0.55
WIDTH_FILL = 0.90
HEIGHT_FILL = 0.85
FIXED_LINE_HEIGHT_FACTOR = 1.15
MAX_FONT_SINGLE_LINE = 180.0
MAX_FONT_MULTI_LINE = 140.0
BASELINE_SHIFT_RATIO = 0.35
DEFAULT_TEXT_BOX_WIDTH = 0.70
DEFAULT_TEXT_BOX_HEIGHT = 0.50

TEXT_BOX_ID_RE = re.compile(r"text[-_]?box|bounding[-_]?box", re.IGNORECASE)


@dataclass
class FitResult:
    font_size: float
    scale_x: float


def compute_growing_fit(
    measured_width: float,
    current_font_size: float,
    max_width: float,
    original_font_size: float,
    original_scale_x: float = 1.0,
) -> FitResult:
    """
    Font size and horizontal scale for the growing-container model.

    The font only ever shrinks; below the 40% floor the remaining overflow
    is absorbed by compressing the horizontal scale.
    """
    width_per_unit = measured_width / current_font_size
    target = max_width / width_per_unit
    font_size = min(original_font_size, target)
    scale_x = original_scale_x
    floor = original_font_size * MIN_FONT_RATIO
    if font_size < floor:
        font_size = floor
        width_at_floor = width_per_unit * floor
        if width_at_floor > max_width:
            scale_x = original_scale_x * (max_width / width_at_floor)
    return FitResult(font_size=font_size, scale_x=scale_x)


def compute_fixed_font_size(lines: List[str], container: Box) -> float:
    """Analytic font size from the width and height caps, clamped to the ceiling."""
    longest = max((len(line) for line in lines), default=1) or 1
    width_cap = container.width * WIDTH_FILL / (longest * CHAR_WIDTH_FACTOR)
    height_cap = container.height * HEIGHT_FILL / (len(lines) * FIXED_LINE_HEIGHT_FACTOR)
    ceiling = MAX_FONT_SINGLE_LINE if len(lines) == 1 else MAX_FONT_MULTI_LINE
    return min(width_cap, height_cap, ceiling)


def line_offsets(count: int, line_height: float, first: float, absolute: bool) -> List[float]:
    """dy values (relative) or y values (absolute) for `count` stacked lines."""
    if absolute:
        return [first + i * line_height for i in range(count)]
    return [first] + [line_height] * (count - 1)


def _valid_measurement(measurement: Optional[TextMeasurement], line_count: int) -> bool:
    if measurement is None or not measurement.line_widths:
        return False
    if len(measurement.line_widths) != line_count:
        return False
    return all(width > 0 for width in measurement.line_widths)


async def _measure(doc: str, zone_index: int, measurer: TextMeasurer, line_count: int) -> Optional[TextMeasurement]:
    try:
        measurement = await measurer.measure(doc, zone_index)
    except MeasurementTimeout:
        logger.warning("[auto_fit] Measurement timed out for zone %d; keeping unfitted text", zone_index)
        return None
    except MeasurementError:
        logger.warning("[auto_fit] Measurement failed for zone %d", zone_index, exc_info=True)
        return None
    if not _valid_measurement(measurement, line_count):
        logger.warning("[auto_fit] Partial measurement for zone %d: %s", zone_index, measurement)
        return None
    return measurement


def _zone_matrix(doc: str, zone_index: int) -> Optional[List[float]]:
    return parse_matrix(get_zone_attr(doc, zone_index, "transform"))


def _place_text(doc: str, zone_index: int, scale_x: Optional[float], center_x: float, y: Optional[float]) -> str:
    """Set the zone's matrix translation (and optionally its a-component)."""
    matrix = _zone_matrix(doc, zone_index)
    if matrix is None:
        base_y = parse_length(get_zone_attr(doc, zone_index, "y")) or 0.0
        matrix = [1.0, 0.0, 0.0, 1.0, 0.0, base_y]
        doc = set_zone_attr(doc, zone_index, "x", "0")
        doc = set_zone_attr(doc, zone_index, "y", "0")
    if scale_x is not None:
        matrix[0] = scale_x
    matrix[4] = center_x
    if y is not None:
        matrix[5] = y
    return set_zone_attr(doc, zone_index, "transform", format_matrix(matrix))


def _grow(box: Box, width: float, height: float) -> Box:
    """Grow `box` symmetrically about its center to at least width x height."""
    new_w = max(box.width, width)
    new_h = max(box.height, height)
    return Box.from_xywh(box.center_x - new_w / 2, box.center_y - new_h / 2, new_w, new_h)


def plan_container_boxes(boxes: List[Box], needed_w: float, needed_h: float) -> List[Box]:
    """
    New geometry for each container rect.

    With two or more containers the outer (largest) one keeps its margin
    around the inner ones: inner rects wrap the text, the outer grows by the
    same amount its widest inner grew.
    """
    if not boxes:
        return []
    if len(boxes) == 1:
        return [_grow(boxes[0], needed_w, needed_h)]
    outer = max(boxes, key=lambda b: b.width * b.height)
    inner = [
        b for b in boxes
        if b.width <= outer.width * INNER_CONTAINER_RATIO and b.height <= outer.height * INNER_CONTAINER_RATIO
    ]
    if not inner:
        return [_grow(b, needed_w, needed_h) for b in boxes]
    grow_w = 0.0
    grow_h = 0.0
    for b in inner:
        grow_w = max(grow_w, max(b.width, needed_w) - b.width)
        grow_h = max(grow_h, max(b.height, needed_h) - b.height)
    planned = []
    for b in boxes:
        if any(b is i for i in inner):
            planned.append(_grow(b, needed_w, needed_h))
        else:
            planned.append(_grow(b, b.width + grow_w, b.height + grow_h))
    return planned


def _rewrite_rects(doc: str, updates: Dict[int, Box]) -> str:
    """Rewrite rect tags (keyed by tag start offset) with new x/y/width/height."""
    if not updates:
        return doc
    pieces = []
    last = 0
    for match in iter_open_tags(doc, "rect"):
        box = updates.get(match.start())
        if box is None:
            continue
        tag = match.group(0)
        tag = set_attr(tag, "x", fmt(box.min_x))
        tag = set_attr(tag, "y", fmt(box.min_y))
        tag = set_attr(tag, "width", fmt(box.width))
        tag = set_attr(tag, "height", fmt(box.height))
        pieces.append(doc[last:match.start()])
        pieces.append(tag)
        last = match.end()
    pieces.append(doc[last:])
    return "".join(pieces)


async def _fit_growing(
    doc: str,
    zone_index: int,
    max_width: float,
    original_font_size: float,
    original_scale_x: float,
    measurer: TextMeasurer,
) -> str:
    lines = zone_lines(doc, zone_index)
    measurement = await _measure(doc, zone_index, measurer, len(lines))
    if measurement is None:
        return doc

    current_size = parse_length(get_zone_font_attr(doc, zone_index, "font-size")) or original_font_size
    fit = compute_growing_fit(measurement.widest, current_size, max_width, original_font_size, original_scale_x)
    font = fit.font_size
    result = set_zone_font_size(doc, zone_index, fmt(font))

    frame = content_bounds(doc) or _view_box_box(doc)
    if frame is None:
        return result

    count = len(lines)
    line_height = font * LINE_HEIGHT_RATIO
    multi = count > 1
    if multi:
        first = -((count - 1) * line_height) / 2 + font * FIRST_LINE_SHIFT_RATIO
        result = set_line_offsets(
            result, zone_index, line_offsets(count, line_height, first, uses_absolute_offsets(result, zone_index))
        )

    matrix = _zone_matrix(result, zone_index)
    scale_changed = fit.scale_x != original_scale_x
    result = _place_text(
        result,
        zone_index,
        fit.scale_x if scale_changed or matrix is None else None,
        frame.center_x,
        frame.center_y if multi else None,
    )
    final_matrix = _zone_matrix(result, zone_index)
    final_scale = final_matrix[0] if final_matrix else 1.0
    baseline = final_matrix[5] if final_matrix else frame.center_y

    text_width = measurement.widest / current_size * font * final_scale
    block_height = (count - 1) * line_height + font * CAP_HEIGHT_RATIO
    if multi:
        text_top = baseline - block_height / 2
    else:
        text_top = baseline - block_height
    text_box = Box.from_xywh(frame.center_x - text_width / 2, text_top, text_width, block_height)

    rects = content_rects(result)
    if not rects:
        logger.info("[auto_fit] zone %d: font %.2f scaleX %.4f (no container rects)", zone_index, font, fit.scale_x)
        return result

    needed_w = text_width + 2 * font * PAD_X_RATIO
    needed_h = block_height + 2 * font * PAD_Y_RATIO
    planned = plan_container_boxes([box for _, box in rects], needed_w, needed_h)
    updates = {
        match.start(): new_box
        for (match, box), new_box in zip(rects, planned)
        if new_box != box
    }
    result = _rewrite_rects(result, updates)

    logger.info(
        "[auto_fit] zone %d: font %.2f -> %.2f, scaleX %.4f, %d container(s) resized",
        zone_index,
        original_font_size,
        font,
        fit.scale_x,
        len(updates),
    )
    return tighten_bounds(result, extra_boxes=[text_box.expand(font * PAD_X_RATIO, 0)])


def _view_box_box(doc: str) -> Optional[Box]:
    view_box = read_view_box(doc)
    return Box.from_xywh(*view_box) if view_box else None


def find_text_box(doc: str) -> Optional[Box]:
    """
    The fixed-frame text container: a rect whose id names it a text box,
    else the first invisible rect, else 70% x 50% of the viewBox.
    """
    invisible: Optional[Box] = None
    for match in iter_open_tags(doc, "rect"):
        tag = match.group(0)
        box = rect_box(tag)
        if box is None or box.width <= 0 or box.height <= 0:
            continue
        if TEXT_BOX_ID_RE.search(get_attr(tag, "id") or ""):
            return box
        if invisible is None and is_invisible(tag):
            invisible = box
    if invisible is not None:
        return invisible
    frame = _view_box_box(doc)
    if frame is None:
        return None
    width = frame.width * DEFAULT_TEXT_BOX_WIDTH
    height = frame.height * DEFAULT_TEXT_BOX_HEIGHT
    return Box.from_xywh(frame.center_x - width / 2, frame.center_y - height / 2, width, height)


async def _fit_fixed_frame(doc: str, zone_index: int, measurer: TextMeasurer) -> str:
    container = find_text_box(doc)
    if container is None:
        return doc
    lines = zone_lines(doc, zone_index)
    measurement = await _measure(doc, zone_index, measurer, len(lines))
    if measurement is None:
        return doc

    font = compute_fixed_font_size(lines, container)
    current_size = parse_length(get_zone_font_attr(doc, zone_index, "font-size"))
    if current_size:
        # a real measurement can only tighten the analytic estimate
        measured_cap = container.width * WIDTH_FILL / (measurement.widest / current_size)
        font = min(font, measured_cap)

    count = len(lines)
    line_height = font * FIXED_LINE_HEIGHT_FACTOR
    baseline = container.center_y - (count - 1) * line_height / 2 + font * BASELINE_SHIFT_RATIO

    result = set_zone_font_size(doc, zone_index, fmt(font))
    if count > 1:
        result = set_line_offsets(
            result, zone_index, line_offsets(count, line_height, 0.0, uses_absolute_offsets(result, zone_index))
        )
    result = _place_text(result, zone_index, None, container.center_x, baseline)
    logger.info("[auto_fit] fixed frame zone %d: font %.2f over %d line(s)", zone_index, font, count)
    return result


async def auto_fit(
    doc: str,
    zone_index: int,
    max_width: float,
    original_font_size: float,
    original_scale_x: float = 1.0,
    measurer: Optional[TextMeasurer] = None,
) -> str:
    """
    Fit the zone's text. Returns the unmodified document when measurement
    fails, the zone is missing, or (growing model) no positive width is given.
    """
    measurer = measurer or get_default_measurer()
    try:
        if has_raster_background(doc):
            return await _fit_fixed_frame(doc, zone_index, measurer)
        if not max_width or max_width <= 0:
            return doc
        if not original_font_size:
            original_font_size = parse_length(get_zone_font_attr(doc, zone_index, "font-size")) or 0.0
        if original_font_size <= 0:
            return doc
        return await _fit_growing(doc, zone_index, max_width, original_font_size, original_scale_x or 1.0, measurer)
    except ZoneNotFound:
        logger.warning("[auto_fit] Zone %d missing; skipping fit", zone_index)
        return doc
