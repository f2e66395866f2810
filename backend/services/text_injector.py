"""
Text injection into template documents.

The n-th <text> element is located by tag scanning and its content replaced
in place. Line offsets are written as placeholders; the auto-fit pass sets
the real values once the final font size is known.
"""
import logging
import re
from typing import List, Optional

from domain.errors import ZoneNotFound
from domain.models import LetterCase
from services.line_breaker import DYNAMIC_POLICY, FIXED_FRAME_POLICY, LinePolicy, break_lines
from services.svg_markup import (
    ElementSpan,
    escape_text,
    find_text_elements,
    get_attr,
    get_paint,
    get_style_property,
    has_raster_background,
    replace_span,
    set_attr,
    strip_tags,
    unescape_text,
)

logger = logging.getLogger(__name__)

# Styling a replacement line inherits from the first existing <tspan>
CARRIED_TSPAN_ATTRS = ("fill", "font-family", "font-size", "font-weight")

_TSPAN_OPEN_RE = re.compile(r"<tspan(?=[\s>/])[^>]*>")
_TSPAN_RE = re.compile(r"<tspan(?=[\s>/])[^>]*>([\s\S]*?)</tspan\s*>")
_STYLE_FONT_SIZE_RE = re.compile(r"((?:^|;)\s*font-size\s*:\s*)[^;]+")


def detect_letter_case(fragment: str) -> LetterCase:
    """Casing convention of existing markup content (tags and entities resolved)."""
    letters = [c for c in unescape_text(strip_tags(fragment)) if c.isascii() and c.isalpha()]
    if not letters:
        return LetterCase.MIXED
    has_upper = any(c.isupper() for c in letters)
    has_lower = any(c.islower() for c in letters)
    if has_upper and not has_lower:
        return LetterCase.UPPER
    if has_lower and not has_upper:
        return LetterCase.LOWER
    return LetterCase.MIXED


def apply_letter_case(text: str, case: LetterCase) -> str:
    if case == LetterCase.UPPER:
        return text.upper()
    if case == LetterCase.LOWER:
        return text.lower()
    return text


def resolve_display_text(doc: str, text: str) -> str:
    """User text conformed to the casing of the document's first text element."""
    spans = find_text_elements(doc)
    if not spans:
        return text
    return apply_letter_case(text, detect_letter_case(spans[0].inner(doc)))


def select_policy(doc: str) -> LinePolicy:
    return FIXED_FRAME_POLICY if has_raster_background(doc) else DYNAMIC_POLICY


def _zone_span(doc: str, zone_index: int) -> ElementSpan:
    spans = find_text_elements(doc)
    if zone_index < 0 or zone_index >= len(spans):
        raise ZoneNotFound(zone_index, len(spans))
    return spans[zone_index]


def _line_markup(lines: List[str], inner: str) -> str:
    first_tspan = _TSPAN_OPEN_RE.search(inner)
    carried = ""
    uses_y = False
    x_value = "0"
    if first_tspan:
        tspan = first_tspan.group(0)
        for name in CARRIED_TSPAN_ATTRS:
            value = get_attr(tspan, name)
            if value is not None:
                carried += f' {name}="{value}"'
        uses_y = get_attr(tspan, "y") is not None and get_attr(tspan, "dy") is None
        x_value = get_attr(tspan, "x") or "0"

    if len(lines) == 1:
        if carried:
            return f"<tspan{carried}>{escape_text(lines[0])}</tspan>"
        return escape_text(lines[0])

    offset_attr = "y" if uses_y else "dy"
    return "".join(
        f'<tspan x="{x_value}" {offset_attr}="0"{carried}>{escape_text(line)}</tspan>' for line in lines
    )


def inject_text(doc: str, zone_index: int, text: str, policy: Optional[LinePolicy] = None) -> str:
    """
    Replace the content of the `zone_index`-th <text> element with `text`.

    Casing follows the existing content, the element is centered with
    text-anchor="middle", and its transform is left alone. Raises
    ZoneNotFound when the index is out of range.
    """
    span = _zone_span(doc, zone_index)
    tag = span.open_tag(doc)
    inner = span.inner(doc)
    closing = "</text>"
    if span.self_closing:
        tag = tag[:-2].rstrip() + ">"

    display = apply_letter_case(text, detect_letter_case(inner))
    lines = break_lines(display, policy or select_policy(doc))
    tag = set_attr(tag, "text-anchor", "middle")

    replacement = tag + _line_markup(lines, inner)
    if span.self_closing:
        replacement += closing
        return replace_span(doc, span.start, span.end, replacement)
    logger.debug("[inject] zone %d -> %d line(s)", zone_index, len(lines))
    return replace_span(doc, span.start, span.close_start, replacement)


# Helpers shared with the auto-fit pass


def get_zone_attr(doc: str, zone_index: int, name: str) -> Optional[str]:
    return get_attr(_zone_span(doc, zone_index).open_tag(doc), name)


def set_zone_attr(doc: str, zone_index: int, name: str, value: str) -> str:
    span = _zone_span(doc, zone_index)
    return replace_span(doc, span.start, span.open_end, set_attr(span.open_tag(doc), name, value))


def zone_lines(doc: str, zone_index: int) -> List[str]:
    """Rendered lines of a zone: one per <tspan> line, or the whole content."""
    inner = _zone_span(doc, zone_index).inner(doc)
    tspans = _TSPAN_RE.findall(inner)
    if len(tspans) > 1:
        return [unescape_text(strip_tags(t)) for t in tspans]
    return [unescape_text(strip_tags(inner))]


def set_line_offsets(doc: str, zone_index: int, offsets: List[float]) -> str:
    """
    Rewrite the dy (or y) placeholder of each line <tspan> in order.

    Scoped to one text element; lines beyond `offsets` are left as they are.
    """
    span = _zone_span(doc, zone_index)
    inner = span.inner(doc)
    remaining = list(offsets)

    def rewrite(match: re.Match) -> str:
        tspan = match.group(0)
        if not remaining:
            return tspan
        for name in ("dy", "y"):
            if get_attr(tspan, name) is not None:
                return set_attr(tspan, name, f"{remaining.pop(0):.2f}")
        return tspan

    new_inner = _TSPAN_OPEN_RE.sub(rewrite, inner)
    return replace_span(doc, span.open_end, span.close_start, new_inner)


def uses_absolute_offsets(doc: str, zone_index: int) -> bool:
    """True when the zone's line tspans are positioned with y rather than dy."""
    inner = _zone_span(doc, zone_index).inner(doc)
    first = _TSPAN_OPEN_RE.search(inner)
    return bool(first) and get_attr(first.group(0), "y") is not None and get_attr(first.group(0), "dy") is None


def get_zone_font_attr(doc: str, zone_index: int, name: str) -> Optional[str]:
    """Effective font property of a zone: the first line <tspan> overrides the <text> element."""
    span = _zone_span(doc, zone_index)
    first = _TSPAN_OPEN_RE.search(span.inner(doc))
    if first:
        value = get_paint(first.group(0), name)
        if value is not None:
            return value
    return get_paint(span.open_tag(doc), name)


def _set_font_size(tag: str, value: str) -> str:
    tag = set_attr(tag, "font-size", value)
    style = get_attr(tag, "style")
    if style and get_style_property(tag, "font-size") is not None:
        style = _STYLE_FONT_SIZE_RE.sub(lambda m: m.group(1) + value, style, count=1)
        tag = set_attr(tag, "style", style)
    return tag


def set_zone_font_size(doc: str, zone_index: int, value: str) -> str:
    """
    Write font-size on the zone's <text> element and on every line <tspan>
    that declares its own, so the new size is the one that renders.
    """
    span = _zone_span(doc, zone_index)

    def rewrite(match: re.Match) -> str:
        tspan = match.group(0)
        if get_attr(tspan, "font-size") is None and get_style_property(tspan, "font-size") is None:
            return tspan
        return _set_font_size(tspan, value)

    new_inner = _TSPAN_OPEN_RE.sub(rewrite, span.inner(doc))
    new_tag = _set_font_size(span.open_tag(doc), value)
    return doc[:span.start] + new_tag + new_inner + doc[span.close_start:]
