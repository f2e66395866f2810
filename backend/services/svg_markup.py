"""
Span-level helpers for editing SVG documents as strings.

All mutation in the engine goes through these helpers: elements are located
by tag scanning and rewritten in place, so markup outside the edited span is
emitted byte-for-byte as it came in.
"""
import re
from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple
from xml.sax.saxutils import escape, unescape

from domain.models import Box

_NUM = r"[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?"

VIEWBOX_RE = re.compile(
    r"viewBox=([\"'])\s*(" + _NUM + r")[\s,]+(" + _NUM + r")[\s,]+(" + _NUM + r")[\s,]+(" + _NUM + r")\s*\1"
)
ROOT_TAG_RE = re.compile(r"<svg(?=[\s>/])[^>]*>")
TEXT_OPEN_RE = re.compile(r"<text(?=[\s>/])[^>]*>")
RASTER_RE = re.compile(r"<image[\s>/]", re.IGNORECASE)
MATRIX_RE = re.compile(r"matrix\(\s*([^)]*)\)")
TRANSLATE_RE = re.compile(r"translate\(\s*(" + _NUM + r")(?:[\s,]+(" + _NUM + r"))?\s*\)")
TAG_STRIP_RE = re.compile(r"<[^>]*>")

NEUTRAL_FILLS = {"#FFFFFF", "#FFF", "WHITE", "NONE", "TRANSPARENT", ""}

_ESCAPES = {'"': "&quot;"}
_UNESCAPES = {"&quot;": '"', "&apos;": "'"}


def fmt(value: float, digits: int = 2) -> str:
    """Fixed-point number formatting used for every rewritten coordinate."""
    return f"{value:.{digits}f}"


def escape_text(text: str) -> str:
    return escape(text, _ESCAPES)


def unescape_text(text: str) -> str:
    return unescape(text, _UNESCAPES)


def strip_tags(fragment: str) -> str:
    return TAG_STRIP_RE.sub("", fragment)


def parse_length(value: Optional[str]) -> Optional[float]:
    """Parse a length attribute such as '120', '120.5px' or '2e2'."""
    if value is None:
        return None
    match = re.match(r"\s*(" + _NUM + ")", value)
    if not match:
        return None
    return float(match.group(1))


# Attributes


def _attr_re(name: str) -> re.Pattern:
    return re.compile(r"(?<=\s)" + re.escape(name) + r"\s*=\s*([\"'])(.*?)\1", re.DOTALL)


def get_attr(tag: str, name: str) -> Optional[str]:
    match = _attr_re(name).search(tag)
    return match.group(2) if match else None


def set_attr(tag: str, name: str, value: str) -> str:
    """Replace an attribute on an opening tag, or add it right after the tag name."""
    pattern = _attr_re(name)
    if pattern.search(tag):
        return pattern.sub(lambda m: f'{name}="{value}"', tag, count=1)
    match = re.match(r"<[\w:.-]+", tag)
    if not match:
        return tag
    return f'{tag[:match.end()]} {name}="{value}"{tag[match.end():]}'


def remove_attr(tag: str, name: str) -> str:
    return re.sub(r"\s+" + re.escape(name) + r"\s*=\s*([\"']).*?\1", "", tag, count=1, flags=re.DOTALL)


def get_style_property(tag: str, prop: str) -> Optional[str]:
    style = get_attr(tag, "style")
    if not style:
        return None
    match = re.search(r"(?:^|;)\s*" + re.escape(prop) + r"\s*:\s*([^;]+)", style)
    return match.group(1).strip() if match else None


def get_paint(tag: str, prop: str) -> Optional[str]:
    """Effective paint/property value: inline style wins over the attribute."""
    value = get_style_property(tag, prop)
    if value is None:
        value = get_attr(tag, prop)
    return value.strip() if value is not None else None


# Root / viewBox


def root_tag_span(doc: str) -> Optional[Tuple[int, int]]:
    match = ROOT_TAG_RE.search(doc)
    return (match.start(), match.end()) if match else None


def read_view_box(doc: str) -> Optional[Tuple[float, float, float, float]]:
    """(x, y, width, height) of the first viewBox declaration."""
    match = VIEWBOX_RE.search(doc)
    if not match:
        return None
    return tuple(float(match.group(i)) for i in range(2, 6))


def set_view_box(doc: str, x: float, y: float, width: float, height: float) -> str:
    value = f"{fmt(x)} {fmt(y)} {fmt(width)} {fmt(height)}"
    if re.search(r"viewBox=[\"'][^\"']*[\"']", doc):
        return re.sub(r"viewBox=[\"'][^\"']*[\"']", f'viewBox="{value}"', doc, count=1)
    return replace_root_tag(doc, lambda tag: set_attr(tag, "viewBox", value))


def replace_root_tag(doc: str, rewrite) -> str:
    span = root_tag_span(doc)
    if span is None:
        return doc
    start, end = span
    return doc[:start] + rewrite(doc[start:end]) + doc[end:]


def set_root_size(doc: str, width: float, height: float) -> str:
    """Rewrite the root width/height attributes, when the root declares them."""

    def rewrite(tag: str) -> str:
        if get_attr(tag, "width") is not None:
            tag = set_attr(tag, "width", fmt(width))
        if get_attr(tag, "height") is not None:
            tag = set_attr(tag, "height", fmt(height))
        return tag

    return replace_root_tag(doc, rewrite)


def root_content_span(doc: str) -> Optional[Tuple[int, int]]:
    """Span between the end of the root opening tag and the last </svg>."""
    span = root_tag_span(doc)
    close = doc.rfind("</svg>")
    if span is None or close == -1 or close < span[1]:
        return None
    return span[1], close


# Elements


@dataclass
class ElementSpan:
    """Location of one element inside a document string."""
    start: int
    open_end: int
    close_start: int  # == open_end for self-closing elements
    end: int

    def open_tag(self, doc: str) -> str:
        return doc[self.start:self.open_end]

    def inner(self, doc: str) -> str:
        return doc[self.open_end:self.close_start]

    @property
    def self_closing(self) -> bool:
        return self.close_start == self.open_end


def iter_open_tags(doc: str, name: str) -> Iterator[re.Match]:
    """Opening (or self-closing) tags for one element name, in document order."""
    pattern = re.compile(r"<" + re.escape(name) + r"(?=[\s>/])[^>]*>")
    return pattern.finditer(doc)


def find_text_elements(doc: str) -> List[ElementSpan]:
    """Every <text> element in document order (never <textPath>)."""
    spans: List[ElementSpan] = []
    pos = 0
    while True:
        match = TEXT_OPEN_RE.search(doc, pos)
        if not match:
            return spans
        if match.group(0).endswith("/>"):
            spans.append(ElementSpan(match.start(), match.end(), match.end(), match.end()))
            pos = match.end()
            continue
        close = doc.find("</text>", match.end())
        if close == -1:
            return spans
        spans.append(ElementSpan(match.start(), match.end(), close, close + len("</text>")))
        pos = close + len("</text>")


def replace_span(doc: str, start: int, end: int, replacement: str) -> str:
    return doc[:start] + replacement + doc[end:]


def rewrite_open_tags(doc: str, name: str, rewrite) -> str:
    """Apply `rewrite(tag) -> tag` to every opening tag of `name`."""
    pattern = re.compile(r"<" + re.escape(name) + r"(?=[\s>/])[^>]*>")
    return pattern.sub(lambda m: rewrite(m.group(0)), doc)


def has_raster_background(doc: str) -> bool:
    return RASTER_RE.search(doc) is not None


# Transforms


def parse_matrix(transform: Optional[str]) -> Optional[List[float]]:
    if not transform:
        return None
    match = MATRIX_RE.search(transform)
    if not match:
        return None
    try:
        values = [float(v) for v in re.split(r"[\s,]+", match.group(1).strip()) if v]
    except ValueError:
        return None
    return values if len(values) == 6 else None


def format_matrix(values: List[float]) -> str:
    return "matrix(" + " ".join(fmt(v, 4) for v in values) + ")"


def parse_translate(transform: Optional[str]) -> Tuple[float, float]:
    if not transform:
        return 0.0, 0.0
    match = TRANSLATE_RE.search(transform)
    if not match:
        return 0.0, 0.0
    return float(match.group(1)), float(match.group(2) or 0.0)


# Rects


def rect_box(tag: str) -> Optional[Box]:
    width = parse_length(get_attr(tag, "width"))
    height = parse_length(get_attr(tag, "height"))
    if width is None or height is None:
        return None
    x = parse_length(get_attr(tag, "x")) or 0.0
    y = parse_length(get_attr(tag, "y")) or 0.0
    return Box.from_xywh(x, y, width, height)


def is_hidden(tag: str) -> bool:
    display = get_paint(tag, "display")
    visibility = get_paint(tag, "visibility")
    return (display or "").lower() == "none" or (visibility or "").lower() == "hidden"


def is_invisible(tag: str) -> bool:
    """Hidden, fully transparent, or painted with neither fill nor stroke."""
    if is_hidden(tag):
        return True
    opacity = parse_length(get_paint(tag, "opacity"))
    if opacity is not None and opacity == 0:
        return True
    fill = (get_paint(tag, "fill") or "").lower()
    stroke = (get_paint(tag, "stroke") or "none").lower()
    return fill in ("none", "transparent") and stroke in ("none", "transparent")


def is_neutral_fill(tag: str) -> bool:
    return (get_paint(tag, "fill") or "").strip().upper() in NEUTRAL_FILLS
