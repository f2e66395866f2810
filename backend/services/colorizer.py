"""
Dominant-color detection and substitution.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

NAMED_COLORS: Dict[str, str] = {
    "white": "#FFFFFF",
    "black": "#000000",
    "red": "#FF0000",
    "green": "#008000",
    "blue": "#0000FF",
    "yellow": "#FFFF00",
    "cyan": "#00FFFF",
    "magenta": "#FF00FF",
    "gray": "#808080",
    "grey": "#808080",
    "orange": "#FFA500",
    "purple": "#800080",
    "pink": "#FFC0CB",
    "brown": "#A52A2A",
}

NEUTRAL_COLORS = ("#FFFFFF", "#000000")
IGNORED_VALUES = {"none", "transparent", "inherit", "currentcolor", ""}

_HEX6_RE = re.compile(r"^#[0-9a-fA-F]{6}$")
_HEX3_RE = re.compile(r"^#[0-9a-fA-F]{3}$")
_RGB_RE = re.compile(r"^rgb\(\s*(\d+)\s*,\s*(\d+)\s*,\s*(\d+)\s*\)$", re.IGNORECASE)

# fill="..." / stroke="..." attributes, and fill: / stroke: inside style="..."
_ATTR_PAINT_RE = re.compile(r"(?<=\s)(fill|stroke)(\s*=\s*)([\"'])([^\"']*)\3")
_STYLE_ATTR_RE = re.compile(r"(?<=\s)style(\s*=\s*)([\"'])([^\"']*)\2")
_STYLE_PAINT_RE = re.compile(r"(^|;)(\s*)(fill|stroke)(\s*:\s*)([^;]+)")


@dataclass
class DetectedColor:
    color: str
    count: int = 0
    roles: List[str] = field(default_factory=list)


def normalize_color(value: Optional[str]) -> Optional[str]:
    """Canonical '#RRGGBB' for hex, #RGB shorthand, basic names and rgb(); else None."""
    if not value:
        return None
    value = value.strip()
    if _HEX6_RE.match(value):
        return value.upper()
    if _HEX3_RE.match(value):
        r, g, b = value[1], value[2], value[3]
        return f"#{r}{r}{g}{g}{b}{b}".upper()
    named = NAMED_COLORS.get(value.lower())
    if named:
        return named
    match = _RGB_RE.match(value)
    if match:
        r, g, b = (min(255, int(c)) for c in match.groups())
        return f"#{r:02X}{g:02X}{b:02X}"
    return None


def normalize_hex(new_color: str) -> str:
    """Accept 'FF0000' or '#ff0000'; return '#FF0000'."""
    value = (new_color or "").strip()
    if not value.startswith("#") and re.match(r"^[0-9a-fA-F]{3}([0-9a-fA-F]{3})?$", value):
        value = "#" + value
    return normalize_color(value) or value


def _paint_declarations(doc: str):
    """(role, raw value) for every fill/stroke declaration, in document order."""
    found = []
    for match in _ATTR_PAINT_RE.finditer(doc):
        found.append((match.start(), match.group(1), match.group(4)))
    for match in _STYLE_ATTR_RE.finditer(doc):
        for prop in _STYLE_PAINT_RE.finditer(match.group(3)):
            found.append((match.start(), prop.group(3), prop.group(5)))
    found.sort(key=lambda item: item[0])
    return [(role, value) for _, role, value in found]


def detect_colors(doc: str) -> List[DetectedColor]:
    """Colors used in fill/stroke declarations, most frequent first (stable by first use)."""
    colors: Dict[str, DetectedColor] = {}
    for role, raw in _paint_declarations(doc):
        if raw.strip().lower() in IGNORED_VALUES:
            continue
        hex_value = normalize_color(raw)
        if not hex_value:
            continue
        entry = colors.setdefault(hex_value, DetectedColor(color=hex_value))
        entry.count += 1
        if role not in entry.roles:
            entry.roles.append(role)
    return sorted(colors.values(), key=lambda c: -c.count)


def dominant_color(doc: str) -> Optional[str]:
    """Most frequent color that is neither pure black nor pure white."""
    for detected in detect_colors(doc):
        if detected.color not in NEUTRAL_COLORS:
            return detected.color
    return None


def colorize(doc: str, new_color: str) -> str:
    """Replace every fill/stroke use of the dominant color with `new_color`."""
    dominant = dominant_color(doc)
    if dominant is None:
        return doc
    replacement = normalize_hex(new_color)

    def swap(value: str) -> Optional[str]:
        return replacement if normalize_color(value) == dominant else None

    def rewrite_attr(match: re.Match) -> str:
        new = swap(match.group(4))
        if new is None:
            return match.group(0)
        return f"{match.group(1)}{match.group(2)}{match.group(3)}{new}{match.group(3)}"

    def rewrite_style_prop(match: re.Match) -> str:
        new = swap(match.group(5))
        if new is None:
            return match.group(0)
        return f"{match.group(1)}{match.group(2)}{match.group(3)}{match.group(4)}{new}"

    def rewrite_style(match: re.Match) -> str:
        style = _STYLE_PAINT_RE.sub(rewrite_style_prop, match.group(3))
        return f"style{match.group(1)}{match.group(2)}{style}{match.group(2)}"

    result = _ATTR_PAINT_RE.sub(rewrite_attr, doc)
    result = _STYLE_ATTR_RE.sub(rewrite_style, result)
    logger.debug("[colorize] %s -> %s", dominant, replacement)
    return result
