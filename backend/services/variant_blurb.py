from typing import Dict, List, Optional, Tuple

from domain.models import FillStyle, FrameRendering, FrameStyle, Variant
from services.colorizer import normalize_hex

COLOR_NAMES: Dict[str, str] = {
    "#000000": "Black",
    "#FF0000": "Red",
    "#8B0000": "Dark Red",
    "#FF1493": "Deep Pink",
    "#FF4500": "Orange Red",
    "#FF8C00": "Dark Orange",
    "#FFD700": "Gold",
    "#FFFF00": "Yellow",
    "#BDB76B": "Dark Khaki",
    "#9400D3": "Dark Violet",
    "#4B0082": "Indigo",
    "#7CFC00": "Lawn Green",
    "#32CD32": "Lime Green",
    "#00FF7F": "Spring Green",
    "#008000": "Green",
    "#808000": "Olive",
    "#556B2F": "Dark Olive",
    "#00FFFF": "Cyan",
    "#00CED1": "Dark Turquoise",
    "#4682B4": "Steel Blue",
    "#1E90FF": "Dodger Blue",
    "#4169E1": "Royal Blue",
    "#000080": "Navy",
    "#8B4513": "Saddle Brown",
    "#C0C0C0": "Silver",
    "#A9A9A9": "Dark Gray",
}

# (keyword in the template name, adjective); first match wins
BORDER_ADJECTIVES: List[Tuple[str, str]] = [
    ("strong wavy", "deep wavy"),
    ("gentle wavy", "wavy"),
    ("brushstroke", "brushstroke"),
    ("stitch line", "stitch line"),
    ("stitch square", "stitch square"),
    ("stitch circle", "stitch dot"),
    ("ripped paper", "torn edge"),
    ("spaced perforated", "spaced perforated"),
    ("strong perforated", "deep perforated"),
    ("soft perforated", "perforated"),
    ("strong zigzag", "deep zigzag"),
    ("soft zigzag", "zigzag"),
]

CORNER_PHRASES: List[Tuple[str, str]] = [
    ("strong round", "rounded corners"),
    ("soft round", "soft corners"),
]


def color_name(color: str) -> str:
    """Palette name for a color; unknown colors read as their hex value."""
    hex_value = normalize_hex(color)
    return COLOR_NAMES.get(hex_value, hex_value)


def _first_match(name: str, table: List[Tuple[str, str]]) -> Optional[str]:
    for keyword, phrase in table:
        if keyword in name:
            return phrase
    return None


def build_description(
    text: str,
    template_name: str,
    color: str,
    fill_style: Optional[FillStyle] = None,
    double_border: bool = False,
) -> str:
    """
    Short, deterministic caption for a stamp, e.g.
    '“HELLO” written on red wavy stamp with rounded corners and double border'.
    """
    name = (template_name or "").lower()
    adjectives = []
    border = _first_match(name, BORDER_ADJECTIVES)
    if border:
        adjectives.append(border)
    if fill_style == FillStyle.OUTLINED or "empty" in name:
        adjectives.append("outlined")

    extras = []
    corners = _first_match(name, CORNER_PHRASES)
    if corners:
        extras.append(corners)
    if double_border or "double" in name:
        extras.append("double border")

    stamp = " ".join([color_name(color).lower()] + adjectives + ["stamp"])
    sentence = f"“{text}” written on {stamp}"
    if extras:
        sentence += " with " + " and ".join(extras)
    return sentence


def describe_variant(variant: Variant) -> str:
    base = variant.base
    double = variant.frame == FrameRendering.DOUBLE or base.frame_style == FrameStyle.DOUBLE
    return build_description(base.display_text, base.name, variant.color, base.fill_style, double)
