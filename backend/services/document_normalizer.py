"""
Vendor-cruft stripping for authored SVG templates.

Illustrator exports carry metadata blocks, namespaced attributes and embedded
font data that the rendering path cannot use. `normalize` applies an ordered
table of named rules, then remaps vendor PostScript font names to a portable
(family, weight) pair. Applying it to its own output is a no-op.
"""
import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Tuple

from domain.errors import MalformedDocument
from services.svg_markup import get_attr, replace_root_tag, set_attr

logger = logging.getLogger(__name__)

SVG_NAMESPACE = "http://www.w3.org/2000/svg"

_VENDOR_PREFIXES = r"(?:x|i|graph|sfw|vars|imrep|custom)"


@dataclass(frozen=True)
class NormalizationRule:
    name: str
    pattern: re.Pattern
    replacement: str = ""

    def apply(self, doc: str) -> str:
        return self.pattern.sub(self.replacement, doc)


NORMALIZATION_RULES: List[NormalizationRule] = [
    NormalizationRule(
        "foreign_object_blocks",
        re.compile(r"<foreignObject\b[^>]*?(?:/>|>[\s\S]*?</foreignObject\s*>)", re.IGNORECASE),
    ),
    NormalizationRule(
        "vendor_namespace_declarations",
        re.compile(r"\s+xmlns:(?:x|i|graph|sfw|vars|imrep|custom|adobe_xpath)=[\"'][^\"']*[\"']", re.IGNORECASE),
    ),
    NormalizationRule(
        "vendor_attributes",
        re.compile(r"\s+" + _VENDOR_PREFIXES + r":[a-z][\w-]*=[\"'][^\"']*[\"']", re.IGNORECASE),
    ),
    NormalizationRule(
        "vendor_empty_elements",
        re.compile(r"<" + _VENDOR_PREFIXES + r":[^>]*/>", re.IGNORECASE),
    ),
    NormalizationRule(
        "vendor_elements",
        re.compile(
            r"<(" + _VENDOR_PREFIXES + r"):([\w-]+)[^>]*>[\s\S]*?</\1:\2\s*>",
            re.IGNORECASE,
        ),
    ),
    NormalizationRule("vendor_entity_references", re.compile(r"&ns_\w+;")),
    NormalizationRule("style_blocks", re.compile(r"<style[^>]*>[\s\S]*?</style\s*>", re.IGNORECASE)),
]

# Vendor font identifier -> (portable family, weight)
FONT_MAPPINGS: Dict[str, Tuple[str, int]] = {
    "Oswald-Medium": ("Oswald", 500),
    "Oswald-Regular": ("Oswald", 400),
    "Oswald-Bold": ("Oswald", 700),
    "Oswald-SemiBold": ("Oswald", 600),
    "Oswald-Light": ("Oswald", 300),
    "Oswald-ExtraLight": ("Oswald", 200),
    "Gunplay-Regular": ("Gunplay", 400),
    "Gunplay": ("Gunplay", 400),
    "BebasNeue-Regular": ("BebasNeue", 400),
    "BebasNeue": ("BebasNeue", 400),
    "ARMYRUST": ("ArmyRust", 400),
    "ArmyRust": ("ArmyRust", 400),
    "ARMY RUST": ("ArmyRust", 400),
    "Army Rust": ("ArmyRust", 400),
}

_SVG_ROOT_RE = re.compile(r"<svg(?=[\s>/])")
_FONT_TAG_RE = re.compile(r"<[A-Za-z][^>]*\sfont-family\s*=[^>]*>")


def _remap_font_tag(tag: str) -> str:
    family = get_attr(tag, "font-family")
    if family is None:
        return tag
    key = family.strip().strip("'\"").strip()
    mapping = FONT_MAPPINGS.get(key)
    if mapping is None:
        return tag
    portable, weight = mapping
    tag = set_attr(tag, "font-family", f"'{portable}'")
    if get_attr(tag, "font-weight") is None:
        # keep the weight next to the family it qualifies
        tag = tag.replace(
            f"font-family=\"'{portable}'\"",
            f"font-family=\"'{portable}'\" font-weight=\"{weight}\"",
            1,
        )
    return tag


def remap_fonts(doc: str) -> str:
    """Rewrite vendor font-family identifiers; add font-weight only when absent."""
    return _FONT_TAG_RE.sub(lambda m: _remap_font_tag(m.group(0)), doc)


def ensure_namespace(doc: str) -> str:
    def rewrite(tag: str) -> str:
        if get_attr(tag, "xmlns") is not None:
            return tag
        return set_attr(tag, "xmlns", SVG_NAMESPACE)

    return replace_root_tag(doc, rewrite)


def normalize(raw: str) -> str:
    """Clean a raw template document. Raises MalformedDocument without an <svg> root."""
    match = _SVG_ROOT_RE.search(raw or "")
    if not match:
        raise MalformedDocument("No <svg> tag found")
    doc = raw[match.start():]
    for rule in NORMALIZATION_RULES:
        doc = rule.apply(doc)
    doc = remap_fonts(doc)
    doc = ensure_namespace(doc)
    logger.debug("[normalize] %d -> %d chars", len(raw), len(doc))
    return doc
