"""
Read-only analysis of template documents.

Parses a throwaway copy of the document with lxml to find text zones and
`ct-<n>` containers. Nothing here mutates the document string; the results
feed the admin auto-suggestion of bounding widths and the catalog analysis
endpoint.
"""
import logging
import re
from typing import Any, Dict, List, Optional

from lxml import etree

from domain.errors import MalformedDocument
from domain.models import ContainerBox, TextZone, ZoneInfo
from services.colorizer import detect_colors
from services.svg_markup import parse_length, parse_translate, read_view_box

logger = logging.getLogger(__name__)

CONTAINER_ID_RE = re.compile(r"^ct[_-]?(\d+)", re.IGNORECASE)
DYNAMIC_TEXT_ID_RE = re.compile(r"^dt[_-]?(\d+)", re.IGNORECASE)
_STYLE_BLOCK_RE = re.compile(r"<style[^>]*>[\s\S]*?</style\s*>", re.IGNORECASE)

DEFAULT_WIDTH_RATIO = 0.7


def _local_name(el) -> str:
    if not isinstance(el.tag, str):
        return ""
    return etree.QName(el).localname


def _float(value: Optional[str]) -> float:
    parsed = parse_length(value)
    return parsed if parsed is not None else 0.0


def parse_document(doc: str):
    """Parse an analysis copy of `doc`; CDATA markers and style blocks removed."""
    cleaned = doc.replace("<![CDATA[", "").replace("]]>", "")
    cleaned = _STYLE_BLOCK_RE.sub("", cleaned)
    parser = etree.XMLParser(recover=True, huge_tree=True, remove_comments=True, resolve_entities=False)
    try:
        root = etree.fromstring(cleaned.encode("utf-8"), parser)
    except etree.XMLSyntaxError as exc:
        raise MalformedDocument(f"SVG parse error: {exc}") from exc
    if root is None or _local_name(root) != "svg":
        raise MalformedDocument("SVG parse error: no <svg> root element")
    return root


def _first_descendant_rect(el):
    for child in el.iter():
        if child is not el and _local_name(child) == "rect":
            return child
    return None


def locate_containers(doc: str) -> Dict[int, ContainerBox]:
    """`ct-<n>` containers keyed by n; later duplicates win."""
    root = parse_document(doc)
    containers: Dict[int, ContainerBox] = {}
    for el in root.iter():
        element_id = el.get("id") if isinstance(el.tag, str) else None
        if not element_id:
            continue
        match = CONTAINER_ID_RE.match(element_id)
        if not match:
            continue
        name = _local_name(el)
        rect = el if name == "rect" else _first_descendant_rect(el) if name == "g" else None
        box = ContainerBox(number=int(match.group(1)), element_id=element_id)
        if rect is not None:
            box.x = _float(rect.get("x"))
            box.y = _float(rect.get("y"))
            box.width = _float(rect.get("width"))
            box.height = _float(rect.get("height"))
        tx, ty = parse_translate(el.get("transform"))
        box.x += tx
        box.y += ty
        containers[box.number] = box
    return containers


def locate_text_zones(doc: str) -> List[ZoneInfo]:
    """Every <text> element, in document order."""
    root = parse_document(doc)
    zones: List[ZoneInfo] = []
    for el in root.iter():
        if _local_name(el) != "text":
            continue
        parent_id = None
        dt_number = None
        parent = el.getparent()
        while parent is not None and _local_name(parent) != "svg":
            if parent.get("id"):
                parent_id = parent.get("id")
                match = DYNAMIC_TEXT_ID_RE.match(parent_id)
                if match:
                    dt_number = int(match.group(1))
                break
            parent = parent.getparent()
        zones.append(
            ZoneInfo(
                index=len(zones),
                text_content="".join(el.itertext()),
                font_family=el.get("font-family") or "",
                font_size=_float(el.get("font-size")),
                font_weight=el.get("font-weight") or "",
                fill=el.get("fill") or "",
                stroke=el.get("stroke") or "",
                stroke_width=_float(el.get("stroke-width")),
                stroke_miterlimit=el.get("stroke-miterlimit") or "",
                transform=el.get("transform") or "",
                parent_id=parent_id,
                dt_number=dt_number,
            )
        )
    return zones


def read_document_size(doc: str):
    """(width, height) from the root attributes, falling back to the viewBox."""
    root = parse_document(doc)
    width = parse_length(root.get("width")) or 0.0
    height = parse_length(root.get("height")) or 0.0
    if not width or not height:
        view_box = read_view_box(doc)
        if view_box:
            width, height = view_box[2], view_box[3]
    return width, height


def suggest_bounding_width(zone: ZoneInfo, containers: Dict[int, ContainerBox], doc_width: float) -> float:
    """Width of the container sharing the zone's dt number, else 70% of the document."""
    container = containers.get(zone.dt_number) if zone.dt_number is not None else None
    if container is not None and container.width > 0:
        return round(container.width)
    return round(doc_width * DEFAULT_WIDTH_RATIO)


def analyze_template(doc: str) -> Dict[str, Any]:
    """
    Bundle everything the admin flow needs to register a template:
    size, containers, suggested text zones and detected colors.
    """
    width, height = read_document_size(doc)
    containers = locate_containers(doc)
    zones = locate_text_zones(doc)
    suggestions: List[TextZone] = []
    for zone in zones:
        suggestions.append(
            TextZone(
                label=f"Text {zone.dt_number}" if zone.dt_number is not None else f"Text {zone.index + 1}",
                element_index=zone.index,
                font_family=zone.font_family or None,
                font_size=zone.font_size or None,
                font_color=zone.fill or None,
                font_weight=zone.font_weight or None,
                stroke=zone.stroke or None,
                stroke_width=zone.stroke_width or None,
                transform_matrix=zone.transform or None,
                bounding_width=suggest_bounding_width(zone, containers, width),
                sort_order=zone.index,
            )
        )
    logger.info(
        "[analyze] %d text zone(s), %d container(s), size %.1fx%.1f",
        len(zones),
        len(containers),
        width,
        height,
    )
    return {
        "width": width,
        "height": height,
        "containers": containers,
        "zones": zones,
        "suggested_zones": suggestions,
        "colors": detect_colors(doc),
    }
