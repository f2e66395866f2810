"""
Core domain models for the stamp engine.
These are framework-agnostic and can be used across all services.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple
from urllib.parse import parse_qs, urlencode


class TemplateShape(str, Enum):
    """Outline shape of a template."""
    CIRCLE = "circle"
    SQUARE = "square"
    RECTANGLE = "rectangle"


class TemplateObject(str, Enum):
    """What kind of object a template depicts."""
    STAMP = "stamp"
    STICKER = "sticker"
    BUTTON = "button"
    BANNER = "banner"
    BLACKBOARD = "blackboard"
    SPEECH_BUBBLE = "speech_bubble"
    SPEECH_CLOUD = "speech_cloud"


class FrameStyle(str, Enum):
    """Frame count baked into the authored template."""
    SINGLE = "single"
    DOUBLE = "double"


class FrameRendering(str, Enum):
    """Frame treatment applied by the compositors."""
    SINGLE = "single"  # as authored
    DOUBLE = "double"  # second parallel border offset outward
    SPLIT = "split"    # border split into two alternating colors


class CornerStyle(str, Enum):
    """Corner radius tier, ordered from sharp to round."""
    STRAIGHT = "straight"
    SOFT = "soft"
    MEDIUM = "medium"
    STRONG = "strong"


class FillStyle(str, Enum):
    FILLED = "filled"
    OUTLINED = "outlined"


class LetterCase(str, Enum):
    """Letter-casing convention detected on a text zone."""
    UPPER = "upper"
    LOWER = "lower"
    MIXED = "mixed"


def _enum_or_none(enum_cls, value):
    if value is None or value == "":
        return None
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        return None


def split_border_style(border_style: Optional[str]) -> Tuple[str, str]:
    """
    Split a border-style tag into (family, sub_style).

    "wavy_gentle" -> ("wavy", "gentle"), "straight" -> ("straight", "").
    Missing tags fall into the "straight" family.
    """
    if not border_style:
        return "straight", ""
    tag = border_style.strip().lower().replace("-", "_").replace(" ", "_")
    family, _, sub_style = tag.partition("_")
    return family or "straight", sub_style


# Geometry

@dataclass(frozen=True)
class Box:
    """Axis-aligned box in document user units."""
    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @classmethod
    def from_xywh(cls, x: float, y: float, width: float, height: float) -> "Box":
        return cls(x, y, x + width, y + height)

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    @property
    def center_x(self) -> float:
        return (self.min_x + self.max_x) / 2

    @property
    def center_y(self) -> float:
        return (self.min_y + self.max_y) / 2

    def union(self, other: "Box") -> "Box":
        return Box(
            min(self.min_x, other.min_x),
            min(self.min_y, other.min_y),
            max(self.max_x, other.max_x),
            max(self.max_y, other.max_y),
        )

    def expand(self, pad_x: float, pad_y: Optional[float] = None) -> "Box":
        pad_y = pad_x if pad_y is None else pad_y
        return Box(self.min_x - pad_x, self.min_y - pad_y, self.max_x + pad_x, self.max_y + pad_y)


@dataclass
class ContainerBox:
    """A `ct-<n>` container found in a template document."""
    number: int
    element_id: str
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0


@dataclass
class ZoneInfo:
    """A text-bearing element found in a template document."""
    index: int
    text_content: str
    font_family: str = ""
    font_size: float = 0.0
    font_weight: str = ""
    fill: str = ""
    stroke: str = ""
    stroke_width: float = 0.0
    stroke_miterlimit: str = ""
    transform: str = ""
    parent_id: Optional[str] = None
    dt_number: Optional[int] = None  # from a dt-<n> ancestor layer


@dataclass
class TextMeasurement:
    """Rendered widths of each line of one text zone."""
    line_widths: List[float] = field(default_factory=list)

    @property
    def widest(self) -> float:
        return max(self.line_widths) if self.line_widths else 0.0


# Catalog

@dataclass
class TextZone:
    """
    An editable (or fixed) text region of a template.

    element_index is the zero-based position of the <text> element
    in document order.
    """
    label: str
    element_index: int = 0
    id: Optional[str] = None
    font_family: Optional[str] = None
    font_size: Optional[float] = None
    font_color: Optional[str] = None
    font_weight: Optional[str] = None
    stroke: Optional[str] = None
    stroke_width: Optional[float] = None
    transform_matrix: Optional[str] = None
    bounding_width: Optional[float] = None
    max_length: int = 100
    is_editable: bool = True
    sort_order: int = 0

    @property
    def original_scale_x(self) -> float:
        """Horizontal scale of the zone's authored matrix (1 when absent)."""
        if not self.transform_matrix:
            return 1.0
        inner = self.transform_matrix.strip()
        if inner.startswith("matrix("):
            inner = inner[len("matrix("):].rstrip(")")
        try:
            value = float(inner.replace(",", " ").split()[0])
        except (ValueError, IndexError):
            return 1.0
        return value or 1.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TextZone":
        return cls(
            id=data.get("id"),
            label=data.get("label") or "",
            element_index=int(data.get("svg_element_index") or data.get("element_index") or 0),
            font_family=data.get("font_family"),
            font_size=data.get("font_size"),
            font_color=data.get("font_color"),
            font_weight=data.get("font_weight"),
            stroke=data.get("stroke"),
            stroke_width=data.get("stroke_width"),
            transform_matrix=data.get("transform_matrix"),
            bounding_width=data.get("bounding_width"),
            max_length=int(data.get("max_length") or 100),
            is_editable=bool(data.get("is_editable", True)),
            sort_order=int(data.get("sort_order") or 0),
        )


@dataclass
class Template:
    """
    An admin-authored vector design with one or more text zones.

    Read-only to the engine; the catalog store owns it.
    """
    id: str
    svg_path: str  # locator understood by the document fetcher
    name: str
    width: Optional[float] = None
    height: Optional[float] = None
    shape: Optional[TemplateShape] = None
    object_type: Optional[TemplateObject] = None
    frame_style: FrameStyle = FrameStyle.SINGLE
    border_style: Optional[str] = None
    fill_style: FillStyle = FillStyle.FILLED
    corner_style: Optional[CornerStyle] = None
    colors: List[str] = field(default_factory=list)  # palette hints
    is_active: bool = True
    text_zones: List[TextZone] = field(default_factory=list)

    def editable_zones(self) -> List[TextZone]:
        """Editable zones in ascending sort order."""
        zones = [z for z in self.text_zones if z.is_editable]
        return sorted(zones, key=lambda z: z.sort_order)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Template":
        return cls(
            id=str(data["id"]),
            svg_path=data.get("svg_path") or "",
            name=data.get("name") or "",
            width=data.get("width"),
            height=data.get("height"),
            shape=_enum_or_none(TemplateShape, data.get("shape")),
            object_type=_enum_or_none(TemplateObject, data.get("object_type")),
            frame_style=_enum_or_none(FrameStyle, data.get("frame_style")) or FrameStyle.SINGLE,
            border_style=data.get("border_style"),
            fill_style=_enum_or_none(FillStyle, data.get("fill_style")) or FillStyle.FILLED,
            corner_style=_enum_or_none(CornerStyle, data.get("corner_style")),
            colors=list(data.get("colors") or []),
            is_active=bool(data.get("is_active", True)),
            text_zones=[TextZone.from_dict(z) for z in data.get("text_zones") or []],
        )


# Results

@dataclass
class BaseResult:
    """
    A template after text injection and auto-fit, before any decoration.

    Carries the template tags later stages need so the catalog store is
    not consulted again.
    """
    template_id: str
    document: str
    name: str
    display_text: str
    shape: Optional[TemplateShape] = None
    object_type: Optional[TemplateObject] = None
    frame_style: FrameStyle = FrameStyle.SINGLE
    border_style: Optional[str] = None
    fill_style: FillStyle = FillStyle.FILLED
    corner_style: Optional[CornerStyle] = None
    colors: List[str] = field(default_factory=list)
    width: Optional[float] = None
    height: Optional[float] = None
    fixed_frame: bool = False  # raster background present

    @property
    def border_family(self) -> str:
        return split_border_style(self.border_style)[0]

    @property
    def border_sub_style(self) -> str:
        return split_border_style(self.border_style)[1]


@dataclass
class VariantDescriptor:
    """
    Compact, externalizable form of a Variant.

    Together with the user text it is enough to regenerate the Variant.
    Color is stored as uppercase hex without the '#' prefix.
    """
    template_id: str
    color: str
    frame: FrameRendering = FrameRendering.SINGLE
    tilt: int = 0
    texture: str = ""  # empty means no texture

    def __post_init__(self) -> None:
        self.template_id = str(self.template_id)
        self.color = (self.color or "").strip().lstrip("#").upper()
        self.frame = _enum_or_none(FrameRendering, self.frame) or FrameRendering.SINGLE
        self.tilt = int(self.tilt or 0)
        self.texture = self.texture or ""

    @property
    def hex_color(self) -> str:
        return f"#{self.color}" if self.color else ""

    def to_dict(self) -> Dict[str, Any]:
        """Short-key form used for session-restore blobs."""
        return {
            "t": self.template_id,
            "c": self.color,
            "f": self.frame.value,
            "i": self.tilt,
            "x": self.texture,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "VariantDescriptor":
        return cls(
            template_id=data.get("t", data.get("template_id", "")),
            color=data.get("c", data.get("color", "")),
            frame=data.get("f", data.get("frame")) or FrameRendering.SINGLE,
            tilt=data.get("i", data.get("tilt", 0)),
            texture=data.get("x", data.get("texture", "")) or "",
        )


@dataclass
class Variant:
    """A BaseResult after a specific color/frame/tilt/texture combination."""
    base: BaseResult
    document: str
    color: str  # '#RRGGBB'
    frame: FrameRendering = FrameRendering.SINGLE
    tilt: int = 0
    texture: Optional[str] = None

    @property
    def template_id(self) -> str:
        return self.base.template_id

    @property
    def descriptor(self) -> VariantDescriptor:
        return VariantDescriptor(
            template_id=self.base.template_id,
            color=self.color,
            frame=self.frame,
            tilt=self.tilt,
            texture=self.texture or "",
        )


@dataclass
class DeepLink:
    """Template id + user text + descriptor fields, query-string friendly."""
    template_id: str
    text: str
    color: str = ""
    frame: FrameRendering = FrameRendering.SINGLE
    tilt: int = 0
    texture: str = ""

    @classmethod
    def for_variant(cls, text: str, descriptor: VariantDescriptor) -> "DeepLink":
        return cls(
            template_id=descriptor.template_id,
            text=text,
            color=descriptor.color,
            frame=descriptor.frame,
            tilt=descriptor.tilt,
            texture=descriptor.texture,
        )

    @property
    def descriptor(self) -> VariantDescriptor:
        return VariantDescriptor(
            template_id=self.template_id,
            color=self.color,
            frame=self.frame,
            tilt=self.tilt,
            texture=self.texture,
        )

    def to_query(self) -> str:
        params = {
            "id": self.template_id,
            "text": self.text,
            "color": self.descriptor.color,
            "frame": self.descriptor.frame.value,
            "tilt": str(int(self.tilt or 0)),
        }
        if self.texture:
            params["texture"] = self.texture
        return urlencode(params)

    @classmethod
    def from_query(cls, query: str) -> "DeepLink":
        parsed = parse_qs(query.lstrip("?"), keep_blank_values=True)

        def first(key: str, default: str = "") -> str:
            values = parsed.get(key)
            return values[0] if values else default

        try:
            tilt = int(float(first("tilt", "0") or 0))
        except ValueError:
            tilt = 0
        return cls(
            template_id=first("id"),
            text=first("text"),
            color=first("color"),
            frame=_enum_or_none(FrameRendering, first("frame")) or FrameRendering.SINGLE,
            tilt=tilt,
            texture=first("texture"),
        )


@dataclass
class FamilyGroup:
    """Variants sharing a border family, in display order."""
    family: str
    variants: List[Variant] = field(default_factory=list)


@dataclass
class VariantFilters:
    """
    Filtered-mode selection.

    Empty lists mean "no preference": colors fall back to one random
    palette color, tilts to straight, textures to none, frames to the
    authored frame, attribute filters to everything.
    """
    colors: List[str] = field(default_factory=list)
    tilts: List[int] = field(default_factory=list)
    textures: List[str] = field(default_factory=list)  # "none" means untextured
    frames: List[FrameRendering] = field(default_factory=list)
    shapes: List[str] = field(default_factory=list)
    objects: List[str] = field(default_factory=list)
    borders: List[str] = field(default_factory=list)  # border families
    corners: List[str] = field(default_factory=list)
    fills: List[str] = field(default_factory=list)
