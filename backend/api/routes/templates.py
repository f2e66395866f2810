"""
Template catalog API routes.
"""
import logging
from typing import List, Optional
from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from db import SessionLocal
from domain.errors import MalformedDocument
from domain.models import Template
from repositories import TemplatesRepository
from services.document_normalizer import normalize
from services.frames import compatible_frames
from services.zone_locator import analyze_template

router = APIRouter()
templates_repo = TemplatesRepository()
logger = logging.getLogger(__name__)


class TextZoneResponse(BaseModel):
    label: str
    element_index: int
    font_family: Optional[str] = None
    font_size: Optional[float] = None
    font_color: Optional[str] = None
    font_weight: Optional[str] = None
    transform_matrix: Optional[str] = None
    bounding_width: Optional[float] = None
    is_editable: bool = True
    sort_order: int = 0


class TemplateResponse(BaseModel):
    id: str
    name: str
    shape: Optional[str] = None
    object_type: Optional[str] = None
    frame_style: str
    border_style: Optional[str] = None
    fill_style: str
    corner_style: Optional[str] = None
    frames: List[str]
    text_zones: List[TextZoneResponse]


class AnalyzeRequest(BaseModel):
    svg: str = Field(..., min_length=1)


class ContainerResponse(BaseModel):
    number: int
    element_id: str
    x: float
    y: float
    width: float
    height: float


class ColorResponse(BaseModel):
    color: str
    count: int
    roles: List[str]


class AnalyzeResponse(BaseModel):
    width: float
    height: float
    containers: List[ContainerResponse]
    suggested_zones: List[TextZoneResponse]
    colors: List[ColorResponse]


def _zone_response(zone) -> TextZoneResponse:
    return TextZoneResponse(
        label=zone.label,
        element_index=zone.element_index,
        font_family=zone.font_family,
        font_size=zone.font_size,
        font_color=zone.font_color,
        font_weight=zone.font_weight,
        transform_matrix=zone.transform_matrix,
        bounding_width=zone.bounding_width,
        is_editable=zone.is_editable,
        sort_order=zone.sort_order,
    )


def template_to_response(template: Template) -> TemplateResponse:
    """Convert domain Template to API response."""
    return TemplateResponse(
        id=template.id,
        name=template.name,
        shape=template.shape.value if template.shape else None,
        object_type=template.object_type.value if template.object_type else None,
        frame_style=template.frame_style.value,
        border_style=template.border_style,
        fill_style=template.fill_style.value,
        corner_style=template.corner_style.value if template.corner_style else None,
        frames=sorted(f.value for f in compatible_frames(template.border_style)),
        text_zones=[_zone_response(z) for z in template.text_zones],
    )


@router.get("", response_model=List[TemplateResponse])
async def list_templates():
    """List active templates."""
    with SessionLocal() as session:
        templates = templates_repo.list_active(session)
    return [template_to_response(t) for t in templates]


@router.post("/analyze", response_model=AnalyzeResponse)
async def analyze(payload: AnalyzeRequest):
    """Suggest text zones, bounding widths and colors for an uploaded template."""
    try:
        doc = normalize(payload.svg)
        analysis = analyze_template(doc)
    except MalformedDocument as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return AnalyzeResponse(
        width=analysis["width"],
        height=analysis["height"],
        containers=[
            ContainerResponse(
                number=c.number, element_id=c.element_id, x=c.x, y=c.y, width=c.width, height=c.height
            )
            for _, c in sorted(analysis["containers"].items())
        ],
        suggested_zones=[_zone_response(z) for z in analysis["suggested_zones"]],
        colors=[ColorResponse(color=c.color, count=c.count, roles=c.roles) for c in analysis["colors"]],
    )
