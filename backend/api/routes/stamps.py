"""
Stamp API routes.
"""
import logging
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, HTTPException, Request, Response
from pydantic import BaseModel, Field

from api.database import StampSession, sessions_db
from db import SessionLocal
from domain.errors import ExportError
from domain.models import DeepLink, FrameRendering, Variant, VariantDescriptor, VariantFilters
from repositories import SqlTemplateCatalog
from services.document_fetcher import DocumentFetcher
from services.png_export import export_png
from services.variant_blurb import color_name, describe_variant
from services.variant_generator import VariantGenerator
from services.text_measure import get_default_measurer
from settings import settings
from storage.file_storage import FileStorage

router = APIRouter()
storage = FileStorage(settings.STAMP_MEDIA_ROOT)
generator = VariantGenerator(
    SqlTemplateCatalog(SessionLocal),
    DocumentFetcher(storage),
    measurer=get_default_measurer(),
)
logger = logging.getLogger(__name__)

EMPTY_MESSAGE = "No stamps could be made from this text. Try different wording."
EXHAUSTED_MESSAGE = "No more stamps for this selection."


class StampCreate(BaseModel):
    text: str = Field(..., min_length=1, max_length=200)
    count: Optional[int] = Field(None, ge=1, le=50)


class TextUpdate(BaseModel):
    text: str = Field(..., min_length=1, max_length=200)


class FiltersRequest(BaseModel):
    colors: List[str] = []
    tilts: List[int] = []
    textures: List[str] = []
    frames: List[FrameRendering] = []
    shapes: List[str] = []
    objects: List[str] = []
    borders: List[str] = []
    corners: List[str] = []
    fills: List[str] = []
    page_size: Optional[int] = Field(None, ge=1, le=100)


class RestoreRequest(BaseModel):
    text: str = Field(..., min_length=1, max_length=200)
    descriptors: List[Dict[str, Any]]


class VariantResponse(BaseModel):
    template_id: str
    name: str
    display_text: str
    color: str
    color_name: str
    frame: str
    tilt: int
    texture: Optional[str] = None
    descriptor: Dict[str, Any]
    deep_link: str
    description: str
    svg: str


class BatchResponse(BaseModel):
    session_id: Optional[str] = None
    variants: List[VariantResponse]
    message: Optional[str] = None
    exhausted: bool = False
    total: Optional[int] = None
    stale: bool = False


class FamilyGroupResponse(BaseModel):
    family: str
    variants: List[VariantResponse]


class CatalogResponse(BaseModel):
    session_id: str
    groups: List[FamilyGroupResponse]
    message: Optional[str] = None


def variant_to_response(variant: Variant, text: str) -> VariantResponse:
    """Convert domain Variant to API response."""
    descriptor = variant.descriptor
    return VariantResponse(
        template_id=variant.template_id,
        name=variant.base.name,
        display_text=variant.base.display_text,
        color=variant.color,
        color_name=color_name(variant.color) if variant.color else "",
        frame=variant.frame.value,
        tilt=variant.tilt,
        texture=variant.texture,
        descriptor=descriptor.to_dict(),
        deep_link=DeepLink.for_variant(text, descriptor).to_query(),
        description=describe_variant(variant),
        svg=variant.document,
    )


def _get_session(session_id: str) -> StampSession:
    session = sessions_db.get(session_id)
    if not session:
        raise HTTPException(status_code=404, detail="Session not found")
    return session


def _batch(
    session: StampSession,
    variants: List[Variant],
    empty_message: str = EMPTY_MESSAGE,
    exhausted: bool = False,
    total: Optional[int] = None,
) -> BatchResponse:
    return BatchResponse(
        session_id=session.id,
        variants=[variant_to_response(v, session.text) for v in variants],
        message=None if variants else empty_message,
        exhausted=exhausted,
        total=total,
    )


def _stale(session: StampSession) -> BatchResponse:
    logger.info("[stamps] Dropping superseded result for session %s", session.id)
    return BatchResponse(session_id=session.id, variants=[], stale=True)


@router.post("", response_model=BatchResponse)
async def create_stamps(payload: StampCreate):
    """Start a session for `text` and return the initial random batch."""
    session = StampSession(text=payload.text.strip())
    sessions_db[session.id] = session
    token = session.begin()
    variants = await generator.sample_initial(session.text, payload.count)
    if not session.is_current(token):
        return _stale(session)
    return _batch(session, variants)


@router.put("/{session_id}/text", response_model=BatchResponse)
async def update_text(session_id: str, payload: TextUpdate):
    """Replace the session text; any in-flight work for the old text is discarded."""
    session = _get_session(session_id)
    previous = session.text
    session.text = payload.text.strip()
    session.pager = None
    if previous != session.text and not any(s.text == previous for s in sessions_db.values()):
        generator.forget_text(previous)
    token = session.begin()
    variants = await generator.sample_initial(session.text)
    if not session.is_current(token):
        return _stale(session)
    return _batch(session, variants)


@router.post("/restore", response_model=BatchResponse)
async def restore_stamps(payload: RestoreRequest):
    """Regenerate a previously shown set of variants from their descriptors."""
    descriptors = [VariantDescriptor.from_dict(d) for d in payload.descriptors]
    session = StampSession(text=payload.text.strip())
    sessions_db[session.id] = session
    variants = await generator.restore(session.text, descriptors)
    return _batch(session, variants)


@router.get("/variant")
async def get_variant_svg(request: Request):
    """Render a single deep-linked variant as SVG."""
    variant = await _deep_link_variant(request)
    return Response(content=variant.document, media_type="image/svg+xml")


@router.get("/variant.png")
async def get_variant_png(request: Request, scale: float = 2.0):
    """Render a single deep-linked variant as PNG."""
    if not settings.PNG_EXPORT_ENABLED:
        raise HTTPException(status_code=503, detail="PNG export is disabled")
    variant = await _deep_link_variant(request)
    try:
        data = export_png(variant.document, scale)
    except ExportError:
        logger.exception("[stamps] PNG export failed for template %s", variant.template_id)
        raise HTTPException(status_code=500, detail="Failed to render PNG")
    return Response(content=data, media_type="image/png")


async def _deep_link_variant(request: Request) -> Variant:
    link = DeepLink.from_query(request.url.query)
    if not link.template_id or not link.text:
        raise HTTPException(status_code=400, detail="Deep link needs id and text")
    variants = await generator.restore(link.text, [link.descriptor])
    if not variants:
        raise HTTPException(status_code=404, detail="Template not found")
    return variants[0]


@router.post("/{session_id}/filters", response_model=BatchResponse)
async def apply_filters(session_id: str, payload: FiltersRequest):
    """Build the filtered selection and return its first page."""
    session = _get_session(session_id)
    token = session.begin()
    filters = VariantFilters(**payload.model_dump(exclude={"page_size"}))
    pager = await generator.filtered(session.text, filters, payload.page_size)
    if not session.is_current(token):
        return _stale(session)
    session.pager = pager
    variants = await pager.next_page()
    if not session.is_current(token):
        return _stale(session)
    return _batch(session, variants, exhausted=pager.exhausted, total=pager.total)


@router.get("/{session_id}/next", response_model=BatchResponse)
async def next_page(session_id: str):
    """Next page of the current filtered selection."""
    session = _get_session(session_id)
    pager = session.pager
    if pager is None:
        raise HTTPException(status_code=400, detail="No filtered selection for this session")
    if pager.exhausted:
        return BatchResponse(
            session_id=session.id, variants=[], message=EXHAUSTED_MESSAGE, exhausted=True, total=pager.total
        )
    token = session.generation
    variants = await pager.next_page()
    if not session.is_current(token) or session.pager is not pager:
        return _stale(session)
    return _batch(
        session, variants, exhausted=pager.exhausted, total=pager.total, empty_message=EXHAUSTED_MESSAGE
    )


@router.get("/{session_id}/catalog", response_model=CatalogResponse)
async def get_catalog(session_id: str):
    """Every single-frame template in every compatible frame, grouped by border family."""
    session = _get_session(session_id)
    groups = await generator.catalog(session.text)
    return CatalogResponse(
        session_id=session.id,
        groups=[
            FamilyGroupResponse(
                family=group.family,
                variants=[variant_to_response(v, session.text) for v in group.variants],
            )
            for group in groups
        ],
        message=None if groups else EMPTY_MESSAGE,
    )
