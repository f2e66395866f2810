"""
Variant generation.

Turns catalog templates plus user text into BaseResults (normalize, inject,
auto-fit) and fans those out into decorated Variants:

    BaseResult -> colorize -> crop fixed frame -> corners -> frame -> tilt -> texture

Three batch modes share the same per-variant chain:
- catalog: every single-frame template x every compatible frame rendering,
  grouped by border family for display;
- initial sample: a small random first batch shown as soon as text arrives;
- filtered: the cross product of the user's selections, shuffled and paged.

Templates are processed one at a time. A template that cannot be fetched
or fitted is logged and skipped; a decoration stage that fails leaves the
variant at the last stage that succeeded.
"""
import asyncio
import itertools
import logging
import random
from collections import OrderedDict
from typing import Callable, Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

from domain.models import (
    BaseResult,
    CornerStyle,
    FamilyGroup,
    FillStyle,
    FrameRendering,
    FrameStyle,
    Template,
    Variant,
    VariantDescriptor,
    VariantFilters,
)
from services.auto_fit import auto_fit
from services.colorizer import colorize, normalize_hex
from services.document_normalizer import normalize
from services.frames import FRAME_COMPATIBILITY, apply_corner_style, apply_frame, compatible_frames
from services.geometry import crop_to_raster_frame
from services.svg_markup import has_raster_background
from services.text_injector import inject_text, resolve_display_text, select_policy
from services.text_measure import TextMeasurer
from services.textures import TextureLibrary
from services.tilt import apply_tilt
from settings import settings

logger = logging.getLogger(__name__)

PALETTE_COLORS: Tuple[str, ...] = (
    "#000000", "#FF0000", "#8B0000", "#FF1493", "#FF4500", "#FF8C00",
    "#FFD700", "#FFFF00", "#BDB76B", "#9400D3", "#4B0082", "#7CFC00",
    "#32CD32", "#00FF7F", "#008000", "#808000", "#556B2F", "#00FFFF",
    "#00CED1", "#4682B4", "#1E90FF", "#4169E1", "#000080", "#8B4513",
    "#C0C0C0", "#A9A9A9",
)

INITIAL_TILTS = (0, -20)
INITIAL_TEXTURES = (None, "grungy_texture")

# Fixed-frame templates without a measured zone are fitted against this
FIXED_FRAME_FONT_SIZE = 128.0

NO_TEXTURE = "none"

_FAMILY_ORDER = list(FRAME_COMPATIBILITY)
_CORNER_ORDER = list(CornerStyle)
_FILL_ORDER = list(FillStyle)


class TemplateCatalog(Protocol):
    def list_active_templates(self) -> List[Template]:
        ...


def _family_rank(family: str) -> Tuple[int, str]:
    if family in _FAMILY_ORDER:
        return _FAMILY_ORDER.index(family), family
    return len(_FAMILY_ORDER), family


def _display_key(variant: Variant):
    base = variant.base
    corner = _CORNER_ORDER.index(base.corner_style) if base.corner_style else 0
    fill = _FILL_ORDER.index(base.fill_style) if base.fill_style else 0
    return (base.border_sub_style, corner, fill, base.name, list(FrameRendering).index(variant.frame))


def applicable_frames(base: BaseResult, requested: Iterable[FrameRendering]) -> List[FrameRendering]:
    """Requested renderings the base's border supports; authored doubles stay as they are."""
    if base.frame_style == FrameStyle.DOUBLE:
        allowed = {FrameRendering.SINGLE}
    else:
        allowed = compatible_frames(base.border_style)
    return [frame for frame in requested if frame in allowed]


def _tag_value(value) -> str:
    if value is None:
        return ""
    return getattr(value, "value", value)


def matches_filters(base: BaseResult, filters: VariantFilters) -> bool:
    checks = (
        (filters.shapes, _tag_value(base.shape)),
        (filters.objects, _tag_value(base.object_type)),
        (filters.borders, base.border_family),
        (filters.corners, _tag_value(base.corner_style) or CornerStyle.STRAIGHT.value),
        (filters.fills, _tag_value(base.fill_style)),
    )
    for wanted, actual in checks:
        if wanted and actual not in {w.lower() for w in wanted}:
            return False
    return True


class VariantPager:
    """Lazily renders a shuffled list of pending variants, one page at a time."""

    def __init__(
        self,
        generator: "VariantGenerator",
        pending: List[Tuple[BaseResult, VariantDescriptor]],
        page_size: Optional[int] = None,
    ):
        self.generator = generator
        self.pending = pending
        self.page_size = page_size or settings.DEFAULT_PAGE_SIZE
        self.cursor = 0

    @property
    def total(self) -> int:
        return len(self.pending)

    @property
    def exhausted(self) -> bool:
        return self.cursor >= len(self.pending)

    async def next_page(self) -> List[Variant]:
        page = self.pending[self.cursor:self.cursor + self.page_size]
        self.cursor += len(page)
        variants = []
        for base, descriptor in page:
            variants.append(await self.generator.render_variant(base, descriptor))
        return variants


class VariantGenerator:
    def __init__(
        self,
        templates: TemplateCatalog,
        fetcher,
        textures: Optional[TextureLibrary] = None,
        measurer: Optional[TextMeasurer] = None,
        rng: Optional[random.Random] = None,
        palette: Optional[Sequence[str]] = None,
        cache_size: Optional[int] = None,
    ):
        self.templates = templates
        self.fetcher = fetcher
        self.rng = rng or random.Random()
        self.textures = textures or TextureLibrary(fetcher, rng=self.rng)
        self.measurer = measurer
        self.palette = [normalize_hex(c) for c in (palette or PALETTE_COLORS)]
        self.cache_size = settings.BASE_CACHE_SIZE if cache_size is None else cache_size
        self._base_cache: "OrderedDict[Tuple[str, str], BaseResult]" = OrderedDict()

    # Base results

    async def build_base_result(self, template: Template, text: str) -> BaseResult:
        """
        Fetch, normalize, inject `text` into every editable zone and auto-fit.

        Raises FetchError, MalformedDocument or ZoneNotFound; batch callers
        catch these per template.
        """
        key = (template.id, text)
        cached = self._base_cache.get(key)
        if cached is not None:
            self._base_cache.move_to_end(key)
            return cached

        raw = await asyncio.to_thread(self.fetcher.fetch_template_document, template.svg_path)
        doc = normalize(raw)
        display_text = resolve_display_text(doc, text)
        policy = select_policy(doc)
        fitted = False
        editable = template.editable_zones()
        for zone in editable:
            zone_text = text[:zone.max_length] if zone.max_length else text
            doc = inject_text(doc, zone.element_index, zone_text, policy)
            if zone.bounding_width:
                doc = await auto_fit(
                    doc,
                    zone.element_index,
                    zone.bounding_width,
                    zone.font_size or 0.0,
                    zone.original_scale_x,
                    measurer=self.measurer,
                )
                fitted = True
        fixed_frame = has_raster_background(doc)
        if fixed_frame and not fitted and editable:
            # the frame has a single text box; it holds the first editable zone
            doc = await auto_fit(doc, editable[0].element_index, 1, FIXED_FRAME_FONT_SIZE, 1.0, measurer=self.measurer)

        base = BaseResult(
            template_id=template.id,
            document=doc,
            name=template.name,
            display_text=display_text,
            shape=template.shape,
            object_type=template.object_type,
            frame_style=template.frame_style,
            border_style=template.border_style,
            fill_style=template.fill_style,
            corner_style=template.corner_style,
            colors=list(template.colors),
            width=template.width,
            height=template.height,
            fixed_frame=fixed_frame,
        )
        self._base_cache[key] = base
        while len(self._base_cache) > self.cache_size:
            self._base_cache.popitem(last=False)
        return base

    async def build_base_results(self, text: str, templates: Optional[List[Template]] = None) -> List[BaseResult]:
        """BaseResults for every active template, skipping the ones that fail."""
        if templates is None:
            templates = self.templates.list_active_templates()
        results = []
        for template in templates:
            try:
                results.append(await self.build_base_result(template, text))
            except Exception:
                logger.warning("[variants] Skipping template %s (%s)", template.id, template.name, exc_info=True)
        logger.info("[variants] Built %d/%d base results", len(results), len(templates))
        return results

    def clear_cache(self) -> None:
        self._base_cache.clear()

    def forget_text(self, text: str) -> None:
        """Drop cached base results built for `text`."""
        for key in [k for k in self._base_cache if k[1] == text]:
            del self._base_cache[key]

    # Per-variant chain

    def _run_stage(self, name: str, base: BaseResult, stage: Callable[[str], str], doc: str) -> Optional[str]:
        try:
            return stage(doc)
        except Exception:
            logger.warning("[variants] %s failed for template %s; keeping earlier stages", name, base.template_id, exc_info=True)
            return None

    async def render_variant(self, base: BaseResult, descriptor: VariantDescriptor) -> Variant:
        """
        Apply a descriptor's decorations to a base result.

        The returned Variant records only what was actually applied: a
        frame the border cannot carry is recorded as SINGLE, a texture that
        could not be loaded as None.
        """
        color = descriptor.hex_color
        doc = base.document

        colored = self._run_stage("colorize", base, lambda d: colorize(d, color), doc) if color else doc
        if colored is None:
            return Variant(base=base, document=doc, color="")
        doc = colored
        variant = Variant(base=base, document=doc, color=color)

        if base.fixed_frame:
            cropped = self._run_stage("crop", base, crop_to_raster_frame, doc)
            if cropped is None:
                return variant
            doc = variant.document = cropped

        cornered = self._run_stage("corners", base, lambda d: apply_corner_style(d, base.corner_style), doc)
        if cornered is None:
            return variant
        doc = variant.document = cornered

        frames = applicable_frames(base, [descriptor.frame])
        frame = frames[0] if frames else FrameRendering.SINGLE
        if frame != FrameRendering.SINGLE:
            framed = self._run_stage(
                "frame", base, lambda d: apply_frame(d, frame, color or None, base.border_style), doc
            )
            if framed is None:
                return variant
            doc = variant.document = framed
            variant.frame = frame

        if descriptor.tilt:
            tilted = self._run_stage("tilt", base, lambda d: apply_tilt(d, descriptor.tilt), doc)
            if tilted is None:
                return variant
            doc = variant.document = tilted
            variant.tilt = descriptor.tilt

        texture = descriptor.texture
        if texture and texture != NO_TEXTURE:
            try:
                textured = await self.textures.apply_texture(doc, texture)
            except Exception:
                logger.warning("[variants] texture failed for template %s", base.template_id, exc_info=True)
                textured = doc
            if textured != doc:
                variant.document = textured
                variant.texture = texture
        return variant

    def random_color(self, exclude: Iterable[str] = ()) -> str:
        excluded = set(exclude)
        available = [c for c in self.palette if c not in excluded] or list(self.palette)
        return self.rng.choice(available)

    # Batch modes

    async def catalog(self, text: str) -> List[FamilyGroup]:
        """Single-frame templates x compatible frames, grouped by border family."""
        bases = await self.build_base_results(text)
        variants: List[Variant] = []
        for base in bases:
            if base.frame_style != FrameStyle.SINGLE:
                continue
            for frame in applicable_frames(base, list(FrameRendering)):
                descriptor = VariantDescriptor(base.template_id, self.random_color(), frame=frame)
                variants.append(await self.render_variant(base, descriptor))

        groups: Dict[str, FamilyGroup] = {}
        for variant in variants:
            family = variant.base.border_family
            groups.setdefault(family, FamilyGroup(family=family)).variants.append(variant)
        ordered = sorted(groups.values(), key=lambda g: _family_rank(g.family))
        for group in ordered:
            group.variants.sort(key=_display_key)
        return ordered

    async def sample_initial(self, text: str, count: Optional[int] = None) -> List[Variant]:
        """
        The first batch shown for new text: `count` variants over shuffled
        templates, each with a palette color not yet used in the batch and a
        random tilt and texture.
        """
        count = settings.INITIAL_SAMPLE_SIZE if count is None else count
        bases = await self.build_base_results(text)
        if not bases:
            return []
        shuffled = list(bases)
        self.rng.shuffle(shuffled)
        used: List[str] = []
        variants = []
        for i in range(count):
            base = shuffled[i % len(shuffled)]
            if len(used) >= len(self.palette):
                used = []
            color = self.random_color(used)
            used.append(color)
            descriptor = VariantDescriptor(
                base.template_id,
                color,
                tilt=self.rng.choice(INITIAL_TILTS),
                texture=self.rng.choice(INITIAL_TEXTURES) or "",
            )
            variants.append(await self.render_variant(base, descriptor))
        return variants

    async def filtered(self, text: str, filters: VariantFilters, page_size: Optional[int] = None) -> VariantPager:
        """Shuffled cross product of matching templates and the selected options."""
        bases = [b for b in await self.build_base_results(text) if matches_filters(b, filters)]
        colors = [normalize_hex(c) for c in filters.colors] or [self.random_color()]
        tilts = [int(t) for t in filters.tilts] or [0]
        textures = [t if t and t != NO_TEXTURE else "" for t in filters.textures] or [""]
        requested_frames = [FrameRendering(f) for f in filters.frames] or [FrameRendering.SINGLE]

        pending: List[Tuple[BaseResult, VariantDescriptor]] = []
        for base in bases:
            frames = applicable_frames(base, requested_frames)
            for color, frame, tilt, texture in itertools.product(colors, frames, tilts, textures):
                pending.append((base, VariantDescriptor(base.template_id, color, frame, tilt, texture)))
        self.rng.shuffle(pending)
        logger.info("[variants] Filtered selection: %d templates, %d variants", len(bases), len(pending))
        return VariantPager(self, pending, page_size)

    async def restore(self, text: str, descriptors: Sequence[VariantDescriptor]) -> List[Variant]:
        """Regenerate variants from descriptors; unknown templates are skipped."""
        by_id = {t.id: t for t in self.templates.list_active_templates()}
        variants = []
        for descriptor in descriptors:
            template = by_id.get(descriptor.template_id)
            if template is None:
                logger.info("[variants] Template %s no longer active; skipping", descriptor.template_id)
                continue
            try:
                base = await self.build_base_result(template, text)
            except Exception:
                logger.warning("[variants] Could not rebuild template %s", template.id, exc_info=True)
                continue
            variants.append(await self.render_variant(base, descriptor))
        return variants
