"""
Texture overlays.

Texture documents are fetched once per identifier and kept for the life of
the process. Only their path/polygon shapes are used; the overlay is
oversized so a random rotation never uncovers the stamp's edges.
"""
import asyncio
import logging
import random
import re
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from domain.errors import StampError
from services.svg_markup import read_view_box

logger = logging.getLogger(__name__)

# Group id -> concrete textures; one is picked at random per use
TEXTURE_GROUPS: Dict[str, Tuple[str, ...]] = {
    "grungy_texture": ("grungy_texture_2", "grungy_texture_3_light"),
}

TEXTURE_SIZE = 1441.201
OVERSIZE = 1.42  # covers the worst case of a 45 degree rotation

_SHAPE_RE = re.compile(r"<(?:path|polygon)\s[^>]*?/>", re.IGNORECASE)


@dataclass
class TextureAsset:
    texture_id: str
    shapes: str
    width: float = TEXTURE_SIZE
    height: float = TEXTURE_SIZE


# Process-wide cache keyed by concrete texture id
_TEXTURE_CACHE: Dict[str, TextureAsset] = {}


def parse_texture(texture_id: str, raw: str) -> TextureAsset:
    shapes = "\n".join(_SHAPE_RE.findall(raw or ""))
    view_box = read_view_box(raw or "")
    if view_box and view_box[2] > 0 and view_box[3] > 0:
        return TextureAsset(texture_id, shapes, view_box[2], view_box[3])
    return TextureAsset(texture_id, shapes)


def overlay_texture(doc: str, texture: TextureAsset, rotation: int) -> str:
    """Composite `texture` above all content, scaled to cover the viewBox."""
    view_box = read_view_box(doc)
    close = doc.rfind("</svg>")
    if not texture.shapes or view_box is None or close == -1:
        return doc
    vb_x, vb_y, vb_w, vb_h = view_box
    scale_x = vb_w * OVERSIZE / texture.width
    scale_y = vb_h * OVERSIZE / texture.height
    offset_x = vb_x - vb_w * (OVERSIZE - 1) / 2
    offset_y = vb_y - vb_h * (OVERSIZE - 1) / 2
    group = (
        f'<g transform="translate({offset_x:.4f},{offset_y:.4f}) scale({scale_x:.6f},{scale_y:.6f})">'
        f'<g transform="rotate({rotation} {texture.width / 2:.4f} {texture.height / 2:.4f})">'
        f"{texture.shapes}</g></g>"
    )
    return doc[:close] + group + doc[close:]


class TextureLibrary:
    """Fetches, caches and applies texture overlays."""

    def __init__(self, fetcher, rng: Optional[random.Random] = None, cache: Optional[Dict[str, TextureAsset]] = None):
        self.fetcher = fetcher
        self.rng = rng or random.Random()
        self.cache = _TEXTURE_CACHE if cache is None else cache
        # texture id -> fetch in progress; concurrent requests share one fetch
        self._inflight: Dict[str, asyncio.Task] = {}

    def resolve(self, texture_id: str) -> str:
        """Concrete texture id; group ids pick one member at random."""
        members = TEXTURE_GROUPS.get(texture_id)
        if members:
            return self.rng.choice(members)
        return texture_id

    async def load(self, texture_id: str) -> TextureAsset:
        cached = self.cache.get(texture_id)
        if cached is not None:
            return cached
        task = self._inflight.get(texture_id)
        if task is None:
            task = asyncio.ensure_future(self._fetch(texture_id))
            self._inflight[texture_id] = task
            task.add_done_callback(lambda _: self._inflight.pop(texture_id, None))
        return await asyncio.shield(task)

    async def _fetch(self, texture_id: str) -> TextureAsset:
        raw = await asyncio.to_thread(self.fetcher.fetch_texture_document, texture_id)
        texture = parse_texture(texture_id, raw)
        self.cache[texture_id] = texture
        logger.info("[textures] Cached %s (%d shapes)", texture_id, texture.shapes.count("<"))
        return texture

    async def apply_texture(self, doc: str, texture_id: Optional[str]) -> str:
        """Overlay a texture; fetch failures and empty textures leave `doc` unchanged."""
        if not texture_id:
            return doc
        concrete = self.resolve(texture_id)
        try:
            texture = await self.load(concrete)
        except StampError:
            logger.warning("[textures] Could not load %s; leaving stamp untextured", concrete, exc_info=True)
            return doc
        if not texture.shapes:
            logger.warning("[textures] Texture %s has no path or polygon shapes", concrete)
            return doc
        return overlay_texture(doc, texture, self.rng.randint(1, 359))
