"""
PNG export of finished variant documents through Wand (ImageMagick).

Wand binds to the MagickWand shared library when it is imported, so the
import is deferred until a PNG is actually requested.
"""
import logging
from typing import Optional

from domain.errors import ExportError
from storage.file_storage import FileStorage

logger = logging.getLogger(__name__)

BASE_DPI = 72
MIN_SCALE = 0.1
MAX_SCALE = 8.0


def export_png(doc: str, scale: float = 2.0) -> bytes:
    """
    Rasterize `doc` at `scale` x its nominal size with a transparent
    background. Raises ExportError when ImageMagick is missing or cannot
    read the markup.
    """
    try:
        from wand.color import Color as WandColor
        from wand.exceptions import WandException
        from wand.image import Image as WandImage
    except ImportError as exc:
        raise ExportError(f"ImageMagick is not available: {exc}") from exc

    scale = min(max(scale, MIN_SCALE), MAX_SCALE)
    resolution = int(round(BASE_DPI * scale))
    try:
        with WandImage(
            blob=doc.encode("utf-8"),
            format="svg",
            resolution=resolution,
            background=WandColor("transparent"),
        ) as img:
            img.alpha_channel = "set"
            data = img.make_blob(format="png")
    except WandException as exc:
        logger.warning("[png_export] Rasterization failed: %s", exc)
        raise ExportError(str(exc)) from exc
    logger.debug("[png_export] Rendered %d bytes at %d dpi", len(data), resolution)
    return data


def save_png(storage: FileStorage, doc: str, scale: float = 2.0, export_id: Optional[str] = None) -> str:
    """Rasterize and store; returns the path relative to the media root."""
    return storage.save_export(export_png(doc, scale), export_id=export_id, ext=".png")
