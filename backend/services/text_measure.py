"""
Text measurement capability used by the auto-fit pass.

The engine only consumes `TextMeasurer.measure`; the host implementation here
lays text out with Pillow's FreeType binding in a worker thread and bounds the
whole pass with a timeout.
"""
import asyncio
import logging
from pathlib import Path
from typing import Dict, Optional, Protocol, Tuple

from PIL import ImageFont

from domain.errors import MeasurementError, MeasurementTimeout, StampError
from domain.models import TextMeasurement
from services.svg_markup import parse_length
from services.text_injector import get_zone_font_attr, zone_lines
from settings import settings

logger = logging.getLogger(__name__)

DEFAULT_FONT_SIZE = 16.0

# (family, weight) -> font file under the fonts directory
FONT_FILES: Dict[Tuple[str, int], str] = {
    ("Oswald", 200): "Oswald-ExtraLight.ttf",
    ("Oswald", 300): "Oswald-Light.ttf",
    ("Oswald", 400): "Oswald-Regular.ttf",
    ("Oswald", 500): "Oswald-Medium.ttf",
    ("Oswald", 600): "Oswald-SemiBold.ttf",
    ("Oswald", 700): "Oswald-Bold.ttf",
    ("Gunplay", 400): "gunplay-regular.otf",
    ("BebasNeue", 400): "BebasNeue-Regular.ttf",
    ("ArmyRust", 400): "army-rust.ttf",
}

_WEIGHT_NAMES = {"normal": 400, "bold": 700, "lighter": 300, "bolder": 700}


class TextMeasurer(Protocol):
    async def measure(self, document: str, zone_index: int) -> TextMeasurement:
        ...


def parse_weight(value: Optional[str]) -> int:
    if not value:
        return 400
    value = value.strip().lower()
    if value in _WEIGHT_NAMES:
        return _WEIGHT_NAMES[value]
    try:
        return int(float(value))
    except ValueError:
        return 400


def parse_family(value: Optional[str]) -> str:
    """First family of a font-family list, quotes stripped."""
    if not value:
        return ""
    return value.split(",")[0].strip().strip("'\"").strip()


class FontRegistry:
    """Resolves (family, weight) pairs to loaded FreeType fonts."""

    def __init__(self, fonts_dir: Optional[str] = None):
        self.fonts_dir = Path(fonts_dir or settings.FONTS_DIR)
        self._cache: Dict[Tuple[Optional[str], int], ImageFont.FreeTypeFont] = {}

    def resolve(self, family: str, weight: int) -> Optional[Path]:
        """Closest font file for the pair: exact weight, nearest weight, then a name match."""
        candidates = [(abs(w - weight), name) for (fam, w), name in FONT_FILES.items() if fam == family]
        for _, name in sorted(candidates):
            path = self.fonts_dir / name
            if path.exists():
                return path
        if family and self.fonts_dir.is_dir():
            for path in sorted(self.fonts_dir.glob(f"{family}*")):
                if path.suffix.lower() in (".ttf", ".otf"):
                    return path
        return None

    def get_font(self, family: str, weight: int, size: float) -> ImageFont.FreeTypeFont:
        path = self.resolve(family, weight)
        pixel_size = max(1, int(round(size)))
        key = (str(path) if path else None, pixel_size)
        font = self._cache.get(key)
        if font is not None:
            return font
        if path is not None:
            try:
                font = ImageFont.truetype(str(path), pixel_size)
            except OSError:
                logger.warning("[measure] Could not load font %s; using default", path)
        if font is None:
            font = ImageFont.load_default(size=pixel_size)
        self._cache[key] = font
        return font


class PillowTextMeasurer:
    """
    Host measurer backed by Pillow.

    Line widths are advance widths in the text element's own user space
    (before its transform), the same quantity a browser reports through
    getComputedTextLength.
    """

    def __init__(self, fonts: Optional[FontRegistry] = None, timeout: Optional[float] = None):
        self.fonts = fonts or FontRegistry()
        self.timeout = settings.MEASURE_TIMEOUT_SECONDS if timeout is None else timeout

    def _zone_font(self, document: str, zone_index: int) -> Tuple[str, int, float]:
        try:
            family = parse_family(get_zone_font_attr(document, zone_index, "font-family"))
            weight = parse_weight(get_zone_font_attr(document, zone_index, "font-weight"))
            size = parse_length(get_zone_font_attr(document, zone_index, "font-size")) or DEFAULT_FONT_SIZE
        except StampError as exc:
            raise MeasurementError(str(exc)) from exc
        return family, weight, size

    def _measure_sync(self, document: str, zone_index: int) -> TextMeasurement:
        family, weight, size = self._zone_font(document, zone_index)
        try:
            lines = zone_lines(document, zone_index)
        except StampError as exc:
            raise MeasurementError(str(exc)) from exc
        font = self.fonts.get_font(family, weight, size)
        # Pillow rounds the pixel size; scale back to the requested size
        scale = size / max(1, int(round(size)))
        widths = [font.getlength(line) * scale for line in lines]
        return TextMeasurement(line_widths=widths)

    async def measure(self, document: str, zone_index: int) -> TextMeasurement:
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self._measure_sync, document, zone_index),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as exc:
            raise MeasurementTimeout(f"Text measurement exceeded {self.timeout}s") from exc
        except MeasurementError:
            raise
        except (OSError, ValueError) as exc:
            raise MeasurementError(str(exc)) from exc


_default_measurer: Optional[PillowTextMeasurer] = None


def get_default_measurer() -> PillowTextMeasurer:
    global _default_measurer
    if _default_measurer is None:
        _default_measurer = PillowTextMeasurer()
    return _default_measurer
