"""Render stamp variants for a local template SVG.

Usage:
    python scripts/render_stamp.py path/to/template.svg --text "HELLO WORLD" [--color FF0000] [--tilt -20]
        [--frame double] [--texture grungy_texture] [--count 5] [--seed 123] [--png]

Text zones are taken from the same auto-suggestion the admin flow uses, so
any template with <text> elements works without a catalog entry. Outputs
land in --out (default: ./stamp_out), one SVG per variant; PNGs go to
--out/exports/.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import random
import sys
from pathlib import Path
from typing import List

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from domain.models import FrameRendering, Template, VariantDescriptor  # noqa: E402
from services.document_fetcher import DocumentFetcher  # noqa: E402
from services.document_normalizer import normalize  # noqa: E402
from services.png_export import save_png  # noqa: E402
from services.variant_blurb import describe_variant  # noqa: E402
from services.variant_generator import VariantGenerator  # noqa: E402
from services.zone_locator import analyze_template  # noqa: E402
from storage.file_storage import FileStorage  # noqa: E402

logger = logging.getLogger("render_stamp")


class SingleTemplateCatalog:
    def __init__(self, template: Template):
        self.template = template

    def list_active_templates(self) -> List[Template]:
        return [self.template]


def _template_for(svg_path: Path) -> Template:
    doc = normalize(svg_path.read_text(encoding="utf-8"))
    analysis = analyze_template(doc)
    return Template(
        id=svg_path.stem,
        svg_path=svg_path.name,
        name=svg_path.stem.replace("_", " "),
        width=analysis["width"],
        height=analysis["height"],
        text_zones=analysis["suggested_zones"],
    )


async def _render(args: argparse.Namespace) -> int:
    svg_path = Path(args.template).resolve()
    if not svg_path.exists():
        logger.error("Template not found: %s", svg_path)
        return 1
    template = _template_for(svg_path)
    logger.info("Template %s: %d text zone(s)", template.id, len(template.text_zones))

    storage = FileStorage(str(svg_path.parent))
    generator = VariantGenerator(
        SingleTemplateCatalog(template),
        DocumentFetcher(storage, template_base_url="", texture_base_url=args.texture_base_url or ""),
        rng=random.Random(args.seed),
    )
    if args.color:
        descriptors = [
            VariantDescriptor(template.id, args.color, FrameRendering(args.frame), args.tilt, args.texture or "")
        ]
        variants = await generator.restore(args.text, descriptors)
    else:
        variants = await generator.sample_initial(args.text, args.count)
    if not variants:
        logger.error("No variants produced for %s", svg_path.name)
        return 1

    out_dir = Path(args.out)
    out_dir.mkdir(parents=True, exist_ok=True)
    exports = FileStorage(str(out_dir))
    for i, variant in enumerate(variants):
        stem = f"{template.id}_{i:02d}_{variant.descriptor.color}"
        (out_dir / f"{stem}.svg").write_text(variant.document, encoding="utf-8")
        if args.png:
            save_png(exports, variant.document, args.scale, export_id=stem)
        logger.info("%s: %s", stem, describe_variant(variant))
    return 0


def main() -> int:
    if not logger.handlers:
        logging.basicConfig(level=logging.INFO, format="%(message)s")
    parser = argparse.ArgumentParser(description="Render stamp variants for a local template SVG.")
    parser.add_argument("template", help="Path to the template SVG.")
    parser.add_argument("--text", required=True)
    parser.add_argument("--color", default=None, help="Hex color; renders a single variant when set.")
    parser.add_argument("--tilt", type=int, default=0)
    parser.add_argument("--frame", choices=[f.value for f in FrameRendering], default="single")
    parser.add_argument("--texture", default=None, help="Texture id (textures/<id>.svg next to the template).")
    parser.add_argument("--texture-base-url", default=None)
    parser.add_argument("--count", type=int, default=5, help="Variants in the random sample when --color is unset.")
    parser.add_argument("--seed", type=int, default=123)
    parser.add_argument("--out", default="stamp_out")
    parser.add_argument("--png", action="store_true", help="Also rasterize each variant to PNG.")
    parser.add_argument("--scale", type=float, default=2.0)
    args = parser.parse_args()
    return asyncio.run(_render(args))


if __name__ == "__main__":
    sys.exit(main())
