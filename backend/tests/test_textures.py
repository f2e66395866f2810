import asyncio
import random

from domain.errors import FetchError
from services.textures import (
    TEXTURE_GROUPS,
    TextureAsset,
    TextureLibrary,
    overlay_texture,
    parse_texture,
)

STAMP = '<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 100 50"><rect width="10" height="10"/></svg>'

TEXTURE_DOC = (
    '<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 200 200">'
    '<path d="M0 0L5 5" fill="#FFF"/>'
    '<polygon points="1,1 2,2 3,1" fill="#FFF"/>'
    '<circle r="3"/>'
    "</svg>"
)


class FakeFetcher:
    def __init__(self, documents):
        self.documents = documents
        self.calls = []

    def fetch_texture_document(self, texture_id):
        self.calls.append(texture_id)
        if texture_id not in self.documents:
            raise FetchError(texture_id, "HTTP 404")
        return self.documents[texture_id]


def test_parse_texture_keeps_paths_and_polygons_only():
    texture = parse_texture("t", TEXTURE_DOC)
    assert texture.shapes.count("<path") == 1
    assert texture.shapes.count("<polygon") == 1
    assert "<circle" not in texture.shapes
    assert (texture.width, texture.height) == (200, 200)


def test_overlay_scales_past_view_box_and_rotates_about_texture_center():
    texture = TextureAsset("t", '<path d="M0 0"/>', 200, 200)
    out = overlay_texture(STAMP, texture, 45)
    assert '<g transform="translate(-21.0000,-10.5000) scale(0.710000,0.355000)">' in out
    assert '<g transform="rotate(45 100.0000 100.0000)">' in out
    assert out.endswith('<path d="M0 0"/></g></g></svg>')


def test_resolve_picks_group_member():
    library = TextureLibrary(FakeFetcher({}), rng=random.Random(7), cache={})
    assert library.resolve("grungy_texture") in TEXTURE_GROUPS["grungy_texture"]
    assert library.resolve("paper_1") == "paper_1"


def test_textures_are_fetched_once():
    fetcher = FakeFetcher({"paper_1": TEXTURE_DOC})
    library = TextureLibrary(fetcher, rng=random.Random(1), cache={})

    async def run():
        first = await library.apply_texture(STAMP, "paper_1")
        second = await library.apply_texture(STAMP, "paper_1")
        return first, second

    first, second = asyncio.run(run())
    assert fetcher.calls == ["paper_1"]
    assert "<polygon" in first and "<polygon" in second


def test_concurrent_loads_share_one_fetch():
    fetcher = FakeFetcher({"paper_1": TEXTURE_DOC})
    library = TextureLibrary(fetcher, rng=random.Random(1), cache={})

    async def run():
        return await asyncio.gather(*(library.load("paper_1") for _ in range(3)))

    first, second, third = asyncio.run(run())
    assert fetcher.calls == ["paper_1"]
    assert first is second is third


def test_fetch_failure_leaves_stamp_unchanged():
    library = TextureLibrary(FakeFetcher({}), rng=random.Random(1), cache={})
    assert asyncio.run(library.apply_texture(STAMP, "missing")) == STAMP


def test_texture_without_shapes_is_skipped():
    blank = '<svg viewBox="0 0 10 10"><circle r="1"/></svg>'
    library = TextureLibrary(FakeFetcher({"blank": blank}), rng=random.Random(1), cache={})
    assert asyncio.run(library.apply_texture(STAMP, "blank")) == STAMP
    assert asyncio.run(library.apply_texture(STAMP, None)) == STAMP
