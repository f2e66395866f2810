import asyncio
import random

import pytest

from domain.errors import FetchError
from domain.models import (
    FrameRendering,
    FrameStyle,
    TextMeasurement,
    Template,
    TextZone,
    VariantDescriptor,
    VariantFilters,
)
from services.svg_markup import find_text_elements
from services.textures import TextureLibrary
from services.variant_generator import VariantGenerator, applicable_frames, matches_filters

STAMP_DOC = (
    '<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 400 200">'
    '<rect x="20" y="20" width="360" height="160" fill="none" stroke="#E4002B" stroke-width="6"/>'
    '<rect x="60" y="60" width="280" height="80" fill="#E4002B"/>'
    '<text transform="matrix(1 0 0 1 200 110)" font-size="40" fill="#FFFFFF">SAMPLE</text>'
    "</svg>"
)

TEXTURE_DOC = '<svg viewBox="0 0 100 100"><path d="M0 0L9 9" fill="#FFFFFF"/></svg>'


class FakeCatalog:
    def __init__(self, templates):
        self.templates = templates

    def list_active_templates(self):
        return list(self.templates)


class FakeFetcher:
    def __init__(self, documents):
        self.documents = documents
        self.template_calls = []

    def fetch_template_document(self, locator):
        self.template_calls.append(locator)
        if locator not in self.documents:
            raise FetchError(locator, "HTTP 404")
        return self.documents[locator]

    def fetch_texture_document(self, texture_id):
        if texture_id == "missing":
            raise FetchError(texture_id, "HTTP 404")
        return TEXTURE_DOC


def _template(template_id, border_style="straight", frame_style=FrameStyle.SINGLE, svg_path="stamp.svg", **kwargs):
    return Template(
        id=template_id,
        svg_path=svg_path,
        name=f"Stamp {template_id}",
        border_style=border_style,
        frame_style=frame_style,
        text_zones=[TextZone(label="Text", element_index=0)],
        **kwargs,
    )


TEMPLATES = [
    _template("t1"),
    _template("t2", border_style="wavy_gentle"),
    _template("t3", frame_style=FrameStyle.DOUBLE),
    _template("broken", svg_path="missing.svg"),
]


@pytest.fixture
def fetcher():
    return FakeFetcher({"stamp.svg": STAMP_DOC})


@pytest.fixture
def generator(fetcher):
    rng = random.Random(42)
    textures = TextureLibrary(fetcher, rng=rng, cache={})
    return VariantGenerator(FakeCatalog(TEMPLATES), fetcher, textures=textures, rng=rng)


def test_failing_templates_are_skipped(generator):
    bases = asyncio.run(generator.build_base_results("hello"))
    assert [b.template_id for b in bases] == ["t1", "t2", "t3"]
    assert bases[0].display_text == "HELLO"
    assert ">HELLO</text>" in bases[0].document


def test_base_results_are_cached_per_template_and_text(generator, fetcher):
    asyncio.run(generator.build_base_results("hello"))
    asyncio.run(generator.build_base_results("hello"))
    assert fetcher.template_calls.count("stamp.svg") == 3
    asyncio.run(generator.build_base_results("goodbye"))
    assert fetcher.template_calls.count("stamp.svg") == 6
    generator.clear_cache()
    asyncio.run(generator.build_base_results("hello"))
    assert fetcher.template_calls.count("stamp.svg") == 9


def test_render_variant_applies_full_chain(generator):
    base = asyncio.run(generator.build_base_result(TEMPLATES[0], "hello"))
    descriptor = VariantDescriptor("t1", "1e90ff", FrameRendering.DOUBLE, -20, "paper_1")
    variant = asyncio.run(generator.render_variant(base, descriptor))

    assert variant.color == "#1E90FF"
    assert variant.frame == FrameRendering.DOUBLE
    assert variant.tilt == -20
    assert variant.texture == "paper_1"
    assert "#E4002B" not in variant.document
    assert variant.document.count("<rect") == 3
    assert "rotate(-20 " in variant.document
    assert variant.descriptor == descriptor


def test_unsupported_frames_are_recorded_as_single(generator):
    wavy = asyncio.run(generator.build_base_result(TEMPLATES[1], "hello"))
    variant = asyncio.run(generator.render_variant(wavy, VariantDescriptor("t2", "FF0000", FrameRendering.SPLIT)))
    assert variant.frame == FrameRendering.SINGLE

    authored_double = asyncio.run(generator.build_base_result(TEMPLATES[2], "hello"))
    assert applicable_frames(authored_double, list(FrameRendering)) == [FrameRendering.SINGLE]


def test_texture_failure_keeps_variant(generator):
    base = asyncio.run(generator.build_base_result(TEMPLATES[0], "hello"))
    variant = asyncio.run(generator.render_variant(base, VariantDescriptor("t1", "FF0000", tilt=-20, texture="missing")))
    assert variant.texture is None
    assert variant.tilt == -20
    assert "<path" not in variant.document


def test_catalog_groups_single_frame_templates_by_family(generator):
    groups = asyncio.run(generator.catalog("hello"))
    assert [g.family for g in groups] == ["straight", "wavy"]
    straight, wavy = groups
    assert [v.template_id for v in straight.variants] == ["t1"] * 3
    assert [v.frame for v in straight.variants] == [
        FrameRendering.SINGLE,
        FrameRendering.DOUBLE,
        FrameRendering.SPLIT,
    ]
    assert [v.frame for v in wavy.variants] == [FrameRendering.SINGLE, FrameRendering.DOUBLE]


def test_initial_sample_uses_distinct_colors(generator):
    variants = asyncio.run(generator.sample_initial("hello", count=5))
    assert len(variants) == 5
    assert len({v.color for v in variants}) == 5
    assert {v.template_id for v in variants} <= {"t1", "t2", "t3"}
    assert all(v.tilt in (0, -20) for v in variants)


def test_initial_sample_reuses_palette_once_exhausted(fetcher):
    generator = VariantGenerator(
        FakeCatalog(TEMPLATES[:1]),
        fetcher,
        textures=TextureLibrary(fetcher, cache={}),
        rng=random.Random(3),
        palette=["#FF0000", "#00FF00"],
    )
    variants = asyncio.run(generator.sample_initial("hello", count=3))
    assert len(variants) == 3
    assert variants[0].color != variants[1].color
    assert variants[2].color in ("#FF0000", "#00FF00")


def test_filtered_pages_through_cross_product(generator):
    filters = VariantFilters(
        colors=["FF0000", "00FF00"],
        tilts=[0, -20],
        frames=["single", "double"],
        borders=["straight"],
    )
    pager = asyncio.run(generator.filtered("hello", filters, page_size=5))
    # t1: 2 colors x 2 frames x 2 tilts; t3 (authored double): 2 x 1 x 2
    assert pager.total == 12

    sizes = []
    while not pager.exhausted:
        sizes.append(len(asyncio.run(pager.next_page())))
    assert sizes == [5, 5, 2]
    assert asyncio.run(pager.next_page()) == []


def test_filtered_defaults(generator):
    pager = asyncio.run(generator.filtered("hello", VariantFilters(), page_size=10))
    variants = asyncio.run(pager.next_page())
    assert len(variants) == 3
    assert all(v.tilt == 0 and v.frame == FrameRendering.SINGLE and v.texture is None for v in variants)
    assert len({v.color for v in variants}) == 1


def test_matches_filters_treats_missing_corner_as_straight(generator):
    base = asyncio.run(generator.build_base_result(TEMPLATES[0], "hello"))
    assert matches_filters(base, VariantFilters(corners=["straight"]))
    assert not matches_filters(base, VariantFilters(borders=["wavy"]))
    assert matches_filters(base, VariantFilters(borders=["Straight"]))


def test_restore_round_trips_descriptors(generator):
    originals = asyncio.run(generator.sample_initial("hello", count=4))
    descriptors = [v.descriptor for v in originals]
    descriptors.append(VariantDescriptor("retired", "FF0000"))

    restored = asyncio.run(generator.restore("hello", descriptors))
    assert len(restored) == 4
    for original, again in zip(originals, restored):
        assert again.template_id == original.template_id
        assert again.color == original.color
        assert again.tilt == original.tilt
        assert again.texture == original.texture


FRAMED_DOC = (
    '<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 800 400">'
    '<image width="800" height="400" href="frame.png"/>'
    '<rect id="text-box" x="100" y="100" width="600" height="200" fill="none"/>'
    '<text transform="matrix(1 0 0 1 400 60)" font-size="20">EST. 2024</text>'
    '<text transform="matrix(1 0 0 1 10 10)" font-size="40">SAMPLE</text>'
    "</svg>"
)


class OneLineMeasurer:
    async def measure(self, document, zone_index):
        return TextMeasurement(line_widths=[100.0])


def test_fixed_frame_fallback_fits_the_editable_zone(fetcher):
    fetcher.documents["framed.svg"] = FRAMED_DOC
    template = Template(
        id="framed",
        svg_path="framed.svg",
        name="Framed",
        text_zones=[TextZone(label="Text", element_index=1)],
    )
    generator = VariantGenerator(
        FakeCatalog([template]),
        fetcher,
        textures=TextureLibrary(fetcher, cache={}),
        measurer=OneLineMeasurer(),
        rng=random.Random(1),
    )
    base = asyncio.run(generator.build_base_result(template, "hello"))

    label, editable = [base.document[s.start:s.end] for s in find_text_elements(base.document)]
    assert 'font-size="20"' in label
    assert "EST. 2024" in label
    assert ">HELLO</text>" in editable
    assert 'font-size="147.83"' in editable


def test_base_cache_evicts_least_recently_used(fetcher):
    generator = VariantGenerator(
        FakeCatalog(TEMPLATES), fetcher, textures=TextureLibrary(fetcher, cache={}), cache_size=2
    )
    asyncio.run(generator.build_base_results("hello"))
    assert fetcher.template_calls.count("stamp.svg") == 3
    assert len(generator._base_cache) == 2

    asyncio.run(generator.build_base_result(TEMPLATES[2], "hello"))
    assert fetcher.template_calls.count("stamp.svg") == 3
    asyncio.run(generator.build_base_result(TEMPLATES[0], "hello"))
    assert fetcher.template_calls.count("stamp.svg") == 4
    assert len(generator._base_cache) == 2


def test_forget_text_drops_only_that_text(generator):
    asyncio.run(generator.build_base_results("hello"))
    asyncio.run(generator.build_base_results("goodbye"))
    generator.forget_text("hello")
    assert {text for _, text in generator._base_cache} == {"goodbye"}
