import pytest

from domain.errors import MalformedDocument
from services.document_normalizer import NORMALIZATION_RULES, normalize, remap_fonts

ILLUSTRATOR_EXPORT = """<?xml version="1.0" encoding="utf-8"?>
<!-- Generator: Adobe Illustrator 27.0.0, SVG Export Plug-In -->
<!DOCTYPE svg PUBLIC "-//W3C//DTD SVG 1.1//EN" "http://www.w3.org/Graphics/SVG/1.1/DTD/svg11.dtd" [
	<!ENTITY ns_graphs "http://ns.adobe.com/Graphs/1.0/">
]>
<svg version="1.1" xmlns:x="&ns_extend;" xmlns:i="&ns_ai;" xmlns:graph="&ns_graphs;"
	 xmlns:xlink="http://www.w3.org/1999/xlink" x="0px" y="0px" viewBox="0 0 400 200" i:pageBounds="0 0 400 200">
<style type="text/css">
	@font-face { font-family: 'Oswald-Medium'; src: url(data:font/woff;base64,AAAA); }
</style>
<switch>
	<foreignObject requiredExtensions="&ns_ai;" x="0" y="0" width="1" height="1">
		<i:aipgfRef xlink:href="#adobe_illustrator_pgf"></i:aipgfRef>
	</foreignObject>
	<g i:extraneous="self">
		<rect id="ct-1" x="50" y="50" width="300" height="100" fill="#E4002B"/>
		<text transform="matrix(1 0 0 1 120 110)" font-family="'Oswald-Medium'" font-size="48">SAMPLE</text>
	</g>
</switch>
<i:pgf id="adobe_illustrator_pgf"><![CDATA[eJzsvWuTHMd1...]]></i:pgf>
</svg>
"""


def test_normalize_strips_vendor_cruft():
    doc = normalize(ILLUSTRATOR_EXPORT)
    assert doc.startswith("<svg")
    assert "foreignObject" not in doc
    assert "i:pageBounds" not in doc
    assert "i:extraneous" not in doc
    assert "xmlns:x=" not in doc
    assert "xmlns:i=" not in doc
    assert "<style" not in doc
    assert "<i:pgf" not in doc
    assert "&ns_" not in doc
    # standard namespaces and links survive
    assert 'xmlns:xlink="http://www.w3.org/1999/xlink"' in doc
    assert 'xmlns="http://www.w3.org/2000/svg"' in doc
    assert 'id="ct-1"' in doc


def test_normalize_remaps_vendor_fonts():
    doc = normalize(ILLUSTRATOR_EXPORT)
    assert "Oswald-Medium" not in doc
    assert "font-family=\"'Oswald'\" font-weight=\"500\"" in doc


def test_remap_keeps_existing_weight():
    tag = '<text font-family="Oswald-Bold" font-weight="300">X</text>'
    out = remap_fonts(tag)
    assert "font-family=\"'Oswald'\"" in out
    assert 'font-weight="300"' in out
    assert 'font-weight="700"' not in out


def test_unknown_fonts_are_left_alone():
    tag = '<text font-family="Helvetica">X</text>'
    assert remap_fonts(tag) == tag


def test_normalize_is_idempotent():
    once = normalize(ILLUSTRATOR_EXPORT)
    assert normalize(once) == once


def test_normalize_rejects_missing_root():
    with pytest.raises(MalformedDocument):
        normalize("<html><body>not an svg</body></html>")
    with pytest.raises(MalformedDocument):
        normalize("")


def test_rules_apply_independently():
    rules = {rule.name: rule for rule in NORMALIZATION_RULES}
    assert rules["vendor_entity_references"].apply('<a x="&ns_ai;"/>') == '<a x=""/>'
    assert rules["style_blocks"].apply("<svg><style>.a{}</style><g/></svg>") == "<svg><g/></svg>"
    assert rules["vendor_empty_elements"].apply('<svg><i:pgfRef a="1"/></svg>') == "<svg></svg>"
