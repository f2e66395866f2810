import asyncio
import time

import pytest

from domain.errors import MeasurementError, MeasurementTimeout
from services.text_injector import inject_text
from services.text_measure import FontRegistry, PillowTextMeasurer, parse_family, parse_weight

DOC = (
    '<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 400 200">'
    '<text transform="matrix(1 0 0 1 200 110)" font-family="\'Oswald\'" font-size="40">SAMPLE</text>'
    "</svg>"
)


def test_parse_weight_and_family():
    assert parse_weight(None) == 400
    assert parse_weight("bold") == 700
    assert parse_weight("500") == 500
    assert parse_weight("heavy") == 400
    assert parse_family("'Oswald', sans-serif") == "Oswald"
    assert parse_family(None) == ""


def test_font_registry_falls_back_to_nearest_weight(tmp_path):
    (tmp_path / "Oswald-Bold.ttf").write_bytes(b"")
    (tmp_path / "Custom-Regular.otf").write_bytes(b"")
    registry = FontRegistry(str(tmp_path))

    assert registry.resolve("Oswald", 500) == tmp_path / "Oswald-Bold.ttf"
    assert registry.resolve("Custom", 400) == tmp_path / "Custom-Regular.otf"
    assert registry.resolve("Gunplay", 400) is None


def test_measure_reports_one_width_per_line(tmp_path):
    measurer = PillowTextMeasurer(FontRegistry(str(tmp_path)), timeout=10.0)
    doc = inject_text(DOC, 0, "the quick brown fox")

    measurement = asyncio.run(measurer.measure(doc, 0))
    assert len(measurement.line_widths) == 2
    assert all(width > 0 for width in measurement.line_widths)


def test_missing_zone_is_a_measurement_error(tmp_path):
    measurer = PillowTextMeasurer(FontRegistry(str(tmp_path)), timeout=10.0)
    with pytest.raises(MeasurementError):
        asyncio.run(measurer.measure(DOC, 3))


def test_slow_measurement_times_out(tmp_path, monkeypatch):
    measurer = PillowTextMeasurer(FontRegistry(str(tmp_path)), timeout=0.05)

    def slow(document, zone_index):
        time.sleep(0.5)

    monkeypatch.setattr(measurer, "_measure_sync", slow)
    with pytest.raises(MeasurementTimeout):
        asyncio.run(measurer.measure(DOC, 0))


def test_zone_font_falls_back_to_line_tspan():
    doc = (
        '<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 400 200">'
        '<text transform="matrix(1 0 0 1 200 110)">'
        '<tspan x="0" y="0" font-family="\'Oswald\'" font-size="36" font-weight="500">Sample</tspan>'
        "</text></svg>"
    )
    doc = inject_text(doc, 0, "HELLO")
    assert PillowTextMeasurer(timeout=10.0)._zone_font(doc, 0) == ("Oswald", 500, 36.0)
