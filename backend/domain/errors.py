"""
Error taxonomy for the stamp engine.

Every error here is scoped to a single document, zone, texture or
measurement. The variant generator catches them at the per-template and
per-variant boundary; none of them is meant to abort a whole batch.
"""


class StampError(Exception):
    """Base class for engine errors."""


class MalformedDocument(StampError):
    """The input has no recognizable <svg> root."""


class ZoneNotFound(StampError):
    """A zone index points past the last text element of a document."""

    def __init__(self, zone_index: int, available: int):
        super().__init__(f"Text element index {zone_index} not found ({available} available)")
        self.zone_index = zone_index
        self.available = available


class FetchError(StampError):
    """A collaborator fetch failed or returned a non-success status."""

    def __init__(self, locator: str, reason: str):
        super().__init__(f"Failed to fetch {locator}: {reason}")
        self.locator = locator
        self.reason = reason


class MeasurementTimeout(StampError):
    """The text measurement pass never signalled readiness."""


class MeasurementError(StampError):
    """The text measurement pass failed for a reason other than a timeout."""


class ExportError(StampError):
    """Rasterizing a finished document failed."""
