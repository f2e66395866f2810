"""
In-memory session state for the stamp API.

Sessions hold the user's text, the current filtered pager and a generation
token. Starting new work bumps the token; a request that finishes after
being superseded sees a stale token and drops its result.
"""
from dataclasses import dataclass, field
from typing import Dict, Optional
import uuid

from services.variant_generator import VariantPager


@dataclass
class StampSession:
    text: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    generation: int = 0
    pager: Optional[VariantPager] = None

    def begin(self) -> int:
        """Start a new unit of work and return its token."""
        self.generation += 1
        return self.generation

    def is_current(self, token: int) -> bool:
        return token == self.generation


# In-memory storage
sessions_db: Dict[str, StampSession] = {}
