"""
Line breaking for injected text.

Greedy word wrap, an even forced split for words longer than a line, then a
rebalancing pass that picks the word-boundary partition with the smallest
spread between the longest and shortest line.
"""
import logging
import math
from dataclasses import dataclass
from itertools import combinations
from typing import List, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LinePolicy:
    name: str
    short_max_chars: int
    long_max_chars: int
    long_text_threshold: int = 60
    max_lines: Optional[int] = None
    hard_cap: bool = False  # fold overflow into the last line instead of just logging
    rebalance_min_lines: int = 2
    rebalance_max_lines: Optional[int] = None
    slack: int = 5
    balance_word_limit: int = 20

    def max_chars_for(self, text: str) -> int:
        if len(text) <= self.long_text_threshold:
            return self.short_max_chars
        return self.long_max_chars

    def should_rebalance(self, line_count: int) -> bool:
        if line_count < self.rebalance_min_lines:
            return False
        return self.rebalance_max_lines is None or line_count <= self.rebalance_max_lines


DYNAMIC_POLICY = LinePolicy(
    name="dynamic",
    short_max_chars=12,
    long_max_chars=22,
    max_lines=6,
)

FIXED_FRAME_POLICY = LinePolicy(
    name="fixed_frame",
    short_max_chars=13,
    long_max_chars=13,
    max_lines=3,
    hard_cap=True,
    rebalance_max_lines=3,
)


def split_word_evenly(word: str, max_chars: int) -> List[str]:
    """Split an over-long word into the fewest chunks of near-equal length."""
    if len(word) <= max_chars:
        return [word]
    parts = math.ceil(len(word) / max_chars)
    size = math.ceil(len(word) / parts)
    return [word[i:i + size] for i in range(0, len(word), size)]


def greedy_wrap(words: List[str], max_chars: int) -> List[str]:
    lines: List[str] = []
    current = ""
    for word in words:
        if current and len(current) + 1 + len(word) <= max_chars:
            current += " " + word
            continue
        if current:
            lines.append(current)
        chunks = split_word_evenly(word, max_chars)
        lines.extend(chunks[:-1])
        current = chunks[-1]
    if current:
        lines.append(current)
    return lines


def rebalance(words: List[str], line_count: int, max_chars: int, slack: int) -> Optional[List[str]]:
    """
    Best partition of `words` into exactly `line_count` lines.

    Candidates whose longest line exceeds max_chars + slack are rejected;
    ties keep the first partition in cut-point order. None when nothing
    qualifies.
    """
    if line_count < 2 or len(words) < line_count:
        return None
    best: Optional[List[str]] = None
    best_spread = None
    limit = max_chars + slack
    for cuts in combinations(range(1, len(words)), line_count - 1):
        bounds = (0,) + cuts + (len(words),)
        candidate = [" ".join(words[bounds[i]:bounds[i + 1]]) for i in range(line_count)]
        lengths = [len(line) for line in candidate]
        if max(lengths) > limit:
            continue
        spread = max(lengths) - min(lengths)
        if best_spread is None or spread < best_spread:
            best, best_spread = candidate, spread
    return best


def break_lines(text: str, policy: LinePolicy = DYNAMIC_POLICY) -> List[str]:
    """Break `text` into display lines; `[text]` unchanged when it already fits."""
    max_chars = policy.max_chars_for(text)
    if len(text) <= max_chars:
        return [text]
    words = text.split()
    if not words:
        return [text]

    lines = greedy_wrap(words, max_chars)

    if policy.max_lines and len(lines) > policy.max_lines:
        if policy.hard_cap:
            keep = policy.max_lines - 1
            lines = lines[:keep] + [" ".join(lines[keep:])]
        else:
            logger.info(
                "[line_breaker] %d lines exceeds the %s soft cap of %d",
                len(lines),
                policy.name,
                policy.max_lines,
            )

    if policy.should_rebalance(len(lines)) and len(words) <= policy.balance_word_limit:
        balanced = rebalance(words, len(lines), max_chars, policy.slack)
        if balanced:
            lines = balanced
    return lines
