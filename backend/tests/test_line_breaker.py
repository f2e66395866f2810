from services.line_breaker import (
    DYNAMIC_POLICY,
    FIXED_FRAME_POLICY,
    break_lines,
    greedy_wrap,
    rebalance,
    split_word_evenly,
)


def test_short_text_is_returned_unchanged():
    assert break_lines("HELLO WORLD") == ["HELLO WORLD"]
    assert break_lines("HI", FIXED_FRAME_POLICY) == ["HI"]


def test_text_within_limit_keeps_its_whitespace():
    # no re-joining when nothing needs breaking
    assert break_lines("A  B") == ["A  B"]


def test_fixed_frame_splits_long_word_evenly():
    assert break_lines("CONGRATULATIONS", FIXED_FRAME_POLICY) == ["CONGRATU", "LATIONS"]


def test_split_word_evenly_never_exceeds_limit():
    chunks = split_word_evenly("ABCDEFGHIJKLMNOPQRSTUVWXYZ", 12)
    assert "".join(chunks) == "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
    assert len(chunks) == 3
    assert all(len(c) <= 12 for c in chunks)
    assert max(len(c) for c in chunks) - min(len(c) for c in chunks) <= 1


def test_seventy_char_text_uses_long_line_limit():
    text = "the quick brown fox jumps over the lazy dog while the cat sleeps nearby"
    assert len(text) == 71
    lines = break_lines(text)
    assert len(lines) > 1
    assert all(line for line in lines)
    assert all(len(line) <= 22 + DYNAMIC_POLICY.slack for line in lines)
    assert " ".join(lines) == text


def test_rebalancing_avoids_lopsided_lines():
    # greedy gives ["HAPPY BIRTHDAY", "TO"] at 14 chars/line; balanced is closer
    words = ["HAPPY", "BIRTHDAY", "TO", "YOU"]
    greedy = greedy_wrap(words, 12)
    assert greedy == ["HAPPY", "BIRTHDAY TO", "YOU"]
    lines = break_lines("HAPPY BIRTHDAY TO YOU")
    assert len(lines) == len(greedy)
    lengths = [len(line) for line in lines]
    greedy_lengths = [len(line) for line in greedy]
    assert max(lengths) - min(lengths) <= max(greedy_lengths) - min(greedy_lengths)


def test_rebalance_keeps_line_count_and_respects_slack():
    words = "ONE TWO THREE FOUR FIVE SIX SEVEN".split()
    balanced = rebalance(words, 3, 12, 5)
    assert balanced is not None
    assert len(balanced) == 3
    assert all(len(line) <= 17 for line in balanced)
    assert " ".join(balanced) == " ".join(words)


def test_rebalance_needs_at_least_one_word_per_line():
    assert rebalance(["ONE"], 2, 12, 5) is None


def test_dynamic_lines_never_empty_for_many_words():
    text = " ".join(["WORD"] * 30)
    lines = break_lines(text)
    assert all(line.strip() for line in lines)
    assert all(len(line) <= 22 + DYNAMIC_POLICY.slack for line in lines)


def test_fixed_frame_hard_caps_lines():
    text = "ONE TWO THREE FOUR FIVE SIX SEVEN EIGHT NINE TEN"
    lines = break_lines(text, FIXED_FRAME_POLICY)
    assert len(lines) <= 3
    assert " ".join(lines).split() == text.split()


def test_dynamic_soft_cap_only_logs(caplog):
    text = " ".join(f"W{i:02d}XXXXXXXXXXXXXXXXX" for i in range(8))
    with caplog.at_level("INFO", logger="services.line_breaker"):
        lines = break_lines(text)
    assert len(lines) == 8
    assert "soft cap" in caplog.text
