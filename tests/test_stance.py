"""Tests for stance directive extraction."""

import pytest

from roundtable.stance import (
    MAX_CUE_LENGTH,
    STANCE_PATTERNS,
    extract_stance,
    parse_stance,
    stance_side,
)


class TestStancePatterns:
    """Each directive form is matched by its own pattern."""

    @pytest.mark.parametrize("name, text, expected", [
        ("bracketed_colon", "[STANCE: 4] rest", 4),
        ("bracketed_colon", "[ stance:2 ] rest", 2),
        ("bracketed_space", "[STANCE 6] rest", 6),
        ("bare_colon", "STANCE: 1 rest", 1),
        ("bracketed_digit", "[5] rest", 5),
    ])
    def test_pattern_matches_its_form(self, name, text, expected):
        pattern = next(p for p in STANCE_PATTERNS if p.name == name)
        stance, rest = pattern.match(text)
        assert stance == expected
        assert rest == "rest"

    def test_pattern_rejects_out_of_range_digit(self):
        pattern = STANCE_PATTERNS[0]
        assert pattern.match("[STANCE: 0] rest") is None
        assert pattern.match("[STANCE: 7] rest") is None

    def test_pattern_only_matches_leading_directive(self):
        for pattern in STANCE_PATTERNS:
            assert pattern.match("I say [STANCE: 4] yes") is None

    def test_patterns_are_ordered_colon_form_first(self):
        assert [p.name for p in STANCE_PATTERNS] == [
            "bracketed_colon", "bracketed_space", "bare_colon", "bracketed_digit",
        ]


class TestParseStance:
    """Tests for parse_stance."""

    def test_directive_and_cue(self):
        """Stance is extracted; display drops the cue, spoken keeps it."""
        parsed = parse_stance("[STANCE: 5] (firmly) The precedent is clear.")
        assert parsed.stance == 5
        assert parsed.display_text == "The precedent is clear."
        assert parsed.spoken_text == "(firmly) The precedent is clear."

    def test_no_directive_leaves_stance_absent(self):
        parsed = parse_stance("(sighing) We have been here before.")
        assert parsed.stance is None
        assert parsed.display_text == "We have been here before."

    def test_out_of_range_stance_is_not_extracted(self):
        parsed = parse_stance("[STANCE: 9] Too strong.")
        assert parsed.stance is None
        assert parsed.display_text == "[STANCE: 9] Too strong."

    def test_long_parenthetical_is_not_a_cue(self):
        aside = "(" + "x" * (MAX_CUE_LENGTH + 1) + ")"
        parsed = parse_stance(f"[STANCE: 3] {aside} and more")
        assert parsed.stance == 3
        assert parsed.display_text == f"{aside} and more"

    def test_every_leading_cue_is_stripped(self):
        """Spoken text keeps only the first cue."""
        parsed = parse_stance("[2] (calm) (slowly) No.")
        assert parsed.display_text == "No."
        assert parsed.spoken_text == "(calm) No."

    def test_repeated_directive_keeps_first_stance(self):
        parsed = parse_stance("[STANCE: 4] [STANCE: 2] hi")
        assert parsed.stance == 4
        assert parsed.display_text == "hi"

    def test_directive_after_cue_is_stripped(self):
        parsed = parse_stance("[STANCE: 5] (calm) STANCE: 2 Agreed.")
        assert parsed.stance == 5
        assert parsed.display_text == "Agreed."
        assert parsed.spoken_text == "(calm) Agreed."

    def test_trailing_out_of_range_directive_stays(self):
        parsed = parse_stance("[STANCE: 4] [STANCE: 9] hi")
        assert parsed.stance == 4
        assert parsed.display_text == "[STANCE: 9] hi"

    @pytest.mark.parametrize("text", [None, "", "   "])
    def test_empty_input(self, text):
        parsed = parse_stance(text)
        assert parsed.stance is None
        assert parsed.display_text == ""

    @pytest.mark.parametrize("text", [
        "Plain argument with no markup.",
        "Numbers like [12] and STANCE later: 3 stay put.",
        "(this aside is far too long to be treated as an emotion cue) text",
    ])
    def test_idempotent_on_clean_text(self, text):
        once = parse_stance(text).display_text
        assert parse_stance(once).display_text == once

    @pytest.mark.parametrize("text", [
        "[STANCE: 4] [STANCE: 2] hi",
        "[STANCE: 4] (calm) (angry) hi",
        "[3] (wry) [STANCE 5] (slowly) Fine.",
        "STANCE: 6 (firm) [STANCE: 9] Still here.",
    ])
    def test_reparsing_output_is_a_no_op(self, text):
        parsed = parse_stance(text)
        again = parse_stance(parsed.display_text)
        assert again.display_text == parsed.display_text
        assert again.stance is None
        assert parse_stance(parsed.spoken_text).display_text == parsed.display_text

    @pytest.mark.parametrize("text", [
        "[STANCE",
        "[STANCE: ]",
        "(((",
        "[]",
        "\x00[STANCE: 4]",
        "STANCE:4",
    ])
    def test_never_raises(self, text):
        parse_stance(text)


class TestHelpers:
    """Tests for extract_stance and stance_side."""

    def test_extract_stance_falls_through_to_later_pattern(self):
        assert extract_stance("[STANCE 4] text") == (4, "text")

    def test_extract_stance_returns_text_unchanged_without_match(self):
        assert extract_stance("hello") == (None, "hello")

    @pytest.mark.parametrize("stance, side", [(1, "AGAINST"), (3, "AGAINST"), (4, "FOR"), (6, "FOR")])
    def test_stance_side(self, stance, side):
        assert stance_side(stance) == side
