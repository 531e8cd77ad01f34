"""Stance directive extraction from raw turn text.

Participants open every turn with a stance directive such as ``[STANCE: 4]``,
followed by a short parenthetical emotion cue used only for audio delivery::

    [STANCE: 5] (firmly) The precedent is clear.

``parse_stance`` returns the stance (1-6) of the first directive, a display
text with every leading directive and cue stripped, and a spoken text that
keeps the first cue.
"""

import re
from dataclasses import dataclass
from typing import Callable

MIN_STANCE = 1
MAX_STANCE = 6

# Longest parenthetical that still counts as an emotion cue
MAX_CUE_LENGTH = 40

STANCE_LABELS = {
    1: "Strongly Disagree",
    2: "Disagree",
    3: "Somewhat Disagree",
    4: "Somewhat Agree",
    5: "Agree",
    6: "Strongly Agree",
}

_CUE_PATTERN = re.compile(r"^\(([^()\n]{1,%d})\)\s*" % MAX_CUE_LENGTH)


def _first_digit(match: re.Match[str]) -> int:
    return int(match.group("digit"))


@dataclass(frozen=True)
class StancePattern:
    """One surface form of the stance directive."""

    name: str
    pattern: re.Pattern[str]
    extract: Callable[[re.Match[str]], int] = _first_digit

    def match(self, text: str) -> tuple[int, str] | None:
        """Return (stance, remaining text) when this form leads the text with a valid digit."""
        found = self.pattern.match(text)
        if found is None:
            return None
        stance = self.extract(found)
        if not MIN_STANCE <= stance <= MAX_STANCE:
            return None
        return stance, text[found.end():]


# Evaluated in order; the first valid match wins
STANCE_PATTERNS: tuple[StancePattern, ...] = (
    StancePattern("bracketed_colon", re.compile(r"\s*\[\s*STANCE\s*:\s*(?P<digit>\d)\s*\]\s*", re.IGNORECASE)),
    StancePattern("bracketed_space", re.compile(r"\s*\[\s*STANCE\s+(?P<digit>\d)\s*\]\s*", re.IGNORECASE)),
    StancePattern("bare_colon", re.compile(r"\s*STANCE\s*:\s*(?P<digit>\d)\b\s*", re.IGNORECASE)),
    StancePattern("bracketed_digit", re.compile(r"\s*\[(?P<digit>\d)\]\s*")),
)


@dataclass(frozen=True)
class ParsedText:
    """Result of stance extraction."""

    display_text: str
    spoken_text: str
    stance: int | None = None


def extract_stance(text: str) -> tuple[int | None, str]:
    """Remove a leading stance directive.

    Returns:
        (stance, remaining text); stance is None and the text is unchanged
        when no pattern yields a digit in range.
    """
    for stance_pattern in STANCE_PATTERNS:
        result = stance_pattern.match(text)
        if result is not None:
            return result
    return None, text


def parse_stance(text: str | None) -> ParsedText:
    """Split raw turn text into display text, spoken text and stance.

    The stance comes from the first valid directive. Every leading directive
    and cue after it is stripped until the text stops changing, so the display
    text never opens with markup and re-parsing it is a no-op. The spoken text
    keeps the first cue in front of the display text. Never raises.
    """
    if not text:
        return ParsedText(display_text="", spoken_text="")

    stance = None
    cue = None
    remainder = text.strip()
    while True:
        found, rest = extract_stance(remainder)
        if found is not None:
            if stance is None:
                stance = found
            remainder = rest.strip()
            continue
        match = _CUE_PATTERN.match(remainder)
        if match is not None:
            if cue is None:
                cue = match.group(0).strip()
            remainder = remainder[match.end():].strip()
            continue
        break

    spoken_text = f"{cue} {remainder}".strip() if cue else remainder
    return ParsedText(display_text=remainder, spoken_text=spoken_text, stance=stance)


def stance_side(stance: int) -> str:
    """FOR for stances 4-6, AGAINST for 1-3."""
    return "FOR" if stance >= 4 else "AGAINST"
