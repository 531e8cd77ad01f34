"""Prompt builders and structured-output schemas for debate generation."""

import json

from pydantic import BaseModel, Field

from .models import ContextSnapshot, Participant, ParticipantSpec, Turn
from .protocol import KeyArgument
from .tally import VoteTally

# Prompt context limits, in characters
HISTORY_TURNS = 6
HISTORY_SNIPPET_CHARS = 150
LAST_TURN_CHARS = 200
WEB_DIGEST_CHARS = 800
FILE_CONTEXT_CHARS = 3000

COLORS = ["blue", "emerald", "violet", "amber", "rose", "cyan", "orange", "teal", "indigo", "pink"]


# Structured output schemas

class GeneratedParticipant(BaseModel):
    """A participant profile as returned by panel synthesis."""

    id: str = Field(description="snake_case identifier")
    name: str
    role: str
    perspective: str = Field(description="2-3 sentences describing their viewpoint")
    color: str = ""
    emoji: str = ""


class PanelOutput(BaseModel):
    participants: list[GeneratedParticipant]


class VerdictOutput(BaseModel):
    decision: str = Field(
        description="A clear verdict in 2-3 sentences. MUST agree with the vote tally outcome."
    )
    confidence: float = Field(
        ge=0,
        le=100,
        description="0-100, derived from the vote margin. Unanimous ~95, strong majority 70-85, "
                    "slim majority 50-65, tie 50.",
    )
    key_arguments: list[KeyArgument] = Field(default_factory=list)


# Templates

PANEL_SYSTEM = (
    "You are an expert at assembling debate panels. Every participant must hold a "
    "genuinely distinct perspective relevant to the question."
)

PANEL_FROM_SPECS_PROMPT = """Question: "{question}"

The user has specified these participants:
{spec_lines}

Create a complete profile for each. Return them in exactly this order and keep their names unchanged.
Give each a unique color from: {colors}. Give each a relevant emoji. Return exactly {count} participants."""

PANEL_INVENTED_PROMPT = """Question: "{question}"

Create {count} diverse participants who will debate this question:
- Genuinely different perspectives, not just "pro" and "con"
- Different disciplines, ideologies or areas of expertise
- Memorable names and clear roles
- A unique color each from: {colors}, and a relevant emoji

Return exactly {count} participants with: id (snake_case), name, role, perspective (2-3 sentences), color, emoji."""

TURN_SYSTEM = """You are {name}, {role}. {perspective}

This is a live debate. Keep it short and sharp: 2-3 sentences at most, one clear point per turn.

Open your reply with a brief parenthetical emotion cue of 1-3 words, e.g. (firmly), (incredulous), \
(with quiet conviction). It colors audio delivery only; do not explain it."""

TURN_PROMPT = """Debate question: "{question}"{web_block}{file_block}

Turn {round} of {total_rounds}. {round_instruction}{history_block}{last_turn_block}

Start with [STANCE: X] where X is 1-6 (1=Strongly Disagree, 6=Strongly Agree), then the emotion cue, then your response:"""

SUMMARY_SYSTEM = (
    "You are a neutral analyst who synthesizes debates into clear conclusions: "
    "consensus, key disagreements and the weight of the arguments."
)

SUMMARY_PROMPT = """Question: "{question}"{file_block}

Full debate transcript:
{transcript}

Write a synthesis of 4-6 paragraphs that identifies the strongest arguments from each perspective, \
notes where participants converged, and weighs the quality of the reasoning."""

VERDICT_SYSTEM = (
    "You extract structured verdicts from debates. The vote tally you are given is the "
    "authoritative ground truth: your verdict must match its outcome and your confidence "
    "must follow its margin. Return JSON."
)

VERDICT_PROMPT = """Question: "{question}"

AUTHORITATIVE VOTE TALLY (ground truth, overrides everything else):
{tally_json}

Debate summary (context only):
{summary}

Participant ids for key_arguments: {participant_ids}

Rules:
1. The decision MUST reflect the outcome {outcome}.
2. Confidence follows the margin ({for_count} for vs {against_count} against out of {total_voters}).
3. Give one key argument per participant."""


def _round_instruction(round_number: int, total_rounds: int) -> str:
    if round_number == 1:
        return "Opening: state your position clearly."
    if round_number == total_rounds:
        return "Final word: one crisp closing point, no new arguments."
    return "React to what was said last round. Push back or build on it."


def _names(participants: tuple[Participant, ...] | list[Participant]) -> dict[str, str]:
    return {p.id: p.name for p in participants}


def build_panel_messages(
    question: str,
    count: int,
    specs: list[ParticipantSpec] | None = None,
) -> list[dict[str, str]]:
    """Messages asking for ``count`` participant profiles."""
    colors = ", ".join(COLORS)
    if specs:
        spec_lines = "\n".join(
            f"{i}. {spec.name}: {spec.description}" for i, spec in enumerate(specs, 1)
        )
        prompt = PANEL_FROM_SPECS_PROMPT.format(
            question=question, spec_lines=spec_lines, colors=colors, count=len(specs)
        )
    else:
        prompt = PANEL_INVENTED_PROMPT.format(question=question, count=count, colors=colors)

    return [
        {"role": "system", "content": PANEL_SYSTEM},
        {"role": "user", "content": prompt},
    ]


def build_turn_messages(
    participant: Participant,
    question: str,
    round_number: int,
    total_rounds: int,
    snapshot: ContextSnapshot,
    participants: tuple[Participant, ...],
    web_digest: str | None = None,
    file_context: str | None = None,
) -> list[dict[str, str]]:
    """Messages for one participant's turn against the round's frozen snapshot."""
    names = _names(participants)
    last_turn = snapshot.last_turn

    history: tuple[Turn, ...] = snapshot.prior_turns
    if last_turn is not None:
        history = history[:-1]
    history = history[-HISTORY_TURNS:]

    history_block = ""
    if history:
        lines = "\n".join(
            f"{names.get(t.participant_id, 'Unknown')}: {t.display_text[:HISTORY_SNIPPET_CHARS]}"
            for t in history
        )
        history_block = f"\n\nRecent exchange:\n{lines}"

    last_turn_block = ""
    if last_turn is not None and round_number > 1:
        speaker = names.get(last_turn.participant_id, "Unknown")
        last_turn_block = (
            f'\n\n{speaker} just said: "{last_turn.display_text[:LAST_TURN_CHARS]}"\n\n'
            "Respond to them directly: name them, then make your point."
        )

    web_block = f"\n\nBackground research:\n{web_digest[:WEB_DIGEST_CHARS]}" if web_digest else ""
    file_block = (
        f"\n\nUser-provided documents:\n{file_context[:FILE_CONTEXT_CHARS]}" if file_context else ""
    )

    system = TURN_SYSTEM.format(
        name=participant.name, role=participant.role or "a panelist",
        perspective=participant.perspective,
    )
    user = TURN_PROMPT.format(
        question=question,
        web_block=web_block,
        file_block=file_block,
        round=round_number,
        total_rounds=total_rounds,
        round_instruction=_round_instruction(round_number, total_rounds),
        history_block=history_block,
        last_turn_block=last_turn_block,
    )
    return [
        {"role": "system", "content": system},
        {"role": "user", "content": user},
    ]


def build_summary_messages(
    question: str,
    turns: list[Turn],
    participants: tuple[Participant, ...],
    file_context: str | None = None,
) -> list[dict[str, str]]:
    """Messages asking for a prose synthesis of the whole transcript."""
    names = _names(participants)
    transcript = "\n\n---\n\n".join(
        f"[Round {t.round}] {names.get(t.participant_id, 'Unknown')}:\n{t.display_text}"
        for t in turns
    )
    file_block = (
        f"\n\nUser-provided reference documents:\n{file_context[:FILE_CONTEXT_CHARS]}"
        if file_context else ""
    )
    return [
        {"role": "system", "content": SUMMARY_SYSTEM},
        {"role": "user", "content": SUMMARY_PROMPT.format(
            question=question, file_block=file_block, transcript=transcript,
        )},
    ]


def build_verdict_messages(
    question: str,
    summary: str,
    tally: VoteTally,
    participants: tuple[Participant, ...],
) -> list[dict[str, str]]:
    """Messages for the verdict, carrying the tally as literal structured input."""
    constraints = tally.verdict_constraints()
    return [
        {"role": "system", "content": VERDICT_SYSTEM},
        {"role": "user", "content": VERDICT_PROMPT.format(
            question=question,
            tally_json=json.dumps(constraints, indent=2),
            summary=summary,
            participant_ids=", ".join(p.id for p in participants),
            outcome=tally.outcome,
            for_count=tally.for_count,
            against_count=tally.against_count,
            total_voters=tally.total_voters,
        )},
    ]
