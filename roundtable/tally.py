"""Deterministic vote tally computed from the panel's final stances.

The tally is ground truth for the verdict: the verdict request carries it as
structured input and the returned confidence is clamped to the band its margin
allows.
"""

from dataclasses import dataclass
from typing import Any, Iterable

from .models import Participant, Turn
from .stance import STANCE_LABELS, stance_side

# Mean reported when nobody recorded a stance: the midpoint of 1..6
NEUTRAL_AVERAGE_STANCE = 3.5

OUTCOME_FOR = "FOR"
OUTCOME_AGAINST = "AGAINST"
OUTCOME_TIE = "TIE"


@dataclass(frozen=True)
class ParticipantStance:
    """A participant's last recorded stance and the round it came from."""

    participant_id: str
    participant_name: str
    stance: int
    final_round: int

    @property
    def side(self) -> str:
        return stance_side(self.stance)


@dataclass(frozen=True)
class VoteTally:
    """For/against counts and mean of each participant's final stance."""

    for_count: int
    against_count: int
    total_voters: int
    average_stance: float
    stances: tuple[ParticipantStance, ...] = ()

    @property
    def outcome(self) -> str:
        if self.for_count > self.against_count:
            return OUTCOME_FOR
        if self.against_count > self.for_count:
            return OUTCOME_AGAINST
        return OUTCOME_TIE

    @property
    def margin(self) -> int:
        return abs(self.for_count - self.against_count)

    def verdict_constraints(self) -> dict[str, Any]:
        """Structured facts the verdict request must agree with."""
        return {
            "outcome": self.outcome,
            "for_count": self.for_count,
            "against_count": self.against_count,
            "total_voters": self.total_voters,
            "margin": self.margin,
            "average_stance": round(self.average_stance, 2),
            "final_stances": [
                {
                    "participant_id": s.participant_id,
                    "participant_name": s.participant_name,
                    "stance": s.stance,
                    "label": STANCE_LABELS[s.stance],
                    "side": s.side,
                    "final_round": s.final_round,
                }
                for s in self.stances
            ],
        }


def compute_vote_tally(
    turns: Iterable[Turn],
    participants: Iterable[Participant] = (),
) -> VoteTally:
    """
    Compute the tally from every finalized turn across all rounds.

    Each participant's vote is the stance of their stance-bearing turn with the
    greatest round number.

    Args:
        turns: Finalized turns, any order
        participants: Panel, used for names and to order the result

    Returns:
        VoteTally with counts, mean and per-participant final stances
    """
    names = {p.id: p.name for p in participants}
    order = {participant_id: i for i, participant_id in enumerate(names)}

    latest: dict[str, Turn] = {}
    for turn in turns:
        if turn.stance is None:
            continue
        current = latest.get(turn.participant_id)
        if current is None or turn.round > current.round:
            latest[turn.participant_id] = turn

    stances = tuple(
        ParticipantStance(
            participant_id=participant_id,
            participant_name=names.get(participant_id, participant_id),
            stance=turn.stance,
            final_round=turn.round,
        )
        for participant_id, turn in sorted(
            latest.items(), key=lambda item: order.get(item[0], len(order))
        )
    )

    for_count = sum(1 for s in stances if s.stance >= 4)
    against_count = sum(1 for s in stances if s.stance <= 3)
    total_voters = len(stances)
    average = (
        sum(s.stance for s in stances) / total_voters
        if total_voters
        else NEUTRAL_AVERAGE_STANCE
    )

    return VoteTally(
        for_count=for_count,
        against_count=against_count,
        total_voters=total_voters,
        average_stance=average,
        stances=stances,
    )


def confidence_band(tally: VoteTally) -> tuple[float, float]:
    """
    Confidence range (0-100) the verdict may claim given the tally's margin.

    Unanimous ~95, strong majority 70-85, slim majority 50-65, tie 50.
    """
    if tally.total_voters == 0 or tally.outcome == OUTCOME_TIE:
        return 50.0, 50.0

    share = max(tally.for_count, tally.against_count) / tally.total_voters
    if share == 1.0:
        return 90.0, 98.0
    if share >= 2 / 3:
        return 70.0, 85.0
    return 50.0, 65.0


def clamp_confidence(confidence: float, tally: VoteTally) -> float:
    """Clamp a generated confidence into the band the tally allows."""
    low, high = confidence_band(tally)
    return max(low, min(high, float(confidence)))
