"""Domain models for debate sessions."""

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


def new_id() -> str:
    """Random id for sessions, turns and synthesized participants."""
    return uuid.uuid4().hex


class SessionStatus(str, Enum):
    """Server-side lifecycle of a debate session."""

    PENDING = "pending"
    RUNNING = "running"
    SUMMARIZING = "summarizing"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class ParticipantSpec:
    """Caller-supplied seed for one panel seat."""

    name: str
    description: str = ""
    voice_id: str | None = None


@dataclass(frozen=True)
class Participant:
    """One debating entity. Immutable once a session starts."""

    id: str
    name: str
    role: str = ""
    perspective: str = ""
    voice_id: str | None = None
    color: str = ""
    emoji: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        result = {
            "id": self.id,
            "name": self.name,
            "role": self.role,
            "perspective": self.perspective,
            "color": self.color,
            "emoji": self.emoji,
        }
        if self.voice_id:
            result["voice_id"] = self.voice_id
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Participant":
        """Create from dictionary."""
        return cls(
            id=data.get("id", ""),
            name=data.get("name", ""),
            role=data.get("role", ""),
            perspective=data.get("perspective", ""),
            voice_id=data.get("voice_id"),
            color=data.get("color", ""),
            emoji=data.get("emoji", ""),
        )


@dataclass
class Turn:
    """One participant's contribution to one round.

    Created empty, grown by token deltas, finalized exactly once.
    """

    id: str
    participant_id: str
    round: int
    raw_text: str = ""
    display_text: str = ""
    spoken_text: str = ""
    stance: int | None = None
    created_at: float = field(default_factory=time.time)
    finalized: bool = False

    def append(self, token: str) -> None:
        """Accumulate a streamed token."""
        if self.finalized:
            raise RuntimeError(f"Turn {self.id} is already finalized")
        self.raw_text += token

    def finalize(self, display_text: str, spoken_text: str, stance: int | None) -> None:
        """Freeze the turn with its parsed text and stance."""
        if self.finalized:
            raise RuntimeError(f"Turn {self.id} is already finalized")
        self.display_text = display_text
        self.spoken_text = spoken_text
        self.stance = stance
        self.finalized = True


@dataclass(frozen=True)
class ContextSnapshot:
    """Read-only view of the debate handed to every turn of one round.

    ``prior_turns`` holds the turns finalized in earlier rounds, ``last_turn``
    the most recent of them (the one a speaker may address directly).
    """

    round: int
    prior_turns: tuple[Turn, ...] = ()

    @property
    def last_turn(self) -> Turn | None:
        return self.prior_turns[-1] if self.prior_turns else None


@dataclass
class Session:
    """State of one debate. The round scheduler is its only writer."""

    question: str
    participants: tuple[Participant, ...]
    total_rounds: int
    turns: list[Turn] = field(default_factory=list)
    current_round: int = 0
    status: SessionStatus = SessionStatus.PENDING
    id: str = field(default_factory=new_id)

    def participant(self, participant_id: str) -> Participant | None:
        """Look up a participant by id."""
        for participant in self.participants:
            if participant.id == participant_id:
                return participant
        return None

    def participant_name(self, participant_id: str) -> str:
        participant = self.participant(participant_id)
        return participant.name if participant else "Unknown"

    def snapshot(self, round_number: int) -> ContextSnapshot:
        """Freeze the history visible to every participant in ``round_number``."""
        prior = tuple(t for t in self.turns if t.finalized and t.round < round_number)
        return ContextSnapshot(round=round_number, prior_turns=prior)

    def start_round(self, round_number: int) -> None:
        """Mark ``round_number`` as the round in progress."""
        self._check_round(round_number)
        self.current_round = round_number

    def append_round(self, round_number: int, turns: list[Turn]) -> None:
        """Append the finalized turns of a completed round.

        Raises:
            ValueError: If a turn is unfinalized or out of range, reuses a turn
                id, or duplicates a participant's turn for this round.
        """
        self._check_round(round_number)

        seen = {t.participant_id for t in self.turns if t.round == round_number}
        turn_ids = {t.id for t in self.turns}
        for turn in turns:
            if turn.id in turn_ids:
                raise ValueError(f"Turn id {turn.id} is already in the session")
            turn_ids.add(turn.id)
            if not turn.finalized:
                raise ValueError(f"Turn {turn.id} is not finalized")
            if turn.round != round_number:
                raise ValueError(f"Turn {turn.id} belongs to round {turn.round}, not {round_number}")
            if turn.participant_id in seen:
                raise ValueError(
                    f"Participant {turn.participant_id} already has a turn in round {round_number}"
                )
            seen.add(turn.participant_id)

        self.turns.extend(turns)

    def _check_round(self, round_number: int) -> None:
        if not 1 <= round_number <= self.total_rounds:
            raise ValueError(f"Round {round_number} outside 1..{self.total_rounds}")
