"""Client-side reducer folding progress events into display state.

``apply_event(state, event)`` is pure: it never mutates ``state`` and has no
side effects. Observers (audio playback, renderers) react to state changes on
their own.
"""

import dataclasses
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from pydantic import BaseModel

from roundtable.models import Participant
from roundtable.protocol import (
    DecisionReady,
    KeyArgument,
    LookupDone,
    LookupStart,
    ParticipantsReady,
    RoundStart,
    SessionDone,
    SessionError,
    SummaryDone,
    SummaryToken,
    TurnDone,
    TurnStart,
    TurnToken,
)
from roundtable.stance import parse_stance


class DebateStatus(str, Enum):
    IDLE = "idle"
    GENERATING_PARTICIPANTS = "generating_participants"
    SEARCHING = "searching"
    DEBATING = "debating"
    SUMMARIZING = "summarizing"
    DONE = "done"
    ERROR = "error"


TERMINAL_STATUSES = frozenset({DebateStatus.DONE, DebateStatus.ERROR})


@dataclass(frozen=True)
class TurnView:
    """A turn as the client sees it."""

    id: str
    participant_id: str
    round: int
    content: str = ""
    spoken_content: str | None = None
    stance: int | None = None
    voice_id: str | None = None
    timestamp: float = 0.0
    done: bool = False


@dataclass(frozen=True)
class DebateState:
    """Display-ready session state."""

    question: str = ""
    participants: tuple[Participant, ...] = ()
    turns: tuple[TurnView, ...] = ()
    status: DebateStatus = DebateStatus.IDLE
    current_round: int = 0
    total_rounds: int = 0
    summary: str = ""
    decision: str = ""
    confidence: float = 0.0
    key_arguments: tuple[KeyArgument, ...] = ()
    for_count: int | None = None
    against_count: int | None = None
    total_voters: int | None = None
    error: str | None = None
    active_participant_ids: frozenset[str] = field(default_factory=frozenset)
    active_turn_ids: frozenset[str] = field(default_factory=frozenset)

    def turn(self, turn_id: str) -> TurnView | None:
        for turn in self.turns:
            if turn.id == turn_id:
                return turn
        return None


INITIAL_STATE = DebateState()


def start_state(question: str) -> DebateState:
    """State for a freshly requested session, before any event arrives."""
    return DebateState(question=question, status=DebateStatus.GENERATING_PARTICIPANTS)


def _replace_turn(state: DebateState, turn_id: str, update: Callable[[TurnView], TurnView]) -> tuple[TurnView, ...]:
    return tuple(update(t) if t.id == turn_id else t for t in state.turns)


def _on_participants_ready(state: DebateState, event: ParticipantsReady) -> DebateState:
    return dataclasses.replace(
        state,
        participants=tuple(Participant.from_dict(p) for p in event.participants),
        status=DebateStatus.DEBATING,
    )


def _on_lookup_start(state: DebateState, event: LookupStart) -> DebateState:
    return dataclasses.replace(state, status=DebateStatus.SEARCHING)


def _on_lookup_done(state: DebateState, event: LookupDone) -> DebateState:
    return dataclasses.replace(state, status=DebateStatus.DEBATING)


def _on_round_start(state: DebateState, event: RoundStart) -> DebateState:
    return dataclasses.replace(
        state,
        current_round=event.round,
        total_rounds=event.total_rounds,
        status=DebateStatus.DEBATING,
    )


def _on_turn_start(state: DebateState, event: TurnStart) -> DebateState:
    if state.turn(event.turn_id) is not None:
        return state
    turn = TurnView(
        id=event.turn_id,
        participant_id=event.participant_id,
        round=state.current_round,
        voice_id=event.voice_id,
        timestamp=event.created_at,
    )
    return dataclasses.replace(
        state,
        turns=state.turns + (turn,),
        active_participant_ids=state.active_participant_ids | {event.participant_id},
        active_turn_ids=state.active_turn_ids | {event.turn_id},
    )


def _on_turn_token(state: DebateState, event: TurnToken) -> DebateState:
    current = state.turn(event.turn_id)
    if current is None or current.done:
        return state
    return dataclasses.replace(
        state,
        turns=_replace_turn(
            state, event.turn_id, lambda t: dataclasses.replace(t, content=t.content + event.token)
        ),
    )


def _on_turn_done(state: DebateState, event: TurnDone) -> DebateState:
    current = state.turn(event.turn_id)
    if current is None or current.done:
        return state

    def finalize(turn: TurnView) -> TurnView:
        # Upstream may not have followed the directive format exactly
        parsed = parse_stance(turn.content)
        return dataclasses.replace(
            turn,
            content=parsed.display_text,
            spoken_content=event.spoken_text or parsed.spoken_text or None,
            stance=event.stance if event.stance is not None else parsed.stance,
            done=True,
        )

    return dataclasses.replace(
        state,
        turns=_replace_turn(state, event.turn_id, finalize),
        active_participant_ids=state.active_participant_ids - {event.participant_id},
        active_turn_ids=state.active_turn_ids - {event.turn_id},
    )


def _on_summary_token(state: DebateState, event: SummaryToken) -> DebateState:
    return dataclasses.replace(
        state, status=DebateStatus.SUMMARIZING, summary=state.summary + event.token
    )


def _on_summary_done(state: DebateState, event: SummaryDone) -> DebateState:
    return dataclasses.replace(state, status=DebateStatus.SUMMARIZING)


def _on_decision_ready(state: DebateState, event: DecisionReady) -> DebateState:
    return dataclasses.replace(
        state,
        decision=event.decision,
        confidence=event.confidence,
        key_arguments=tuple(event.key_arguments),
        for_count=event.for_count,
        against_count=event.against_count,
        total_voters=event.total_voters,
    )


def _on_session_done(state: DebateState, event: SessionDone) -> DebateState:
    return dataclasses.replace(
        state,
        status=DebateStatus.DONE,
        active_participant_ids=frozenset(),
        active_turn_ids=frozenset(),
    )


def _on_session_error(state: DebateState, event: SessionError) -> DebateState:
    return dataclasses.replace(
        state,
        status=DebateStatus.ERROR,
        error=event.message,
        active_participant_ids=frozenset(),
        active_turn_ids=frozenset(),
    )


_HANDLERS: dict[type[BaseModel], Callable[[DebateState, Any], DebateState]] = {
    ParticipantsReady: _on_participants_ready,
    LookupStart: _on_lookup_start,
    LookupDone: _on_lookup_done,
    RoundStart: _on_round_start,
    TurnStart: _on_turn_start,
    TurnToken: _on_turn_token,
    TurnDone: _on_turn_done,
    SummaryToken: _on_summary_token,
    SummaryDone: _on_summary_done,
    DecisionReady: _on_decision_ready,
    SessionDone: _on_session_done,
    SessionError: _on_session_error,
}


def apply_event(state: DebateState, event: BaseModel) -> DebateState:
    """Fold one event into the state. Terminal states absorb every event."""
    if state.status in TERMINAL_STATUSES:
        return state
    handler = _HANDLERS.get(type(event))
    if handler is None:
        return state
    return handler(state, event)


def fail(state: DebateState, message: str) -> DebateState:
    """Move a non-terminal state to error, e.g. on a transport failure."""
    return apply_event(state, SessionError(message=message))
