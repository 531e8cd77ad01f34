"""Progress events streamed from a debate session to its consumer.

The event set is closed; ``ProgressEvent`` is a union discriminated on
``type``. A session's stream is strictly ordered and one-way:

- per turn id: one ``turn_start``, any number of ``turn_token``, one ``turn_done``
- ``round_start(r)`` precedes every turn of round r, and every ``turn_done`` of
  round r precedes ``round_start(r + 1)``
- exactly one terminal event (``session_done`` or ``session_error``) ends it

Turns of the same round interleave freely.
"""

import asyncio
import logging
from typing import Annotated, Any, AsyncIterator, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from .errors import StreamDecodeError

logger = logging.getLogger(__name__)


class KeyArgument(BaseModel):
    """One participant's strongest point, as extracted for the verdict."""

    participant_id: str
    argument: str


class ParticipantsReady(BaseModel):
    type: Literal["participants_ready"] = "participants_ready"
    participants: list[dict[str, Any]]


class RoundStart(BaseModel):
    type: Literal["round_start"] = "round_start"
    round: int = Field(ge=1)
    total_rounds: int = Field(ge=1)


class TurnStart(BaseModel):
    type: Literal["turn_start"] = "turn_start"
    participant_id: str
    turn_id: str
    voice_id: str | None = None
    created_at: float = 0.0


class TurnToken(BaseModel):
    type: Literal["turn_token"] = "turn_token"
    participant_id: str
    turn_id: str
    token: str


class TurnDone(BaseModel):
    type: Literal["turn_done"] = "turn_done"
    participant_id: str
    turn_id: str
    stance: int | None = Field(default=None, ge=1, le=6)
    spoken_text: str | None = None


class LookupStart(BaseModel):
    type: Literal["lookup_start"] = "lookup_start"
    query: str


class LookupDone(BaseModel):
    type: Literal["lookup_done"] = "lookup_done"
    found: bool = False
    error: str | None = None


class SummaryToken(BaseModel):
    type: Literal["summary_token"] = "summary_token"
    token: str


class SummaryDone(BaseModel):
    type: Literal["summary_done"] = "summary_done"


class DecisionReady(BaseModel):
    type: Literal["decision_ready"] = "decision_ready"
    decision: str
    confidence: float = Field(ge=0, le=100)
    key_arguments: list[KeyArgument] = Field(default_factory=list)
    for_count: int = 0
    against_count: int = 0
    total_voters: int = 0


class SessionDone(BaseModel):
    type: Literal["session_done"] = "session_done"


class SessionError(BaseModel):
    type: Literal["session_error"] = "session_error"
    message: str


ProgressEvent = Annotated[
    Union[
        ParticipantsReady,
        RoundStart,
        TurnStart,
        TurnToken,
        TurnDone,
        LookupStart,
        LookupDone,
        SummaryToken,
        SummaryDone,
        DecisionReady,
        SessionDone,
        SessionError,
    ],
    Field(discriminator="type"),
]

TERMINAL_EVENTS = (SessionDone, SessionError)

_event_adapter: TypeAdapter[ProgressEvent] = TypeAdapter(ProgressEvent)


def is_terminal(event: BaseModel) -> bool:
    return isinstance(event, TERMINAL_EVENTS)


def encode_sse(event: BaseModel) -> str:
    """Format an event as one SSE ``data:`` frame."""
    return f"data: {event.model_dump_json(exclude_none=True)}\n\n"


def parse_event(data: str | bytes | dict[str, Any]) -> ProgressEvent:
    """
    Decode one event from a JSON payload or an already-decoded dict.

    Raises:
        StreamDecodeError: If the payload is not valid JSON or not a known event.
    """
    try:
        if isinstance(data, dict):
            return _event_adapter.validate_python(data)
        return _event_adapter.validate_json(data)
    except (ValidationError, ValueError) as e:
        raise StreamDecodeError(f"Malformed event: {e}") from e


def parse_sse_line(line: str) -> ProgressEvent | None:
    """
    Decode an SSE line. Returns None for lines that carry no event.

    Raises:
        StreamDecodeError: If a ``data:`` line carries a malformed event.
    """
    line = line.strip()
    if not line.startswith("data:"):
        return None
    payload = line[len("data:"):].strip()
    if not payload:
        return None
    return parse_event(payload)


class EventSink:
    """Ordered, append-only event stream for one session.

    Producers call ``emit`` (never blocks; the queue is unbounded because a
    session's event count is small). The single consumer drains ``events()``,
    which ends after the terminal event. Once a terminal event has been emitted
    every later emit is dropped.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[BaseModel] = asyncio.Queue()
        self._closed = False
        self.emitted = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def emit(self, event: BaseModel) -> None:
        if self._closed:
            logger.debug("Dropping event after terminal event. Type: %s", getattr(event, "type", "?"))
            return
        self._queue.put_nowait(event)
        self.emitted += 1
        if is_terminal(event):
            self._closed = True

    def finish(self) -> None:
        """Terminate the stream successfully."""
        self.emit(SessionDone())

    def fail(self, message: str) -> None:
        """Terminate the stream with a single human-readable error."""
        self.emit(SessionError(message=message))

    async def events(self) -> AsyncIterator[BaseModel]:
        """Yield events in emission order, ending after the terminal event."""
        while True:
            event = await self._queue.get()
            yield event
            if is_terminal(event):
                return
