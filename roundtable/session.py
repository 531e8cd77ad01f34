"""Debate session pipeline: validation, panel, lookup, rounds, verdict."""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import AsyncGenerator

from pydantic import BaseModel

from . import config
from .errors import SessionValidationError, UpstreamGenerationError, UpstreamLookupError
from .logging_config import set_session_id
from .models import ParticipantSpec, Session, SessionStatus
from .panel import PanelCache, assemble_panel
from .protocol import EventSink, LookupDone, LookupStart, ParticipantsReady
from .scheduler import RoundScheduler
from .websearch import lookup_digest

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DebateSessionInput:
    """All inputs needed to run one debate session."""

    question: str
    participant_specs: list[ParticipantSpec] = field(default_factory=list)
    file_context: str | None = None
    use_web_search: bool = False
    total_rounds: int = config.DEFAULT_TOTAL_ROUNDS
    model: str = config.DEFAULT_DEBATE_MODEL


def validate_input(input: DebateSessionInput) -> None:
    """
    Reject a request before any session starts.

    Raises:
        SessionValidationError: If the question is empty or the round count is out of range.
    """
    if not input.question or not input.question.strip():
        raise SessionValidationError("Question is required")
    if not config.MIN_TOTAL_ROUNDS <= input.total_rounds <= config.MAX_TOTAL_ROUNDS:
        raise SessionValidationError(
            f"Round count must be between {config.MIN_TOTAL_ROUNDS} and {config.MAX_TOTAL_ROUNDS}"
        )
    for spec in input.participant_specs:
        if not spec.name.strip():
            raise SessionValidationError("Participant names must not be empty")


async def _lookup(question: str, sink: EventSink) -> str | None:
    """Optional background lookup. Failures are logged and swallowed."""
    sink.emit(LookupStart(query=question))
    try:
        digest = await lookup_digest(question)
    except UpstreamLookupError as e:
        logger.warning("Web lookup failed, continuing without it. Error: %s", e)
        sink.emit(LookupDone(found=False, error=str(e)))
        return None
    sink.emit(LookupDone(found=bool(digest)))
    return digest or None


async def drive_session(
    input: DebateSessionInput,
    sink: EventSink,
    *,
    panel_cache: PanelCache | None = None,
) -> Session | None:
    """
    Run a whole session, emitting into ``sink``.

    Always terminates the sink with exactly one terminal event, except when
    cancelled, in which case the stream consumer is already gone.

    Returns:
        The finished session, or None if it failed.
    """
    session_start = time.monotonic()
    session: Session | None = None
    try:
        participants = await assemble_panel(
            input.question.strip(),
            input.participant_specs or None,
            model=input.model,
            cache=panel_cache,
        )
        if not participants:
            raise UpstreamGenerationError(input.model, "Panel synthesis returned no participants")

        session = Session(
            question=input.question.strip(),
            participants=participants,
            total_rounds=input.total_rounds,
        )
        set_session_id(session.id)
        logger.info(
            "Beginning debate session. Participants: %d, Rounds: %d, Model: %s, WebSearch: %s",
            len(participants), input.total_rounds, input.model, input.use_web_search,
        )
        sink.emit(ParticipantsReady(participants=[p.to_dict() for p in participants]))

        web_digest = None
        if input.use_web_search:
            web_digest = await _lookup(session.question, sink)

        scheduler = RoundScheduler(
            session,
            sink,
            model=input.model,
            web_digest=web_digest,
            file_context=input.file_context,
        )
        await scheduler.run()

        logger.info(
            "Successfully completed debate session. Turns: %d, Duration: %.2fs",
            len(session.turns), time.monotonic() - session_start,
        )
        sink.finish()
        return session

    except asyncio.CancelledError:
        logger.info(
            "Debate session cancelled. Duration: %.2fs", time.monotonic() - session_start,
        )
        if session is not None:
            session.status = SessionStatus.FAILED
        raise
    except Exception as e:
        logger.exception(
            "Failed debate session. Duration: %.2fs, Error: %s", time.monotonic() - session_start, e,
        )
        if session is not None:
            session.status = SessionStatus.FAILED
        sink.fail(str(e))
        return None


async def run_debate_session(
    input: DebateSessionInput,
    *,
    panel_cache: PanelCache | None = None,
) -> AsyncGenerator[BaseModel, None]:
    """
    Run a debate session, yielding progress events in order.

    The session runs in its own task feeding an ``EventSink``; this generator
    is the stream's single consumer. Closing the generator (client
    disconnect, reset) cancels the session and every in-flight generation call.

    Raises:
        SessionValidationError: Before the first event, if the input is invalid.
    """
    validate_input(input)

    sink = EventSink()
    task = asyncio.create_task(drive_session(input, sink, panel_cache=panel_cache))
    try:
        async for event in sink.events():
            yield event
        await task
    finally:
        if not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
