"""Round scheduling for a debate session."""

import logging
import time

from .barrier import gather_all_or_nothing
from .models import Session, SessionStatus
from .protocol import EventSink, RoundStart
from .tally import compute_vote_tally
from .telemetry import get_tracer, is_telemetry_enabled
from .turn import TurnTask
from .verdict import generate_verdict, stream_summary

logger = logging.getLogger(__name__)


class RoundScheduler:
    """Drives rounds 1..R, then the summary, tally and verdict.

    Every participant in a round sees the same snapshot of earlier rounds, so
    participants in one round only react to each other in the next. Turns of a
    round run concurrently behind an all-or-nothing barrier: one failed turn
    cancels its siblings and aborts the session before the next round starts.
    The scheduler is the only writer of ``session.turns``.
    """

    def __init__(
        self,
        session: Session,
        sink: EventSink,
        *,
        model: str,
        web_digest: str | None = None,
        file_context: str | None = None,
    ) -> None:
        self.session = session
        self.sink = sink
        self.model = model
        self.web_digest = web_digest
        self.file_context = file_context

    async def run(self) -> None:
        """
        Run every round, then summary, tally and verdict.

        Raises:
            UpstreamGenerationError: If any generation call fails.
        """
        self.session.status = SessionStatus.RUNNING
        await self.run_rounds()

        self.session.status = SessionStatus.SUMMARIZING
        summary = await stream_summary(
            self.session, self.sink, self.model, file_context=self.file_context
        )

        tally = compute_vote_tally(self.session.turns, self.session.participants)
        logger.info(
            "Vote tally computed. Outcome: %s, For: %d, Against: %d, Voters: %d, Average: %.2f",
            tally.outcome, tally.for_count, tally.against_count, tally.total_voters,
            tally.average_stance,
        )

        decision = await generate_verdict(self.session, summary, tally, self.model)
        self.sink.emit(decision)
        self.session.status = SessionStatus.DONE

    async def run_rounds(self) -> None:
        for round_number in range(1, self.session.total_rounds + 1):
            await self.run_round(round_number)

    async def run_round(self, round_number: int) -> None:
        """Run one round: fan out every participant's turn, then append them to history."""
        session = self.session
        session.start_round(round_number)
        snapshot = session.snapshot(round_number)

        tracer = get_tracer()
        span_attributes = {
            "debate.round": round_number,
            "debate.total_rounds": session.total_rounds,
            "debate.participant_count": len(session.participants),
        }
        with tracer.start_as_current_span("debate.round", attributes=span_attributes) as span:
            start = time.monotonic()
            self.sink.emit(RoundStart(round=round_number, total_rounds=session.total_rounds))

            tasks = [
                TurnTask(
                    participant=participant,
                    question=session.question,
                    round=round_number,
                    total_rounds=session.total_rounds,
                    snapshot=snapshot,
                    participants=session.participants,
                    sink=self.sink,
                    model=self.model,
                    web_digest=self.web_digest,
                    file_context=self.file_context,
                )
                for participant in session.participants
            ]
            turns = await gather_all_or_nothing([task.run() for task in tasks])
            session.append_round(round_number, turns)

            if is_telemetry_enabled():
                span.set_attribute("debate.stances_recorded", sum(1 for t in turns if t.stance is not None))

        logger.info(
            "Round complete. Round: %d/%d, Turns: %d, Duration: %.2fs",
            round_number, session.total_rounds, len(turns), time.monotonic() - start,
        )
