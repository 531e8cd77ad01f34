"""A single participant's streamed turn within one round."""

import logging
import time
from dataclasses import dataclass

from . import config
from .models import ContextSnapshot, Participant, Turn, new_id
from .openrouter import stream_completion
from .prompts import build_turn_messages
from .protocol import EventSink, TurnDone, TurnStart, TurnToken
from .stance import parse_stance
from .telemetry import get_tracer, is_telemetry_enabled

logger = logging.getLogger(__name__)


@dataclass
class TurnTask:
    """Generates one participant's turn for one round.

    Reads only the frozen snapshot it was given; the finalized turn is returned
    to the scheduler rather than written into shared history.
    """

    participant: Participant
    question: str
    round: int
    total_rounds: int
    snapshot: ContextSnapshot
    participants: tuple[Participant, ...]
    sink: EventSink
    model: str
    web_digest: str | None = None
    file_context: str | None = None

    async def run(self) -> Turn:
        """
        Stream the turn, forwarding every token, then parse and finalize it.

        Raises:
            UpstreamGenerationError: If the generation call fails.
        """
        turn = Turn(id=new_id(), participant_id=self.participant.id, round=self.round)
        self.sink.emit(TurnStart(
            participant_id=self.participant.id,
            turn_id=turn.id,
            voice_id=self.participant.voice_id,
            created_at=turn.created_at,
        ))

        messages = build_turn_messages(
            self.participant,
            self.question,
            self.round,
            self.total_rounds,
            self.snapshot,
            self.participants,
            web_digest=self.web_digest,
            file_context=self.file_context,
        )

        tracer = get_tracer()
        span_attributes = {
            "debate.round": self.round,
            "debate.participant_id": self.participant.id,
            "debate.prior_turns": len(self.snapshot.prior_turns),
        }
        with tracer.start_as_current_span("debate.turn", attributes=span_attributes) as span:
            start = time.monotonic()
            async for token in stream_completion(
                self.model,
                messages,
                max_tokens=config.TURN_MAX_TOKENS,
                temperature=config.TURN_TEMPERATURE,
            ):
                turn.append(token)
                self.sink.emit(TurnToken(
                    participant_id=self.participant.id, turn_id=turn.id, token=token,
                ))

            parsed = parse_stance(turn.raw_text)
            turn.finalize(parsed.display_text, parsed.spoken_text, parsed.stance)
            if is_telemetry_enabled():
                span.set_attribute("debate.stance", parsed.stance or 0)

        if parsed.stance is None:
            logger.warning(
                "Turn finished without a stance directive. Participant: %s, Round: %d",
                self.participant.id, self.round,
            )
        logger.debug(
            "Turn complete. Participant: %s, Round: %d, Stance: %s, Chars: %d, Duration: %.2fs",
            self.participant.id, self.round, parsed.stance, len(turn.raw_text),
            time.monotonic() - start,
        )

        self.sink.emit(TurnDone(
            participant_id=self.participant.id,
            turn_id=turn.id,
            stance=parsed.stance,
            spoken_text=parsed.spoken_text or None,
        ))
        return turn
