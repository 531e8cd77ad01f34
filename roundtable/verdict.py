"""Summary and verdict generation after the last round."""

import logging

from . import config
from .models import Session
from .openrouter import query_structured, stream_completion
from .prompts import VerdictOutput, build_summary_messages, build_verdict_messages
from .protocol import DecisionReady, EventSink, SummaryDone, SummaryToken
from .tally import VoteTally, clamp_confidence

logger = logging.getLogger(__name__)


async def stream_summary(
    session: Session,
    sink: EventSink,
    model: str,
    file_context: str | None = None,
) -> str:
    """
    Stream the debate synthesis, forwarding each token.

    Returns:
        The full summary text
    """
    messages = build_summary_messages(
        session.question, session.turns, session.participants, file_context=file_context
    )
    summary = ""
    async for token in stream_completion(model, messages, max_tokens=config.SUMMARY_MAX_TOKENS):
        summary += token
        sink.emit(SummaryToken(token=token))
    sink.emit(SummaryDone())
    return summary


async def generate_verdict(
    session: Session,
    summary: str,
    tally: VoteTally,
    model: str,
) -> DecisionReady:
    """
    Ask for a verdict constrained by the tally.

    The generated text summarizes; the outcome and counts come from the tally,
    and the confidence is clamped to the band the tally's margin allows.
    """
    messages = build_verdict_messages(session.question, summary, tally, session.participants)
    output = await query_structured(model, messages, VerdictOutput)

    confidence = clamp_confidence(output.confidence, tally)
    if confidence != output.confidence:
        logger.info(
            "Clamped verdict confidence to tally margin. Generated: %.1f, Clamped: %.1f, Outcome: %s",
            output.confidence, confidence, tally.outcome,
        )

    known_ids = {p.id for p in session.participants}
    key_arguments = [arg for arg in output.key_arguments if arg.participant_id in known_ids]

    return DecisionReady(
        decision=output.decision,
        confidence=confidence,
        key_arguments=key_arguments,
        for_count=tally.for_count,
        against_count=tally.against_count,
        total_voters=tally.total_voters,
    )
