"""Panel synthesis: turning a question (and optional seat specs) into participants."""

import logging
import re
import time
from collections import OrderedDict
from typing import Callable, Generic, Hashable, TypeVar

from . import config
from .models import Participant, ParticipantSpec, new_id
from .openrouter import query_structured
from .prompts import COLORS, GeneratedParticipant, PanelOutput, build_panel_messages

logger = logging.getLogger(__name__)

EMOJIS = ["⚖️", "🏛️", "📊", "🔬", "💡", "🌍", "💼", "📚", "🎯", "🧠"]

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class TTLCache(Generic[K, V]):
    """Bounded in-memory cache with per-entry expiry.

    Oldest entries are evicted first once ``max_entries`` is exceeded. Create
    one instance and pass it to whatever needs it.
    """

    def __init__(
        self,
        max_entries: int,
        ttl_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: OrderedDict[K, tuple[float, V]] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: K) -> V | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        created_at, value = entry
        if self._clock() - created_at > self.ttl_seconds:
            del self._entries[key]
            return None
        return value

    def set(self, key: K, value: V) -> None:
        self._entries.pop(key, None)
        self._entries[key] = (self._clock(), value)
        self._prune()

    def clear(self) -> None:
        self._entries.clear()

    def _prune(self) -> None:
        now = self._clock()
        expired = [k for k, (created_at, _) in self._entries.items() if now - created_at > self.ttl_seconds]
        for key in expired:
            del self._entries[key]
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)


PanelCache = TTLCache[tuple, tuple[Participant, ...]]


def create_panel_cache() -> PanelCache:
    """Panel cache sized from config."""
    return TTLCache(
        max_entries=config.PANEL_CACHE_MAX_ENTRIES,
        ttl_seconds=config.PANEL_CACHE_TTL_SECONDS,
    )


def participant_count_for(question: str) -> int:
    """Panel size when the caller does not specify seats."""
    lower = question.lower()
    if "supreme court" in lower or "justices" in lower:
        return 9
    if "senate" in lower or "congress" in lower or "committee" in lower:
        return 5
    return 4


def pick_voice_for_index(index: int) -> str:
    """Round-robin over configured voice ids, falling back to the built-in voices."""
    voices = config.VOICE_IDS or config.DEFAULT_VOICES
    return voices[index % len(voices)]


def _normalize_name(name: str) -> str:
    return re.sub(r"\s+", " ", name.strip().lower())


def _from_generated(generated: GeneratedParticipant, index: int, used_ids: set[str]) -> Participant:
    participant_id = generated.id.strip() or new_id()
    if participant_id in used_ids:
        participant_id = f"{participant_id}_{index + 1}"
    used_ids.add(participant_id)
    return Participant(
        id=participant_id,
        name=generated.name,
        role=generated.role,
        perspective=generated.perspective,
        voice_id=pick_voice_for_index(index),
        color=generated.color or COLORS[index % len(COLORS)],
        emoji=generated.emoji or EMOJIS[index % len(EMOJIS)],
    )


def merge_panel(
    generated: list[GeneratedParticipant],
    specs: list[ParticipantSpec] | None = None,
) -> tuple[Participant, ...]:
    """
    Combine generated profiles with caller specs.

    With specs, the panel keeps the specs' order, names and voices; each seat
    takes the generated profile with the same normalized name, else the one at
    the same position.
    """
    used_ids: set[str] = set()
    if not specs:
        return tuple(_from_generated(g, i, used_ids) for i, g in enumerate(generated))

    by_name = {_normalize_name(g.name): g for g in generated}
    panel = []
    for i, spec in enumerate(specs):
        match = by_name.get(_normalize_name(spec.name))
        if match is None and i < len(generated):
            match = generated[i]
        if match is None:
            match = GeneratedParticipant(id="", name=spec.name, role="", perspective=spec.description)
        base = _from_generated(match, i, used_ids)
        panel.append(Participant(
            id=base.id,
            name=spec.name,
            role=base.role,
            perspective=base.perspective,
            voice_id=(spec.voice_id or "").strip() or base.voice_id,
            color=base.color,
            emoji=base.emoji,
        ))
    return tuple(panel)


def _cache_key(question: str, specs: list[ParticipantSpec] | None) -> tuple:
    return (question.strip(), tuple(specs or ()))


async def assemble_panel(
    question: str,
    specs: list[ParticipantSpec] | None,
    *,
    model: str,
    cache: PanelCache | None = None,
) -> tuple[Participant, ...]:
    """
    Synthesize the debate panel, reusing a cached panel for the same request.

    Raises:
        UpstreamGenerationError: If persona synthesis fails.
    """
    key = _cache_key(question, specs)
    if cache is not None:
        cached = cache.get(key)
        if cached is not None:
            logger.info("Reusing cached panel. Participants: %d", len(cached))
            return cached

    count = len(specs) if specs else participant_count_for(question)
    start = time.monotonic()
    output = await query_structured(model, build_panel_messages(question, count, specs), PanelOutput)
    panel = merge_panel(output.participants, specs)
    logger.info(
        "Panel synthesized. Requested: %d, Participants: %d, Duration: %.2fs",
        count, len(panel), time.monotonic() - start,
    )

    if cache is not None and panel:
        cache.set(key, panel)
    return panel
