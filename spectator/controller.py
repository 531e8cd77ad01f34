"""Client session controller: one live debate at a time."""

import asyncio
import logging
from contextlib import aclosing
from typing import Any, Callable

import httpx

from .api import DebateAPI
from .reducer import INITIAL_STATE, DebateState, apply_event, fail, start_state

logger = logging.getLogger(__name__)

Subscriber = Callable[[DebateState], None]


class DebateController:
    """Owns the client-side state of a single debate session.

    Events are folded by a single consumer task, so ``state`` only ever changes
    on that task. Starting a new session or resetting cancels the previous one.
    """

    def __init__(self, api: DebateAPI) -> None:
        self.api = api
        self.state: DebateState = INITIAL_STATE
        self._task: asyncio.Task | None = None
        self._subscribers: list[Subscriber] = []

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a state observer. Returns a function that unsubscribes it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _set_state(self, state: DebateState) -> None:
        if state is self.state:
            return
        self.state = state
        for callback in list(self._subscribers):
            try:
                callback(state)
            except Exception:
                logger.exception("State subscriber failed")

    async def start(
        self,
        question: str,
        participants: list[dict[str, Any]] | None = None,
        file_context: str | None = None,
        use_web_search: bool = False,
        round_count: int | None = None,
    ) -> asyncio.Task:
        """Start a new session, cancelling any in-flight one.

        Returns the consumer task; awaiting it waits for the session to end.
        """
        await self._cancel()
        self._set_state(start_state(question))
        self._task = asyncio.create_task(
            self._consume(question, participants, file_context, use_web_search, round_count)
        )
        return self._task

    async def reset(self) -> None:
        """Cancel the current session and return to the initial state."""
        await self._cancel()
        self._set_state(INITIAL_STATE)

    async def _cancel(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _consume(
        self,
        question: str,
        participants: list[dict[str, Any]] | None,
        file_context: str | None,
        use_web_search: bool,
        round_count: int | None,
    ) -> None:
        try:
            events = self.api.stream_debate(
                question,
                participants=participants,
                file_context=file_context,
                use_web_search=use_web_search,
                round_count=round_count,
            )
            async with aclosing(events):
                async for event in events:
                    self._set_state(apply_event(self.state, event))
        except httpx.HTTPStatusError as e:
            logger.warning("Debate request rejected. Status: %d", e.response.status_code)
            self._set_state(fail(self.state, _rejection_message(e.response)))
            return
        except httpx.HTTPError as e:
            logger.warning("Debate stream failed. Error: %s", e)
            self._set_state(fail(self.state, f"Connection error: {e}"))
            return

        # Stream closed without a terminal event
        self._set_state(fail(self.state, "Debate stream ended unexpectedly"))


def _rejection_message(response: httpx.Response) -> str:
    try:
        detail = response.json().get("detail")
    except ValueError:
        detail = None
    if isinstance(detail, str) and detail:
        return detail
    return f"Request failed with HTTP {response.status_code}"
