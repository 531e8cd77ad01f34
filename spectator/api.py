"""API client for the Roundtable spectator."""

import logging
from collections.abc import AsyncIterator
from typing import Any

import httpx

from roundtable.errors import StreamDecodeError
from roundtable.protocol import ProgressEvent, parse_sse_line

logger = logging.getLogger(__name__)


class DebateAPI:
    """Client for the Roundtable API."""

    def __init__(self, base_url: str = "http://localhost:8001", client: httpx.AsyncClient | None = None):
        self.base_url = base_url
        self.client = client or httpx.AsyncClient(base_url=base_url, timeout=httpx.Timeout(None, connect=10.0))

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    async def stream_debate(
        self,
        question: str,
        participants: list[dict[str, Any]] | None = None,
        file_context: str | None = None,
        use_web_search: bool = False,
        round_count: int | None = None,
    ) -> AsyncIterator[ProgressEvent]:
        """Start a debate and stream its progress events.

        Malformed frames are logged and skipped; they never end the stream.

        Raises:
            httpx.HTTPStatusError: If the server rejects the request.
        """
        body: dict[str, Any] = {
            "question": question,
            "participants": participants or [],
            "use_web_search": use_web_search,
        }
        if file_context:
            body["file_context"] = file_context
        if round_count is not None:
            body["round_count"] = round_count

        async with self.client.stream("POST", "/api/debate", json=body) as response:
            if response.is_error:
                await response.aread()
            response.raise_for_status()
            async for line in response.aiter_lines():
                try:
                    event = parse_sse_line(line)
                except StreamDecodeError as e:
                    logger.warning("Dropping malformed stream frame. Error: %s", e)
                    continue
                if event is not None:
                    yield event
