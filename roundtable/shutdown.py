"""Graceful shutdown coordinator for live debate streams.

On SIGTERM, each live stream ends with a single ``session_error`` frame rather
than a dropped connection, so clients see a readable message.
"""

import logging

from .protocol import SessionError, encode_sse

logger = logging.getLogger(__name__)

SHUTDOWN_MESSAGE = "Server is restarting. Please start the debate again."


class ShutdownCoordinator:
    """Tracks shutdown state and the number of live streams."""

    def __init__(self) -> None:
        self._shutting_down = False
        self._active_streams = 0

    @property
    def is_shutting_down(self) -> bool:
        return self._shutting_down

    @property
    def active_stream_count(self) -> int:
        return self._active_streams

    def initiate_shutdown(self) -> None:
        """Signal all live streams that the server is going down."""
        logger.info("Shutdown initiated. Active streams: %d", self._active_streams)
        self._shutting_down = True

    def register_stream(self) -> None:
        self._active_streams += 1

    def unregister_stream(self) -> None:
        self._active_streams = max(0, self._active_streams - 1)

    def shutdown_frame(self) -> str:
        """The terminal SSE frame sent to a stream interrupted by shutdown."""
        return encode_sse(SessionError(message=SHUTDOWN_MESSAGE))
