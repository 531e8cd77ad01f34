"""FastAPI backend for Roundtable."""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from . import config
from .errors import SessionValidationError
from .logging_config import setup_logging
from .models import ParticipantSpec
from .openrouter import close_shared_client
from .panel import create_panel_cache
from .protocol import SessionError, encode_sse
from .session import DebateSessionInput, run_debate_session, validate_input
from .shutdown import ShutdownCoordinator
from .telemetry import instrument_app, setup_telemetry
from .websearch import is_web_search_available

logger = logging.getLogger(__name__)

shutdown_coordinator = ShutdownCoordinator()


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    setup_telemetry()
    instrument_app(app)
    app.state.panel_cache = create_panel_cache()
    yield
    shutdown_coordinator.initiate_shutdown()
    await close_shared_client()


app = FastAPI(title="Roundtable API", lifespan=lifespan)

# Enable CORS for local development (when running a frontend separately)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class ParticipantSpecRequest(BaseModel):
    """One caller-specified panel seat."""
    name: str
    description: str = ""
    voice_id: Optional[str] = None


class DebateRequest(BaseModel):
    """Request to start a debate session."""
    question: str = ""
    participants: List[ParticipantSpecRequest] = Field(default_factory=list)
    file_context: Optional[str] = None
    use_web_search: bool = False
    round_count: Optional[int] = Field(
        default=None,
        ge=config.MIN_TOTAL_ROUNDS,
        le=config.MAX_TOTAL_ROUNDS,
        description=f"Number of rounds ({config.MIN_TOTAL_ROUNDS}-{config.MAX_TOTAL_ROUNDS})",
    )


@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok", "service": "Roundtable API"}


@app.get("/api/config")
async def get_config():
    """Get API configuration and feature availability."""
    return {
        "web_search_available": is_web_search_available(),
        "debate_model": config.get_debate_model(),
        "rounds": {
            "default": config.get_total_rounds(),
            "min": config.MIN_TOTAL_ROUNDS,
            "max": config.MAX_TOTAL_ROUNDS,
        },
        "session_max_duration": config.SESSION_MAX_DURATION,
    }


class UpdateConfigRequest(BaseModel):
    """Request to update debate defaults."""
    debate_model: Optional[str] = None
    total_rounds: Optional[int] = Field(
        default=None, ge=config.MIN_TOTAL_ROUNDS, le=config.MAX_TOTAL_ROUNDS,
    )


@app.post("/api/config")
async def update_config(request: UpdateConfigRequest):
    """Update debate configuration."""
    if request.debate_model is not None and not request.debate_model.strip():
        raise HTTPException(status_code=400, detail="Debate model must not be empty")

    config.update_debate_config(
        debate_model=request.debate_model.strip() if request.debate_model else None,
        total_rounds=request.total_rounds,
    )

    return {
        "status": "ok",
        "debate_model": config.get_debate_model(),
        "total_rounds": config.get_total_rounds(),
    }


@app.post("/api/config/reload")
async def reload_config_endpoint():
    """Reload configuration from .env and config files.

    Picks up changed API keys and voice ids without restarting the server.
    """
    return config.reload_config()


@app.post("/api/debate")
async def start_debate(request: DebateRequest, http_request: Request):
    """Start a debate and stream its progress events.

    Returns Server-Sent Events until the session ends with session_done or
    session_error.
    """
    session_input = DebateSessionInput(
        question=request.question,
        participant_specs=[
            ParticipantSpec(name=p.name, description=p.description, voice_id=p.voice_id)
            for p in request.participants
        ],
        file_context=request.file_context or None,
        use_web_search=request.use_web_search,
        total_rounds=request.round_count or config.get_total_rounds(),
        model=config.get_debate_model(),
    )

    try:
        validate_input(session_input)
    except SessionValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    panel_cache = getattr(http_request.app.state, "panel_cache", None)

    async def event_generator():
        shutdown_coordinator.register_stream()
        deadline = time.monotonic() + config.SESSION_MAX_DURATION
        events = run_debate_session(session_input, panel_cache=panel_cache)
        try:
            while True:
                if shutdown_coordinator.is_shutting_down:
                    yield shutdown_coordinator.shutdown_frame()
                    return
                remaining = deadline - time.monotonic()
                try:
                    event = await asyncio.wait_for(events.__anext__(), timeout=max(remaining, 0.001))
                except StopAsyncIteration:
                    return
                except asyncio.TimeoutError:
                    logger.warning(
                        "Debate stream exceeded time limit. Limit: %.0fs", config.SESSION_MAX_DURATION,
                    )
                    yield encode_sse(SessionError(message="Debate exceeded the time limit"))
                    return
                yield encode_sse(event)
        finally:
            await events.aclose()
            shutdown_coordinator.unregister_stream()

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
        },
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)
