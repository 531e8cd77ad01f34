"""OpenRouter API client for streamed and structured generation."""

import json
import logging
import time
from typing import Any, AsyncIterator, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from . import config
from .errors import UpstreamGenerationError
from .telemetry import get_tracer, is_telemetry_enabled, record_span_error

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

DEFAULT_TIMEOUT = httpx.Timeout(120.0, connect=10.0)

_shared_client: httpx.AsyncClient | None = None


def get_shared_client() -> httpx.AsyncClient:
    """Get (or lazily create) the process-wide HTTP client."""
    global _shared_client
    if _shared_client is None or _shared_client.is_closed:
        _shared_client = httpx.AsyncClient(timeout=DEFAULT_TIMEOUT)
    return _shared_client


async def close_shared_client() -> None:
    """Close the shared HTTP client. Safe to call more than once."""
    global _shared_client
    if _shared_client is not None:
        await _shared_client.aclose()
        _shared_client = None


def _headers() -> dict[str, str]:
    return {
        "Authorization": f"Bearer {config.OPENROUTER_API_KEY}",
        "Content-Type": "application/json",
    }


async def _extract_error_message(response: httpx.Response) -> str:
    """Pull the human-readable message out of an OpenRouter error body."""
    try:
        await response.aread()
        body = response.json()
        message = body.get("error", {}).get("message")
        if message:
            return message
    except (ValueError, AttributeError, httpx.HTTPError):
        pass
    return f"HTTP {response.status_code}"


def _parse_stream_line(model: str, line: str) -> str | None:
    """
    Extract the text delta from one SSE line of a streamed completion.

    Returns:
        The delta text, "" for lines without content, or None at end of stream.
    """
    line = line.strip()
    if not line or line.startswith(":") or not line.startswith("data:"):
        return ""
    payload = line[len("data:"):].strip()
    if payload == "[DONE]":
        return None

    try:
        chunk = json.loads(payload)
    except json.JSONDecodeError:
        logger.warning("Skipping undecodable stream chunk. Model: %s", model)
        return ""

    if chunk.get("error"):
        error = chunk["error"]
        raise UpstreamGenerationError(
            model,
            error.get("message", "Generation failed mid-stream"),
            status_code=error.get("code") if isinstance(error.get("code"), int) else None,
            category="stream",
        )

    choices = chunk.get("choices") or []
    if not choices:
        return ""
    return (choices[0].get("delta") or {}).get("content") or ""


async def stream_completion(
    model: str,
    messages: list[dict[str, str]],
    *,
    max_tokens: int,
    temperature: float | None = None,
) -> AsyncIterator[str]:
    """
    Stream a chat completion, yielding text deltas as they arrive.

    Args:
        model: OpenRouter model identifier
        messages: Chat messages with 'role' and 'content'
        max_tokens: Output length ceiling
        temperature: Sampling temperature (provider default if None)

    Raises:
        UpstreamGenerationError: On any HTTP, transport or mid-stream failure.
    """
    payload: dict[str, Any] = {
        "model": model,
        "messages": messages,
        "max_tokens": max_tokens,
        "stream": True,
    }
    if temperature is not None:
        payload["temperature"] = temperature

    tracer = get_tracer()
    span_attributes = {"llm.model": model, "llm.max_tokens": max_tokens, "llm.stream": True}

    with tracer.start_as_current_span("llm.stream_completion", attributes=span_attributes) as span:
        start_time = time.monotonic()
        chunk_count = 0
        try:
            client = get_shared_client()
            async with client.stream(
                "POST", config.OPENROUTER_API_URL, headers=_headers(), json=payload
            ) as response:
                if response.status_code >= 400:
                    message = await _extract_error_message(response)
                    raise UpstreamGenerationError(model, message, status_code=response.status_code)

                async for line in response.aiter_lines():
                    delta = _parse_stream_line(model, line)
                    if delta is None:
                        break
                    if delta:
                        chunk_count += 1
                        yield delta
        except UpstreamGenerationError as e:
            logger.warning("Streamed generation failed. Model: %s, Error: %s", model, e.message)
            record_span_error(span, e)
            raise
        except httpx.TimeoutException as e:
            record_span_error(span, e)
            raise UpstreamGenerationError(model, "Generation timed out", category="timeout") from e
        except httpx.HTTPError as e:
            record_span_error(span, e)
            raise UpstreamGenerationError(model, f"Transport error: {e}", category="transport") from e

        if is_telemetry_enabled():
            span.set_attributes({
                "llm.chunk_count": chunk_count,
                "llm.latency_ms": int((time.monotonic() - start_time) * 1000),
            })


async def query_structured(
    model: str,
    messages: list[dict[str, str]],
    schema: type[M],
    *,
    temperature: float | None = None,
) -> M:
    """
    Request a schema-constrained JSON object and validate it.

    Args:
        model: OpenRouter model identifier
        messages: Chat messages with 'role' and 'content'
        schema: Pydantic model describing the expected object
        temperature: Sampling temperature (provider default if None)

    Returns:
        A validated instance of ``schema``

    Raises:
        UpstreamGenerationError: On HTTP failure or output that fails validation.
    """
    payload: dict[str, Any] = {
        "model": model,
        "messages": messages,
        "response_format": {
            "type": "json_schema",
            "json_schema": {
                "name": schema.__name__,
                "schema": schema.model_json_schema(),
            },
        },
    }
    if temperature is not None:
        payload["temperature"] = temperature

    tracer = get_tracer()
    span_attributes = {"llm.model": model, "llm.schema": schema.__name__}

    with tracer.start_as_current_span("llm.query_structured", attributes=span_attributes) as span:
        start_time = time.monotonic()
        try:
            client = get_shared_client()
            response = await client.post(config.OPENROUTER_API_URL, headers=_headers(), json=payload)
            if response.status_code >= 400:
                message = await _extract_error_message(response)
                raise UpstreamGenerationError(model, message, status_code=response.status_code)

            data = response.json()
            content = data["choices"][0]["message"].get("content") or ""
            result = schema.model_validate_json(content)
        except UpstreamGenerationError as e:
            logger.warning("Structured generation failed. Model: %s, Error: %s", model, e.message)
            record_span_error(span, e)
            raise
        except httpx.TimeoutException as e:
            record_span_error(span, e)
            raise UpstreamGenerationError(model, "Generation timed out", category="timeout") from e
        except httpx.HTTPError as e:
            record_span_error(span, e)
            raise UpstreamGenerationError(model, f"Transport error: {e}", category="transport") from e
        except (KeyError, IndexError, ValueError, ValidationError) as e:
            logger.warning("Structured output rejected. Model: %s, Schema: %s", model, schema.__name__)
            record_span_error(span, e)
            raise UpstreamGenerationError(
                model, f"Invalid {schema.__name__} output", category="invalid_output"
            ) from e

        logger.debug(
            "Structured generation complete. Model: %s, Schema: %s, Duration: %.2fs",
            model, schema.__name__, time.monotonic() - start_time,
        )
        return result
