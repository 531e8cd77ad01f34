"""Tests for roundtable.openrouter streaming and structured generation."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from pydantic import BaseModel

from roundtable.errors import UpstreamGenerationError, classify_status
from roundtable.openrouter import (
    _extract_error_message,
    _parse_stream_line,
    query_structured,
    stream_completion,
)


def _chunk(content: str) -> str:
    return "data: " + json.dumps({"choices": [{"delta": {"content": content}}]})


class Answer(BaseModel):
    answer: str


def _mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestParseStreamLine:
    """Tests for _parse_stream_line."""

    def test_extracts_delta_content(self):
        assert _parse_stream_line("m", _chunk("Hello")) == "Hello"

    def test_done_marker_ends_stream(self):
        assert _parse_stream_line("m", "data: [DONE]") is None

    @pytest.mark.parametrize("line", [
        "",
        ": OPENROUTER PROCESSING",
        "event: ping",
        "data: {not json",
        'data: {"choices": []}',
        'data: {"choices": [{"delta": {"role": "assistant"}}]}',
    ])
    def test_lines_without_content_are_skipped(self, line):
        assert _parse_stream_line("m", line) == ""

    def test_mid_stream_error_raises(self):
        line = "data: " + json.dumps({"error": {"message": "Provider overloaded", "code": 503}})
        with pytest.raises(UpstreamGenerationError) as exc_info:
            _parse_stream_line("model-a", line)

        assert exc_info.value.category == "stream"
        assert exc_info.value.status_code == 503
        assert str(exc_info.value) == "model-a: Provider overloaded"


class TestExtractErrorMessage:
    """Tests for _extract_error_message helper."""

    @pytest.mark.asyncio
    async def test_extracts_message_from_json_body(self):
        response = httpx.Response(402, json={"error": {"message": "Insufficient credits"}})
        assert await _extract_error_message(response) == "Insufficient credits"

    @pytest.mark.asyncio
    async def test_falls_back_to_status_code(self):
        response = httpx.Response(500, text="Internal Server Error")
        assert await _extract_error_message(response) == "HTTP 500"

    @pytest.mark.asyncio
    async def test_missing_error_message_falls_back(self):
        response = httpx.Response(429, json={"error": {}})
        assert await _extract_error_message(response) == "HTTP 429"


class TestClassifyStatus:
    """Tests for classify_status."""

    @pytest.mark.parametrize("status, category", [
        (None, "timeout"),
        (401, "auth"),
        (403, "auth"),
        (402, "billing"),
        (429, "rate_limit"),
        (502, "transient"),
        (503, "transient"),
        (418, "unknown"),
    ])
    def test_categories(self, status, category):
        assert classify_status(status) == category

    def test_error_category_defaults_from_status(self):
        assert UpstreamGenerationError("m", "x", status_code=429).category == "rate_limit"


class TestStreamCompletion:
    """Tests for stream_completion against a mock transport."""

    @pytest.mark.asyncio
    async def test_yields_deltas_until_done(self):
        body = "\n".join([_chunk("Hel"), ": keepalive", _chunk("lo"), "data: [DONE]", _chunk("ignored")])

        def handler(request):
            payload = json.loads(request.content)
            assert payload["stream"] is True
            assert payload["max_tokens"] == 50
            assert payload["temperature"] == 0.5
            return httpx.Response(200, text=body)

        with patch("roundtable.openrouter.get_shared_client", return_value=_mock_client(handler)):
            tokens = [t async for t in stream_completion("m", [], max_tokens=50, temperature=0.5)]

        assert tokens == ["Hel", "lo"]

    @pytest.mark.asyncio
    async def test_http_error_raises_with_status(self):
        def handler(request):
            return httpx.Response(401, json={"error": {"message": "No auth credentials found"}})

        with patch("roundtable.openrouter.get_shared_client", return_value=_mock_client(handler)):
            with pytest.raises(UpstreamGenerationError) as exc_info:
                async for _ in stream_completion("m", [], max_tokens=10):
                    pass

        assert exc_info.value.status_code == 401
        assert exc_info.value.category == "auth"
        assert exc_info.value.message == "No auth credentials found"

    @pytest.mark.asyncio
    async def test_timeout_is_wrapped(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        with patch("roundtable.openrouter.get_shared_client", return_value=_mock_client(handler)):
            with pytest.raises(UpstreamGenerationError) as exc_info:
                async for _ in stream_completion("m", [], max_tokens=10):
                    pass

        assert exc_info.value.category == "timeout"

    @pytest.mark.asyncio
    async def test_transport_error_is_wrapped(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with patch("roundtable.openrouter.get_shared_client", return_value=_mock_client(handler)):
            with pytest.raises(UpstreamGenerationError) as exc_info:
                async for _ in stream_completion("m", [], max_tokens=10):
                    pass

        assert exc_info.value.category == "transport"


class TestQueryStructured:
    """Tests for query_structured."""

    @pytest.mark.asyncio
    async def test_returns_validated_instance(self):
        def handler(request):
            payload = json.loads(request.content)
            assert payload["response_format"]["json_schema"]["name"] == "Answer"
            return httpx.Response(200, json={"choices": [{"message": {"content": '{"answer": "yes"}'}}]})

        with patch("roundtable.openrouter.get_shared_client", return_value=_mock_client(handler)):
            result = await query_structured("m", [], Answer)

        assert result == Answer(answer="yes")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [
        {"choices": [{"message": {"content": '{"wrong": 1}'}}]},
        {"choices": [{"message": {"content": "plain prose"}}]},
        {"choices": []},
    ])
    async def test_invalid_output_raises(self, body):
        def handler(request):
            return httpx.Response(200, json=body)

        with patch("roundtable.openrouter.get_shared_client", return_value=_mock_client(handler)):
            with pytest.raises(UpstreamGenerationError) as exc_info:
                await query_structured("m", [], Answer)

        assert exc_info.value.category == "invalid_output"

    @pytest.mark.asyncio
    async def test_http_error_raises(self):
        client = MagicMock()
        client.post = AsyncMock(return_value=httpx.Response(503, text="busy"))

        with patch("roundtable.openrouter.get_shared_client", return_value=client):
            with pytest.raises(UpstreamGenerationError) as exc_info:
                await query_structured("m", [], Answer)

        assert exc_info.value.category == "transient"
        assert exc_info.value.message == "HTTP 503"
