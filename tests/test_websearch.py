"""Tests for roundtable.websearch."""

from unittest.mock import patch

import httpx
import pytest

from roundtable import config
from roundtable.errors import UpstreamLookupError
from roundtable.websearch import SNIPPET_CHARS, format_digest, is_web_search_available, lookup_digest, search_web


# ---------------------------------------------------------------------------
# format_digest
# ---------------------------------------------------------------------------

class TestFormatDigest:
    """Tests for format_digest."""

    def test_answer_and_results(self):
        """Summary comes first, then one line per source."""
        response = {
            "answer": "The answer is 42.",
            "results": [
                {"title": "Source One", "url": "https://example.com/1", "content": "First."},
                {"title": "Source Two", "url": "https://example.com/2", "content": "Second."},
            ],
        }

        assert format_digest(response) == (
            "Summary: The answer is 42.\n\n[Source One] First.\n\n[Source Two] Second."
        )

    def test_results_only(self):
        response = {"answer": None, "results": [{"title": "Only", "content": "Here."}]}
        assert format_digest(response) == "[Only] Here."

    @pytest.mark.parametrize("response", [None, {}, {"results": []}])
    def test_empty_response(self, response):
        assert format_digest(response) == ""

    def test_snippets_are_truncated(self):
        response = {"results": [{"title": "Long", "content": "x" * (SNIPPET_CHARS + 50)}]}
        digest = format_digest(response)

        assert "x" * SNIPPET_CHARS in digest
        assert "x" * (SNIPPET_CHARS + 1) not in digest


# ---------------------------------------------------------------------------
# search_web / lookup_digest
# ---------------------------------------------------------------------------

class TestSearchWeb:
    """Tests for search_web error mapping."""

    @pytest.mark.asyncio
    async def test_unconfigured_raises(self, monkeypatch):
        monkeypatch.setattr(config, "TAVILY_API_KEY", None)
        with pytest.raises(UpstreamLookupError, match="not configured"):
            await search_web("q")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status, message", [
        (401, "Invalid Tavily API key"),
        (429, "Web search rate limit exceeded"),
        (500, "Web search failed (HTTP 500)"),
    ])
    async def test_http_errors_are_mapped(self, monkeypatch, status, message):
        monkeypatch.setattr(config, "TAVILY_API_KEY", "tvly-test")
        transport = httpx.MockTransport(lambda request: httpx.Response(status))
        real_client = httpx.AsyncClient

        with patch("roundtable.websearch.httpx.AsyncClient",
                   lambda **kwargs: real_client(transport=transport, **kwargs)):
            with pytest.raises(UpstreamLookupError) as exc_info:
                await search_web("q")

        assert str(exc_info.value) == message

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [
        ["not", "a", "dict"],
        "just text",
        {"results": "nope"},
        {"results": ["nope"]},
    ])
    async def test_unexpected_body_raises_lookup_error(self, monkeypatch, body):
        monkeypatch.setattr(config, "TAVILY_API_KEY", "tvly-test")
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json=body))
        real_client = httpx.AsyncClient

        with patch("roundtable.websearch.httpx.AsyncClient",
                   lambda **kwargs: real_client(transport=transport, **kwargs)):
            with pytest.raises(UpstreamLookupError, match="unexpected response"):
                await lookup_digest("q")

    @pytest.mark.asyncio
    async def test_lookup_digest_formats_response(self, monkeypatch):
        monkeypatch.setattr(config, "TAVILY_API_KEY", "tvly-test")
        body = {"answer": "Yes.", "results": [{"title": "T", "content": "C"}]}
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json=body))
        real_client = httpx.AsyncClient

        with patch("roundtable.websearch.httpx.AsyncClient",
                   lambda **kwargs: real_client(transport=transport, **kwargs)):
            digest = await lookup_digest("q")

        assert digest == "Summary: Yes.\n\n[T] C"


# ---------------------------------------------------------------------------
# is_web_search_available
# ---------------------------------------------------------------------------

class TestIsWebSearchAvailable:
    """Tests for is_web_search_available."""

    def test_available_with_key(self, monkeypatch):
        monkeypatch.setattr(config, "TAVILY_API_KEY", "tvly-test")
        assert is_web_search_available() is True

    def test_unavailable_without_key(self, monkeypatch):
        monkeypatch.setattr(config, "TAVILY_API_KEY", "")
        assert is_web_search_available() is False
