"""Background web lookup using the Tavily API."""

import logging
from typing import Any

import httpx

from . import config
from .errors import UpstreamLookupError

logger = logging.getLogger(__name__)

# Per-source snippet length in the digest handed to participants
SNIPPET_CHARS = 300


async def search_web(
    query: str,
    max_results: int = 5,
    search_depth: str = "basic",
) -> dict[str, Any]:
    """
    Perform a web search using Tavily API.

    Args:
        query: The search query
        max_results: Maximum number of results to return
        search_depth: "basic" or "advanced"

    Returns:
        The decoded Tavily response

    Raises:
        UpstreamLookupError: If search is not configured or the request fails.
    """
    if not config.TAVILY_API_KEY:
        raise UpstreamLookupError("Web search not configured")

    try:
        async with httpx.AsyncClient(timeout=30.0) as client:
            response = await client.post(
                config.TAVILY_API_URL,
                json={
                    "api_key": config.TAVILY_API_KEY,
                    "query": query,
                    "max_results": max_results,
                    "search_depth": search_depth,
                    "include_answer": True,
                    "include_raw_content": False,
                },
            )
            response.raise_for_status()
            data = response.json()
    except httpx.TimeoutException as e:
        raise UpstreamLookupError("Web search timed out") from e
    except httpx.HTTPStatusError as e:
        if e.response.status_code == 401:
            raise UpstreamLookupError("Invalid Tavily API key") from e
        if e.response.status_code == 429:
            raise UpstreamLookupError("Web search rate limit exceeded") from e
        raise UpstreamLookupError(f"Web search failed (HTTP {e.response.status_code})") from e
    except (httpx.HTTPError, ValueError) as e:
        raise UpstreamLookupError("Web search failed") from e

    if not isinstance(data, dict):
        raise UpstreamLookupError("Web search returned an unexpected response")
    results = data.get("results")
    if results is not None and not (
        isinstance(results, list) and all(isinstance(r, dict) for r in results)
    ):
        raise UpstreamLookupError("Web search returned an unexpected response")
    return data


def format_digest(search_response: dict[str, Any] | None) -> str:
    """
    Condense search results into a short digest for participant prompts.

    Args:
        search_response: Response from Tavily API

    Returns:
        Digest text, or "" when there is nothing to report
    """
    if not search_response:
        return ""

    parts = []
    if search_response.get("answer"):
        parts.append(f"Summary: {search_response['answer']}")

    for result in search_response.get("results") or []:
        title = result.get("title") or ""
        content = (result.get("content") or "")[:SNIPPET_CHARS]
        parts.append(f"[{title}] {content}")

    return "\n\n".join(parts)


async def lookup_digest(query: str) -> str:
    """
    Search and return the digest.

    Raises:
        UpstreamLookupError: If the lookup fails.
    """
    response = await search_web(query)
    digest = format_digest(response)
    logger.info("Web lookup complete. Results: %d, DigestChars: %d",
                len(response.get("results") or []), len(digest))
    return digest


def is_web_search_available() -> bool:
    """Check if web search is configured."""
    return bool(config.TAVILY_API_KEY)
