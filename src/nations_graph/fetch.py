"""Page fetching via the MediaWiki Action API.

This module retrieves the current wikitext of a page. It provides:
- A PageFetcher protocol the graph builder depends on
- MediaWikiFetcher, an httpx-based implementation
- Retry with exponential backoff for transient failures
- Classification of failures into HTTPError and JsonParseError

A fetch returns either the page text or, when the API resolved a
redirect or title normalisation, the canonical title to use instead.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, TypeAlias

import httpx

from nations_graph.config import NationsGraphConfig, load_config
from nations_graph.errors import HTTPError, JsonParseError

if TYPE_CHECKING:
    from types import TracebackType

logger = logging.getLogger(__name__)


# =============================================================================
# DATA STRUCTURES
# =============================================================================


@dataclass(frozen=True)
class PageText:
    """Raw wikitext of a page.

    Attributes:
        title: Title that was requested
        text: Current revision content
    """

    title: str
    text: str


@dataclass(frozen=True)
class PageRedirect:
    """The requested title is an alias of another page.

    Attributes:
        title: Title that was requested
        target: Canonical title the API resolved it to
    """

    title: str
    target: str


FetchResult: TypeAlias = "PageText | PageRedirect"


class PageFetcher(Protocol):
    """Source of page content for the graph builder."""

    async def fetch(self, title: str) -> FetchResult:
        """Return the page text or a redirect for ``title``.

        Raises:
            HTTPError: On transport failure.
            JsonParseError: On a malformed or empty response.
        """
        ...


# =============================================================================
# RESPONSE INTERPRETATION
# =============================================================================


def _resolve_title(title: str, query: dict[str, Any]) -> str:
    """Follow the API's normalized and redirects mappings for ``title``."""
    resolved = title
    for key in ("normalized", "redirects"):
        for entry in query.get(key) or []:
            if isinstance(entry, dict) and entry.get("from") == resolved and entry.get("to"):
                resolved = str(entry["to"])
                break
    return resolved


def read_query_response(title: str, data: Any) -> FetchResult:
    """Interpret a formatversion=2 revisions query response.

    Args:
        title: Title that was requested.
        data: Decoded JSON body.

    Returns:
        PageRedirect if the API mapped the title elsewhere, else PageText.

    Raises:
        JsonParseError: If the envelope is malformed, reports an API
            error, or the page is missing or has no content.
    """
    if not isinstance(data, dict):
        raise JsonParseError(f"response for {title!r} is not a JSON object")

    error = data.get("error")
    if isinstance(error, dict):
        raise JsonParseError(f"API error for {title!r}: {error.get('code')}: {error.get('info')}")

    query = data.get("query")
    if not isinstance(query, dict):
        raise JsonParseError(f"response for {title!r} has no query object")

    resolved = _resolve_title(title, query)
    if resolved != title:
        return PageRedirect(title=title, target=resolved)

    pages = query.get("pages")
    if not isinstance(pages, list) or not pages or not isinstance(pages[0], dict):
        raise JsonParseError(f"response for {title!r} has no pages")

    page = pages[0]
    if page.get("missing") or page.get("invalid"):
        raise JsonParseError(f"page {title!r} does not exist")

    try:
        content = page["revisions"][0]["slots"]["main"]["content"]
    except (KeyError, IndexError, TypeError) as e:
        raise JsonParseError(f"response for {title!r} has no revision content") from e

    if not isinstance(content, str):
        raise JsonParseError(f"revision content for {title!r} is not text")
    return PageText(title=title, text=content)


# =============================================================================
# MEDIAWIKI FETCHER
# =============================================================================


class MediaWikiFetcher:
    """Fetch page wikitext from a MediaWiki Action API endpoint.

    Usage:
        async with MediaWikiFetcher(config) as fetcher:
            page = await fetcher.fetch("Roman Republic")

    An injected ``client`` is used as-is and not closed by the fetcher.
    """

    def __init__(
        self,
        config: NationsGraphConfig | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.config = config if config is not None else load_config()
        self._client = client
        self._owns_client = client is None

    async def __aenter__(self) -> MediaWikiFetcher:
        self._ensure_client()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the HTTP client if this fetcher created it."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers={"User-Agent": self.config.user_agent},
                timeout=self.config.timeout_seconds,
            )
        return self._client

    def _query_params(self, title: str) -> dict[str, str]:
        params = {
            "action": "query",
            "prop": "revisions",
            "rvprop": "content",
            "rvslots": "main",
            "titles": title,
            "format": "json",
            "formatversion": "2",
        }
        if self.config.resolve_redirects:
            params["redirects"] = "1"
        return params

    async def _get(self, params: dict[str, str]) -> httpx.Response:
        """GET the API with retries on transport errors, 429 and 5xx.

        Raises:
            HTTPError: On a non-retryable status, a response httpx cannot
                read (bad content encoding, too many redirects), or once
                retries run out.
        """
        client = self._ensure_client()
        max_attempts = self.config.max_retries + 1
        last_error: HTTPError | None = None

        for attempt in range(max_attempts):
            try:
                response = await client.get(self.config.api_url, params=params)
            except httpx.TransportError as e:
                last_error = HTTPError(f"request failed: {type(e).__name__}: {e}")
            except httpx.RequestError as e:
                # Undecodable body or redirect loop: retrying gets the same answer
                raise HTTPError(f"request failed: {type(e).__name__}: {e}") from e
            else:
                status = response.status_code
                if status == 429 or status >= 500:
                    last_error = HTTPError(f"server returned {status}", status_code=status)
                elif status >= 400:
                    raise HTTPError(f"server returned {status}", status_code=status)
                else:
                    return response

            if attempt < max_attempts - 1:
                delay = self.config.retry_delay_seconds * (2**attempt)
                logger.warning(
                    f"{last_error} for {params.get('titles')!r} "
                    f"(attempt {attempt + 1}/{max_attempts}), retrying in {delay:.1f}s"
                )
                await asyncio.sleep(delay)

        if last_error is not None:
            raise last_error
        raise HTTPError("Unexpected error in retry loop")

    async def fetch(self, title: str) -> FetchResult:
        """Fetch the current wikitext of ``title``.

        Raises:
            HTTPError: On transport failure after all retries.
            JsonParseError: On a malformed or empty response.
        """
        response = await self._get(self._query_params(title))
        try:
            data = response.json()
        except ValueError as e:
            # JSONDecodeError, or UnicodeDecodeError for a body that is not UTF-8
            raise JsonParseError(f"response for {title!r} is not valid JSON: {e}") from e

        result = read_query_response(title, data)
        logger.debug(f"Fetched {title!r}: {type(result).__name__}")
        return result
