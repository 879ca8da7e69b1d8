"""MediaWiki Action API lookups: article search, page media listing, file resolution."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx

from wikitunes.config import ResolverSettings
from wikitunes.domain.models import MediaReference, ResolvedMedia, SearchHit
from wikitunes.logging import logger
from wikitunes.services.exceptions import (
    FileResolutionFailed,
    MediaListUnavailable,
    SearchUnavailable,
)
from wikitunes.utils.retry import retry_async

WIKIPEDIA_API_URL = "https://en.wikipedia.org/w/api.php"
COMMONS_API_URL = "https://commons.wikimedia.org/w/api.php"

# Upper bound on continuation rounds when listing one article's media.
MAX_CONTINUATIONS = 20


@dataclass(frozen=True, slots=True)
class HostingBackend:
    """A wiki whose API can turn a ``File:`` title into a direct URL."""

    name: str
    api_url: str


COMMONS_BACKEND = HostingBackend(name="commons", api_url=COMMONS_API_URL)
WIKIPEDIA_BACKEND = HostingBackend(name="wikipedia", api_url=WIKIPEDIA_API_URL)
DEFAULT_BACKENDS: tuple[HostingBackend, ...] = (COMMONS_BACKEND, WIKIPEDIA_BACKEND)


class WikiApiError(RuntimeError):
    """Raised for a failed or malformed MediaWiki API exchange."""


class WikiApiClient:
    def __init__(
        self,
        http_client: httpx.AsyncClient,
        settings: ResolverSettings | None = None,
        *,
        article_api_url: str = WIKIPEDIA_API_URL,
    ) -> None:
        self._client = http_client
        self._settings = settings or ResolverSettings()
        self._article_api_url = article_api_url

    async def search(self, query: str, *, limit: int) -> list[SearchHit]:
        """Return up to ``limit`` article hits in the service's relevance order."""

        params = {
            "action": "query",
            "list": "search",
            "srsearch": query,
            "srlimit": str(limit),
            "srprop": "snippet",
        }

        async def _request() -> dict[str, Any]:
            return await self._get_json(self._article_api_url, params)

        try:
            payload = await retry_async(
                _request,
                max_attempts=self._settings.search_attempts,
                base_delay=0.3,
                retry_on=(httpx.TransportError,),
                logger=logger,
                operation_name="wiki_search",
            )
        except (httpx.HTTPError, WikiApiError) as exc:
            logger.warning("search_request_failed", query=query, error=str(exc))
            raise SearchUnavailable(f"Search request failed: {exc}") from exc

        query_block = payload.get("query")
        results = query_block.get("search") if isinstance(query_block, dict) else None
        if not isinstance(results, list):
            logger.warning("search_payload_malformed", query=query)
            raise SearchUnavailable("Search response did not contain a result list.")

        hits: list[SearchHit] = []
        for item in results[:limit]:
            try:
                hits.append(
                    SearchHit(
                        id=int(item["pageid"]),
                        title=str(item["title"]),
                        snippet=item.get("snippet") or None,
                    )
                )
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("search_payload_malformed", query=query, item=repr(item)[:200])
                raise SearchUnavailable("Search response contained a malformed hit.") from exc
        return hits

    async def list_media(self, page_id: int) -> list[MediaReference]:
        """Return every ``File:`` reference attached to ``page_id``, following continuations."""

        base_params = {
            "action": "query",
            "prop": "images",
            "pageids": str(page_id),
            "imlimit": "max",
        }
        references: list[MediaReference] = []
        continuation: dict[str, Any] = {}
        try:
            for _ in range(MAX_CONTINUATIONS):
                payload = await self._get_json(self._article_api_url, {**base_params, **continuation})
                for page in self._pages(payload):
                    for image in page.get("images") or []:
                        title = image.get("title") if isinstance(image, dict) else None
                        if title:
                            references.append(MediaReference(title=str(title)))
                continuation = payload.get("continue") or {}
                if not continuation:
                    break
        except (httpx.HTTPError, WikiApiError, AttributeError, TypeError, ValueError) as exc:
            raise MediaListUnavailable(f"Media listing failed for page {page_id}: {exc}") from exc
        return references

    async def resolve_file(self, backend: HostingBackend, file_title: str) -> ResolvedMedia | None:
        """Look up a direct URL and mime type on ``backend``; ``None`` when it has no such file."""

        params = {
            "action": "query",
            "prop": "imageinfo",
            "titles": file_title,
            "iiprop": "url|mime",
        }
        try:
            payload = await self._get_json(backend.api_url, params)
        except (httpx.HTTPError, WikiApiError) as exc:
            raise FileResolutionFailed(
                f"{backend.name} could not resolve {file_title}: {exc}"
            ) from exc

        try:
            return self._parse_imageinfo(payload, backend, file_title)
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise FileResolutionFailed(
                f"{backend.name} returned an unreadable answer for {file_title}: {exc}"
            ) from exc

    def _parse_imageinfo(
        self,
        payload: dict[str, Any],
        backend: HostingBackend,
        file_title: str,
    ) -> ResolvedMedia | None:
        for page in self._pages(payload):
            infos = page.get("imageinfo") or []
            if not isinstance(infos, list) or not infos or not isinstance(infos[0], dict):
                continue
            url = infos[0].get("url")
            if not url:
                continue
            return ResolvedMedia(
                title=str(page.get("title") or file_title),
                url=str(url),
                mime_type=infos[0].get("mime") or None,
                backend=backend.name,
            )
        return None

    async def _get_json(self, url: str, params: dict[str, Any]) -> dict[str, Any]:
        response = await self._client.get(
            url,
            params={**params, "format": "json", "formatversion": "2"},
            headers={"User-Agent": self._settings.user_agent},
            timeout=self._settings.request_timeout_seconds,
        )
        response.raise_for_status()
        try:
            data = response.json()
        except ValueError as exc:
            raise WikiApiError("Response is not valid JSON.") from exc
        if not isinstance(data, dict):
            raise WikiApiError("Response format is invalid.")
        error = data.get("error")
        if error:
            info = error.get("info") if isinstance(error, dict) else error
            raise WikiApiError(f"API error: {info}")
        return data

    @staticmethod
    def _pages(payload: dict[str, Any]) -> list[dict[str, Any]]:
        query_block = payload.get("query")
        if not isinstance(query_block, dict):
            return []
        pages = query_block.get("pages") or []
        if isinstance(pages, dict):
            pages = list(pages.values())
        elif not isinstance(pages, list):
            raise TypeError(f"Unexpected pages block: {type(pages).__name__}")
        return [page for page in pages if isinstance(page, dict)]


__all__ = [
    "COMMONS_API_URL",
    "COMMONS_BACKEND",
    "DEFAULT_BACKENDS",
    "HostingBackend",
    "WIKIPEDIA_API_URL",
    "WIKIPEDIA_BACKEND",
    "WikiApiClient",
    "WikiApiError",
]
