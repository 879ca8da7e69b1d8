"""Shared pytest fixtures: an in-process fake of the MediaWiki endpoints."""

from __future__ import annotations

from typing import Any

import httpx
import pytest
import pytest_asyncio

from wikitunes.config import ResolverSettings
from wikitunes.services.wiki_api import WikiApiClient


class FakeWiki:
    """``httpx.MockTransport`` handler answering search, images and imageinfo queries.

    ``search_status``/``images`` entries/``files`` entries may be an int to
    answer with that HTTP status, an exception instance to raise it, or a
    ready ``httpx.Response`` to send as is.
    """

    wikipedia_host = "en.wikipedia.org"
    commons_host = "commons.wikimedia.org"

    def __init__(self) -> None:
        self.search_hits: list[dict[str, Any]] = []
        self.search_status: int | Exception | None = None
        self.images: dict[int, Any] = {}
        self.files: dict[tuple[str, str], Any] = {}
        self.requests: list[httpx.Request] = []

    def add_hit(self, page_id: int, title: str, snippet: str = "") -> None:
        self.search_hits.append({"ns": 0, "pageid": page_id, "title": title, "snippet": snippet})

    def add_file(self, host: str, title: str, url: str, mime: str | None) -> None:
        info: dict[str, Any] = {"url": url}
        if mime is not None:
            info["mime"] = mime
        self.files[(host, title)] = info

    def calls(self, kind: str) -> list[httpx.Request]:
        return [request for request in self.requests if self._kind(request) == kind]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        kind = self._kind(request)
        params = request.url.params
        if kind == "search":
            outcome = self.search_status
            if isinstance(outcome, Exception):
                raise outcome
            if isinstance(outcome, int):
                return httpx.Response(outcome, text="unavailable")
            limit = int(params["srlimit"])
            return httpx.Response(200, json={"query": {"search": self.search_hits[:limit]}})
        if kind == "images":
            page_id = int(params["pageids"])
            outcome = self.images.get(page_id, [])
            if isinstance(outcome, httpx.Response):
                return outcome
            if isinstance(outcome, Exception):
                raise outcome
            if isinstance(outcome, int):
                return httpx.Response(outcome, text="unavailable")
            images = [{"ns": 6, "title": title} for title in outcome]
            return httpx.Response(
                200,
                json={"query": {"pages": [{"pageid": page_id, "ns": 0, "images": images}]}},
            )
        if kind == "imageinfo":
            title = params["titles"]
            outcome = self.files.get((request.url.host, title))
            if isinstance(outcome, httpx.Response):
                return outcome
            if isinstance(outcome, Exception):
                raise outcome
            if isinstance(outcome, int):
                return httpx.Response(outcome, text="unavailable")
            if outcome is None:
                page = {"ns": 6, "title": title, "missing": True}
            else:
                page = {"ns": 6, "title": title, "imageinfo": [outcome]}
            return httpx.Response(200, json={"query": {"pages": [page]}})
        return httpx.Response(400, json={"error": {"code": "badparams", "info": "unexpected"}})

    @staticmethod
    def _kind(request: httpx.Request) -> str:
        params = request.url.params
        if params.get("list") == "search":
            return "search"
        if params.get("prop") == "images":
            return "images"
        if params.get("prop") == "imageinfo":
            return "imageinfo"
        return "unknown"


@pytest.fixture
def fake_wiki() -> FakeWiki:
    return FakeWiki()


@pytest.fixture
def resolver_settings() -> ResolverSettings:
    return ResolverSettings(search_attempts=1, request_timeout_seconds=2)


@pytest_asyncio.fixture
async def wiki_api(fake_wiki, resolver_settings):
    async with httpx.AsyncClient(transport=httpx.MockTransport(fake_wiki)) as client:
        yield WikiApiClient(client, resolver_settings)
