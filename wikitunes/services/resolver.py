"""Query -> playable audio pipeline.

``AudioResolver.resolve`` runs the chain search -> list page media -> resolve
file for a free-text query. Hits are processed concurrently, and so are the
candidates of each hit; every branch writes into its own slot, so the output
keeps the search ranking and the media listing order regardless of which
request finishes first.

Only the initial search can fail the call (``SearchUnavailable``). A failed
media listing counts as "no media"; a failed or empty backend lookup falls
through to the next hosting backend and finally drops the candidate.
"""

from __future__ import annotations

import asyncio
from typing import Sequence

from wikitunes.config import ResolverSettings
from wikitunes.domain.models import MediaReference, ResolvedMedia, ResultEntry, SearchHit
from wikitunes.logging import logger
from wikitunes.services.audio import has_audio_extension, is_playable_audio
from wikitunes.services.exceptions import FileResolutionFailed, MediaListUnavailable
from wikitunes.services.wiki_api import DEFAULT_BACKENDS, HostingBackend, WikiApiClient


class AudioResolver:
    def __init__(
        self,
        api: WikiApiClient,
        settings: ResolverSettings | None = None,
        *,
        backends: Sequence[HostingBackend] = DEFAULT_BACKENDS,
    ) -> None:
        if not backends:
            raise ValueError("At least one hosting backend is required.")
        self._api = api
        self._settings = settings or ResolverSettings()
        self._backends = tuple(backends)

    @property
    def backends(self) -> tuple[HostingBackend, ...]:
        return self._backends

    async def resolve(self, query: str, max_hits: int | None = None) -> list[ResultEntry]:
        query = (query or "").strip()
        if not query:
            return []

        limit = max_hits if max_hits is not None else self._settings.max_hits
        hits = await self._api.search(query, limit=limit)
        entries = await asyncio.gather(*(self._resolve_hit(hit) for hit in hits))

        if self._settings.drop_empty_entries:
            entries = [entry for entry in entries if entry.audio_files]
        logger.info(
            "resolve_completed",
            query=query,
            hits=len(hits),
            entries=len(entries),
            files=sum(len(entry.audio_files) for entry in entries),
        )
        return list(entries)

    async def _resolve_hit(self, hit: SearchHit) -> ResultEntry:
        try:
            references = await self._api.list_media(hit.id)
        except MediaListUnavailable as exc:
            logger.warning("media_list_failed", page_id=hit.id, title=hit.title, error=str(exc))
            references = []

        candidates = self._audio_candidates(references)
        resolved = await asyncio.gather(*(self._resolve_candidate(ref) for ref in candidates))
        return ResultEntry(
            hit=hit,
            audio_files=tuple(media for media in resolved if media is not None),
        )

    def _audio_candidates(self, references: Sequence[MediaReference]) -> list[MediaReference]:
        candidates = [ref for ref in references if has_audio_extension(ref.title)]
        cap = self._settings.max_candidates_per_article
        if cap is not None:
            candidates = candidates[:cap]
        return candidates

    async def _resolve_candidate(self, reference: MediaReference) -> ResolvedMedia | None:
        for backend in self._backends:
            try:
                media = await self._api.resolve_file(backend, reference.title)
            except FileResolutionFailed as exc:
                logger.info(
                    "file_backend_failed",
                    backend=backend.name,
                    file=reference.title,
                    error=str(exc),
                )
                continue
            if media is None:
                continue
            if not is_playable_audio(media):
                # First resolved answer is final, later backends are not consulted.
                logger.info(
                    "candidate_not_audio",
                    file=reference.title,
                    mime_type=media.mime_type,
                    url=media.url,
                )
                return None
            return media

        logger.info("candidate_unresolved", file=reference.title)
        return None


__all__ = ["AudioResolver"]
