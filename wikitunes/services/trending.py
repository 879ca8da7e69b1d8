"""Featured songs shown before the user has searched for anything."""

from __future__ import annotations

import asyncio
from typing import Sequence

from wikitunes.domain.models import ResultEntry
from wikitunes.logging import logger
from wikitunes.services.exceptions import SearchUnavailable
from wikitunes.services.session import Resolver


class TrendingService:
    def __init__(self, resolver: Resolver, titles: Sequence[str]) -> None:
        self._resolver = resolver
        self._titles = [title.strip() for title in titles if title and title.strip()]

    @property
    def titles(self) -> list[str]:
        return list(self._titles)

    async def load(self) -> list[ResultEntry]:
        """Resolve each configured title to its best matching article with audio.

        Titles keep their configured order; those without playable audio or
        whose search fails are left out.
        """

        entries = await asyncio.gather(*(self._load_title(title) for title in self._titles))
        featured = [entry for entry in entries if entry is not None]
        logger.info("trending_loaded", requested=len(self._titles), featured=len(featured))
        return featured

    async def _load_title(self, title: str) -> ResultEntry | None:
        try:
            results = await self._resolver.resolve(title, max_hits=1)
        except SearchUnavailable as exc:
            logger.warning("trending_title_failed", title=title, error=str(exc))
            return None
        for entry in results:
            if entry.audio_files:
                return entry
        return None


__all__ = ["TrendingService"]
