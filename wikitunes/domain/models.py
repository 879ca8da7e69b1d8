"""Pydantic models shared by the resolver, session state and bot layers."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class _FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True)


class SearchHit(_FrozenModel):
    id: int
    title: str
    snippet: str | None = None


class MediaReference(_FrozenModel):
    title: str


class ResolvedMedia(_FrozenModel):
    title: str
    url: str
    mime_type: str | None = None
    backend: str | None = None


class ResultEntry(_FrozenModel):
    hit: SearchHit
    audio_files: tuple[ResolvedMedia, ...] = ()


class PlaybackSelection(_FrozenModel):
    entry_index: int
    file_index: int
    article_title: str
    media: ResolvedMedia


__all__ = [
    "MediaReference",
    "PlaybackSelection",
    "ResolvedMedia",
    "ResultEntry",
    "SearchHit",
]
