"""Audio format checks applied before and after file resolution."""

from __future__ import annotations

import posixpath
from urllib.parse import unquote, urlsplit

from wikitunes.domain.models import ResolvedMedia

AUDIO_EXTENSIONS = frozenset({"ogg", "oga", "mp3", "wav", "m4a", "flac"})


def _extension(name: str) -> str:
    _, ext = posixpath.splitext(name.strip())
    return ext[1:].lower()


def has_audio_extension(filename: str) -> bool:
    """Filename check, e.g. ``File:Clip.OGG`` -> True."""

    return _extension(filename or "") in AUDIO_EXTENSIONS


def url_has_audio_extension(url: str) -> bool:
    path = unquote(urlsplit(url or "").path)
    return _extension(path) in AUDIO_EXTENSIONS


def is_playable_audio(media: ResolvedMedia) -> bool:
    """Authoritative check on a resolved file: audio mime type or audio URL extension."""

    mime = (media.mime_type or "").strip().lower()
    if mime.startswith("audio/"):
        return True
    return url_has_audio_extension(media.url)


__all__ = [
    "AUDIO_EXTENSIONS",
    "has_audio_extension",
    "is_playable_audio",
    "url_has_audio_extension",
]
