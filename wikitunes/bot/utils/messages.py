"""Plain-text formatting for result lists sent to Telegram."""

from __future__ import annotations

import html
import re
from typing import Iterable, Sequence

import nh3

from wikitunes.domain.models import ResolvedMedia, ResultEntry

TELEGRAM_MESSAGE_LIMIT = 4096
SNIPPET_CHAR_LIMIT = 180
WHITESPACE_RE = re.compile(r"\s+")
FILE_NAMESPACE_RE = re.compile(r"^(file|image|datei):", re.IGNORECASE)


def clean_snippet(snippet: str | None, limit: int = SNIPPET_CHAR_LIMIT) -> str:
    """Reduce a search snippet to plain text.

    Snippets come from a shared public corpus and carry highlight markup, so
    every tag is removed before the text is shown.
    """

    if not snippet:
        return ""
    stripped = nh3.clean(snippet, tags=set(), attributes={})
    text = WHITESPACE_RE.sub(" ", html.unescape(stripped)).strip()
    if len(text) <= limit:
        return text
    return f"{text[:limit].rstrip()}..."


def display_file_name(title: str) -> str:
    """``File:Bohemian_Rhapsody_clip.ogg`` -> ``Bohemian Rhapsody clip.ogg``."""

    name = FILE_NAMESPACE_RE.sub("", title.strip())
    return name.replace("_", " ").strip()


def button_label(entry: ResultEntry, media: ResolvedMedia, limit: int = 60) -> str:
    label = f"▶ {entry.hit.title}"
    if len(entry.audio_files) > 1:
        label = f"{label} · {display_file_name(media.title)}"
    if len(label) <= limit:
        return label
    return f"{label[: limit - 3].rstrip()}..."


def format_results(
    header: str,
    results: Sequence[ResultEntry],
    *,
    max_files: int | None = None,
) -> str:
    """Numbered titles with snippets and file names.

    With ``max_files`` only the first files in result order are listed, the
    same ones that get a play button.
    """

    lines = [header]
    remaining = max_files
    for idx, entry in enumerate(results, start=1):
        lines.append("")
        lines.append(f"{idx}. {entry.hit.title}")
        snippet = clean_snippet(entry.hit.snippet)
        if snippet:
            lines.append(snippet)
        for media in entry.audio_files:
            if remaining is not None:
                if remaining <= 0:
                    break
                remaining -= 1
            lines.append(f"   ♪ {display_file_name(media.title)}")
    return "\n".join(lines)


def count_audio_files(results: Sequence[ResultEntry]) -> int:
    return sum(len(entry.audio_files) for entry in results)


def split_message_text(text: str, limit: int = TELEGRAM_MESSAGE_LIMIT) -> list[str]:
    """Split on line boundaries so each chunk fits one Telegram message."""

    chunks: list[str] = []
    buffer: list[str] = []
    size = 0
    for line in _hard_wrap(text.splitlines(), limit):
        extra = len(line) + (1 if buffer else 0)
        if buffer and size + extra > limit:
            chunks.append("\n".join(buffer))
            buffer, size = [], 0
            extra = len(line)
        buffer.append(line)
        size += extra
    if buffer:
        chunks.append("\n".join(buffer))
    return [chunk for chunk in chunks if chunk.strip()]


def _hard_wrap(lines: Iterable[str], limit: int) -> Iterable[str]:
    for line in lines:
        while len(line) > limit:
            yield line[:limit]
            line = line[limit:]
        yield line


__all__ = [
    "button_label",
    "clean_snippet",
    "count_audio_files",
    "display_file_name",
    "format_results",
    "split_message_text",
]
