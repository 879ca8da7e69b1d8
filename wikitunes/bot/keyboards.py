"""Inline keyboards for result lists."""

from __future__ import annotations

from typing import Sequence

from aiogram.filters.callback_data import CallbackData
from aiogram.types import InlineKeyboardMarkup
from aiogram.utils.keyboard import InlineKeyboardBuilder

from wikitunes.bot.utils.messages import button_label
from wikitunes.domain.models import ResultEntry

# Telegram rejects inline keyboards with more than 100 buttons.
MAX_PLAY_BUTTONS = 90


class PlayCallback(CallbackData, prefix="play"):
    generation: int
    entry: int
    file: int


def build_results_keyboard(results: Sequence[ResultEntry], generation: int) -> InlineKeyboardMarkup | None:
    """One play button per audio file, tagged with the generation it was rendered for."""

    builder = InlineKeyboardBuilder()
    count = 0
    for entry_idx, entry in enumerate(results):
        for file_idx, media in enumerate(entry.audio_files):
            if count >= MAX_PLAY_BUTTONS:
                break
            builder.button(
                text=button_label(entry, media),
                callback_data=PlayCallback(generation=generation, entry=entry_idx, file=file_idx),
            )
            count += 1
    if not count:
        return None
    builder.adjust(1)
    return builder.as_markup()


__all__ = ["PlayCallback", "build_results_keyboard"]
