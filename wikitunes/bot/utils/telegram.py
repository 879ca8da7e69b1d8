"""Telegram sending helpers with retry support."""

from __future__ import annotations

from typing import Any

from aiogram import Bot
from aiogram.exceptions import TelegramNetworkError, TelegramRetryAfter, TelegramServerError
from aiogram.types import Message

from wikitunes.logging import logger
from wikitunes.utils.retry import retry_async

TELEGRAM_SEND_MAX_ATTEMPTS = 3
TELEGRAM_SEND_BASE_DELAY = 0.3
# Bad requests (e.g. a rejected audio URL) are final and must reach the caller at once.
TRANSIENT_TELEGRAM_ERRORS = (TelegramNetworkError, TelegramRetryAfter, TelegramServerError)


async def _send_with_retry(operation, operation_name: str) -> Any:
    return await retry_async(
        operation,
        max_attempts=TELEGRAM_SEND_MAX_ATTEMPTS,
        base_delay=TELEGRAM_SEND_BASE_DELAY,
        retry_on=TRANSIENT_TELEGRAM_ERRORS,
        logger=logger,
        operation_name=operation_name,
    )


async def answer_with_retry(message: Message, text: str, **kwargs: Any) -> Any:
    """Send a reply with retry/backoff."""

    async def _send():
        return await message.answer(text, **kwargs)

    return await _send_with_retry(_send, "telegram_answer")


async def answer_audio_with_retry(message: Message, audio: str, **kwargs: Any) -> Any:
    """Send an audio file by URL; Telegram fetches it server-side."""

    async def _send():
        return await message.answer_audio(audio, **kwargs)

    return await _send_with_retry(_send, "telegram_answer_audio")


async def bot_send_with_retry(bot: Bot, *, chat_id: int, text: str, **kwargs: Any) -> Any:
    """Send a message via Bot with retry/backoff."""

    async def _send():
        return await bot.send_message(chat_id=chat_id, text=text, **kwargs)

    return await _send_with_retry(_send, "telegram_send_message")


__all__ = ["answer_audio_with_retry", "answer_with_retry", "bot_send_with_retry"]
