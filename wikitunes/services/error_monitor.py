"""Log unhandled bot errors and notify the administrator."""

from __future__ import annotations

import traceback

from aiogram import Bot
from aiogram.dispatcher.event.bases import UNHANDLED
from aiogram.types import ErrorEvent, Update

from wikitunes.bot.utils.telegram import bot_send_with_retry
from wikitunes.config import BotSettings
from wikitunes.logging import logger

# Telegram messages are limited to 4096 characters.
REPORT_CHAR_LIMIT = 3900
TRACEBACK_CHAR_LIMIT = 1800


class ErrorMonitor:
    """Async callable plugged into aiogram error observer."""

    def __init__(self, settings: BotSettings) -> None:
        self._settings = settings

    async def __call__(self, event: ErrorEvent, bot: Bot):
        return await self.handle_error(event, bot)

    async def handle_error(self, event: ErrorEvent, bot: Bot):
        update_id = getattr(event.update, "update_id", None)
        logger.error(
            "bot_error_captured",
            exception_type=event.exception.__class__.__name__,
            exception=str(event.exception),
            update_id=update_id,
        )

        admin_id = self._settings.admin_telegram_id
        if admin_id is None:
            return UNHANDLED

        try:
            await bot_send_with_retry(bot, chat_id=admin_id, text=self.build_report(event), parse_mode=None)
        except Exception:
            logger.exception("error_monitor_notification_failed", update_id=update_id)
        return UNHANDLED

    def build_report(self, event: ErrorEvent) -> str:
        update = event.update
        exception = event.exception
        lines = [
            "WIKITUNES ERROR",
            f"Environment: {self._settings.environment}",
            f"Exception: {exception.__class__.__name__}: {exception}",
            f"Update ID: {getattr(update, 'update_id', 'unknown')}",
            f"Update Type: {self._update_type(update)}",
            f"Chat: {self._chat_id(update)}",
        ]
        trace = "".join(
            traceback.format_exception(exception.__class__, exception, exception.__traceback__)
        ).strip()
        if trace:
            lines.extend(["", "Traceback:", _truncate(trace, TRACEBACK_CHAR_LIMIT)])
        return _truncate("\n".join(lines), REPORT_CHAR_LIMIT)

    @staticmethod
    def _update_type(update: Update | None) -> str:
        if update is None:
            return "unknown"
        for field in ("message", "edited_message", "callback_query"):
            if getattr(update, field, None) is not None:
                return field
        return "other"

    @staticmethod
    def _chat_id(update: Update | None) -> str:
        if update is None:
            return "unknown"
        source = getattr(update, "message", None) or getattr(update, "edited_message", None)
        callback = getattr(update, "callback_query", None)
        if source is None and callback is not None:
            source = callback.message
        chat = getattr(source, "chat", None)
        return str(chat.id) if chat is not None else "unknown"


def _truncate(value: str, limit: int) -> str:
    value = value.strip()
    if len(value) <= limit:
        return value
    return f"{value[: limit - 15].rstrip()}\n...[truncated]"


__all__ = ["ErrorMonitor"]
