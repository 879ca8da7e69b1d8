"""Attach the chat's search session to handler data."""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict

from aiogram import BaseMiddleware
from aiogram.types import CallbackQuery, Message, TelegramObject

from wikitunes.services.session import SessionRegistry


class SearchSessionMiddleware(BaseMiddleware):
    def __init__(self, registry: SessionRegistry) -> None:
        self.registry = registry

    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any],
    ) -> Any:
        chat_id = self._extract_chat_id(event)
        if chat_id is not None:
            data["search_session"] = self.registry.get(chat_id)
        return await handler(event, data)

    @staticmethod
    def _extract_chat_id(event: TelegramObject) -> int | None:
        if isinstance(event, Message):
            return event.chat.id
        if isinstance(event, CallbackQuery):
            if event.message is not None:
                return event.message.chat.id
            if event.from_user is not None:
                return event.from_user.id
        return None


__all__ = ["SearchSessionMiddleware"]
