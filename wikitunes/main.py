"""Application entrypoint."""

from __future__ import annotations

import asyncio

import httpx
from aiogram import Bot, Dispatcher
from aiogram.client.session.aiohttp import AiohttpSession

from wikitunes.bot.middlewares import SearchSessionMiddleware
from wikitunes.bot.routers import setup_routers
from wikitunes.config import get_settings
from wikitunes.logging import configure_logging, logger
from wikitunes.services.error_monitor import ErrorMonitor
from wikitunes.services.resolver import AudioResolver
from wikitunes.services.session import SessionRegistry
from wikitunes.services.trending import TrendingService
from wikitunes.services.wiki_api import WikiApiClient


async def main() -> None:
    configure_logging()
    settings = get_settings()

    session = (
        AiohttpSession(proxy=settings.telegram_proxy) if settings.telegram_proxy else None
    )
    bot = Bot(token=settings.telegram_token.get_secret_value(), session=session)
    dp = Dispatcher()
    dp.include_router(setup_routers())
    dp.errors.register(ErrorMonitor(settings=settings))

    search_session_middleware = SearchSessionMiddleware(
        SessionRegistry(max_sessions=settings.max_chat_sessions)
    )
    dp.message.middleware(search_session_middleware)
    dp.callback_query.middleware(search_session_middleware)

    async with httpx.AsyncClient(follow_redirects=True) as http_client:
        api = WikiApiClient(http_client, settings.resolver)
        resolver = AudioResolver(api, settings.resolver)
        trending = TrendingService(resolver, settings.trending_titles)

        logger.info(
            "bot_starting",
            environment=settings.environment,
            backends=[backend.name for backend in resolver.backends],
        )
        await dp.start_polling(bot, resolver=resolver, trending=trending)


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
