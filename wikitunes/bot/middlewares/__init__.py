from wikitunes.bot.middlewares.search_session import SearchSessionMiddleware

__all__ = [
    "SearchSessionMiddleware",
]
