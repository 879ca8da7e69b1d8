"""Telegram handlers for searching and playing songs."""

from __future__ import annotations

import asyncio
import contextlib
from typing import Sequence

from aiogram import F, Router
from aiogram.enums import ChatAction
from aiogram.exceptions import TelegramBadRequest
from aiogram.filters import Command, CommandObject, CommandStart
from aiogram.types import CallbackQuery, Message, User

from wikitunes.bot import keyboards
from wikitunes.bot.keyboards import PlayCallback, build_results_keyboard
from wikitunes.bot.utils.messages import (
    count_audio_files,
    display_file_name,
    format_results,
    split_message_text,
)
from wikitunes.bot.utils.telegram import answer_audio_with_retry, answer_with_retry
from wikitunes.config import get_settings
from wikitunes.domain.models import PlaybackSelection, ResultEntry
from wikitunes.i18n import I18nService
from wikitunes.logging import logger
from wikitunes.services.exceptions import SelectionNotFound
from wikitunes.services.resolver import AudioResolver
from wikitunes.services.session import SearchSession, SessionState
from wikitunes.services.trending import TrendingService

router = Router()
TRENDING_QUERY = "#trending"


def _translator(user: User | None) -> tuple[I18nService, str]:
    settings = get_settings()
    i18n = I18nService(default_locale=settings.default_language)
    language = getattr(user, "language_code", None) or settings.default_language
    return i18n, i18n.normalize_locale(language)


@router.message(CommandStart())
async def handle_start(message: Message) -> None:
    i18n, locale = _translator(message.from_user)
    name = message.from_user.full_name if message.from_user else ""
    await answer_with_retry(
        message,
        i18n.gettext("start.greeting", locale=locale, name=name),
        parse_mode=None,
    )


@router.message(Command("help"))
async def handle_help(message: Message) -> None:
    i18n, locale = _translator(message.from_user)
    await answer_with_retry(message, i18n.gettext("help.usage", locale=locale), parse_mode=None)


@router.message(Command("search"))
async def handle_search_command(
    message: Message,
    command: CommandObject,
    resolver: AudioResolver,
    search_session: SearchSession,
) -> None:
    query = (command.args or "").strip()
    if not query:
        i18n, locale = _translator(message.from_user)
        await answer_with_retry(message, i18n.gettext("search.usage", locale=locale), parse_mode=None)
        return
    await _run_search(message, resolver=resolver, search_session=search_session, query=query)


@router.message(Command("trending"))
async def handle_trending(
    message: Message,
    trending: TrendingService,
    search_session: SearchSession,
) -> None:
    i18n, locale = _translator(message.from_user)
    if search_session.state.loading:
        await answer_with_retry(message, i18n.gettext("search.in_progress", locale=locale), parse_mode=None)
        return

    generation = search_session.begin(TRENDING_QUERY)

    async def _load():
        await answer_with_retry(message, i18n.gettext("trending.loading", locale=locale), parse_mode=None)
        async with _chat_action(message):
            return await trending.load()

    state = await search_session.complete(generation, _load)
    if state is None:
        return
    if state.status != "ready":
        await answer_with_retry(message, i18n.gettext("trending.empty", locale=locale), parse_mode=None)
        return
    await _send_results(message, i18n.gettext("trending.results", locale=locale), state, i18n=i18n, locale=locale)


@router.message(Command("nowplaying"))
async def handle_now_playing(message: Message, search_session: SearchSession) -> None:
    i18n, locale = _translator(message.from_user)
    current = search_session.state.current
    if current is None:
        text = i18n.gettext("nowplaying.none", locale=locale)
    else:
        text = i18n.gettext(
            "nowplaying.current",
            locale=locale,
            title=current.article_title,
            file=display_file_name(current.media.title),
        )
    await answer_with_retry(message, text, parse_mode=None)


@router.message(Command("stop"))
async def handle_stop(message: Message, search_session: SearchSession) -> None:
    i18n, locale = _translator(message.from_user)
    previous = search_session.stop()
    if previous is None:
        text = i18n.gettext("stop.none", locale=locale)
    else:
        text = i18n.gettext("stop.done", locale=locale, title=previous.article_title)
    await answer_with_retry(message, text, parse_mode=None)


@router.callback_query(PlayCallback.filter())
async def handle_play(
    callback: CallbackQuery,
    callback_data: PlayCallback,
    search_session: SearchSession,
) -> None:
    i18n, locale = _translator(callback.from_user)
    message = callback.message
    if callback_data.generation != search_session.state.generation or not isinstance(message, Message):
        await callback.answer(i18n.gettext("play.expired", locale=locale), show_alert=True)
        return

    try:
        selection = search_session.play(callback_data.entry, callback_data.file)
    except SelectionNotFound:
        await callback.answer(i18n.gettext("play.not_found", locale=locale), show_alert=True)
        return

    await callback.answer()
    logger.info(
        "playback_selected",
        chat_id=search_session.chat_id,
        article=selection.article_title,
        file=selection.media.title,
        backend=selection.media.backend,
    )
    await _send_selection(message, selection, i18n=i18n, locale=locale)


@router.message(F.text & ~F.text.startswith("/"))
async def handle_text(
    message: Message,
    resolver: AudioResolver,
    search_session: SearchSession,
) -> None:
    await _run_search(message, resolver=resolver, search_session=search_session, query=message.text or "")


async def _run_search(
    message: Message,
    *,
    resolver: AudioResolver,
    search_session: SearchSession,
    query: str,
) -> None:
    query = query.strip()
    if not query:
        return
    i18n, locale = _translator(message.from_user)
    if search_session.state.loading:
        await answer_with_retry(message, i18n.gettext("search.in_progress", locale=locale), parse_mode=None)
        return

    # Enter "loading" before the first await.
    generation = search_session.begin(query)

    async def _load():
        await answer_with_retry(message, i18n.gettext("search.loading", locale=locale, query=query), parse_mode=None)
        async with _chat_action(message):
            return await resolver.resolve(query)

    state = await search_session.complete(generation, _load)

    if state is None:
        logger.info("search_superseded", chat_id=search_session.chat_id, query=query)
        return
    if state.status == "error":
        logger.warning("search_failed", chat_id=search_session.chat_id, query=query, error=state.error)
        await answer_with_retry(message, i18n.gettext("search.error", locale=locale), parse_mode=None)
        return
    if state.status == "empty":
        await answer_with_retry(message, i18n.gettext("search.empty", locale=locale, query=query), parse_mode=None)
        return
    await _send_results(
        message,
        i18n.gettext("search.results", locale=locale, query=query),
        state,
        i18n=i18n,
        locale=locale,
    )


async def _send_results(
    message: Message,
    header: str,
    state: SessionState,
    *,
    i18n: I18nService,
    locale: str,
) -> None:
    results: Sequence[ResultEntry] = state.results
    max_files = keyboards.MAX_PLAY_BUTTONS
    text = format_results(header, results, max_files=max_files)
    hidden = count_audio_files(results) - max_files
    if hidden > 0:
        text = f"{text}\n\n{i18n.gettext('search.more_files', locale=locale, count=hidden)}"
    chunks = split_message_text(text)
    keyboard = build_results_keyboard(results, state.generation)
    for idx, chunk in enumerate(chunks):
        markup = keyboard if idx == len(chunks) - 1 else None
        await answer_with_retry(message, chunk, parse_mode=None, reply_markup=markup)


async def _send_selection(
    message: Message,
    selection: PlaybackSelection,
    *,
    i18n: I18nService,
    locale: str,
) -> None:
    media = selection.media
    try:
        await answer_audio_with_retry(
            message,
            media.url,
            title=selection.article_title,
            caption=i18n.gettext("play.now_playing", locale=locale, title=selection.article_title),
            parse_mode=None,
        )
    except TelegramBadRequest as exc:
        logger.info("audio_url_rejected", url=media.url, mime_type=media.mime_type, error=str(exc))
        await answer_with_retry(
            message,
            i18n.gettext("play.link_fallback", locale=locale, title=selection.article_title, url=media.url),
            parse_mode=None,
        )


@contextlib.asynccontextmanager
async def _chat_action(message: Message):
    task = asyncio.create_task(_send_typing_action(message))
    try:
        yield
    finally:
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task


async def _send_typing_action(message: Message) -> None:
    try:
        while True:
            await message.bot.send_chat_action(message.chat.id, ChatAction.TYPING)
            await asyncio.sleep(4)
    except asyncio.CancelledError:
        pass
    except Exception:
        logger.warning("chat_action_failed", chat_id=message.chat.id, exc_info=True)


__all__ = ["router", "TRENDING_QUERY"]
