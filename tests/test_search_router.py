"""Tests for the search/play chat handlers."""

from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest
from aiogram.exceptions import TelegramBadRequest

from wikitunes.bot.keyboards import PlayCallback
from wikitunes.bot.routers import search as search_router
from wikitunes.domain.models import ResolvedMedia, ResultEntry, SearchHit
from wikitunes.services.exceptions import SearchUnavailable
from wikitunes.services.session import SearchSession


class DummyBot:
    def __init__(self) -> None:
        self.actions: list[tuple[int, str]] = []

    async def send_chat_action(self, chat_id, action):
        self.actions.append((chat_id, action))


class DummyFromUser:
    def __init__(self, user_id: int = 1, full_name: str = "Test User", language_code: str = "en") -> None:
        self.id = user_id
        self.full_name = full_name
        self.language_code = language_code


class DummyMessage:
    def __init__(self, text: str = "hi", from_user: DummyFromUser | None = None) -> None:
        self.text = text
        self.from_user = from_user or DummyFromUser()
        self.chat = SimpleNamespace(id=100, type="private")
        self.bot = DummyBot()
        self.answers: list[dict] = []
        self.audios: list[dict] = []
        self.audio_error: Exception | None = None

    async def answer(self, text: str, parse_mode: str | None = None, reply_markup=None):
        self.answers.append({"text": text, "parse_mode": parse_mode, "reply_markup": reply_markup})
        return text

    async def answer_audio(self, audio, **kwargs):
        if self.audio_error is not None:
            raise self.audio_error
        self.audios.append({"audio": audio, **kwargs})
        return audio


class DummyCallback:
    def __init__(self, message: DummyMessage | None) -> None:
        self.message = message
        self.from_user = message.from_user if message else DummyFromUser()
        self.answers: list[tuple[str | None, bool]] = []

    async def answer(self, text: str | None = None, show_alert: bool = False):
        self.answers.append((text, show_alert))


class StubResolver:
    def __init__(self, outcome) -> None:
        self.outcome = outcome
        self.queries: list[str] = []

    async def resolve(self, query, max_hits=None):
        self.queries.append(query)
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


def _entry(title: str, url: str = "https://upload.wikimedia.org/clip.mp3") -> ResultEntry:
    return ResultEntry(
        hit=SearchHit(id=1, title=title, snippet='<span class="searchmatch">song</span> by Queen'),
        audio_files=(ResolvedMedia(title=f"File:{title}.mp3", url=url, mime_type="audio/mpeg"),),
    )


@pytest.fixture(autouse=True)
def stub_settings(monkeypatch):
    settings = SimpleNamespace(default_language="en")
    monkeypatch.setattr(search_router, "get_settings", lambda: settings)
    monkeypatch.setattr(search_router, "Message", DummyMessage)
    return settings


@pytest.mark.asyncio
async def test_text_message_runs_search_and_renders_results():
    message = DummyMessage(text="  Bohemian Rhapsody ")
    session = SearchSession(chat_id=100)
    resolver = StubResolver([_entry("Bohemian Rhapsody")])

    await search_router.handle_text(message, resolver=resolver, search_session=session)

    assert resolver.queries == ["Bohemian Rhapsody"]
    assert message.answers[0]["text"].startswith("Searching")
    final = message.answers[-1]
    assert "1. Bohemian Rhapsody" in final["text"]
    assert "<span" not in final["text"]
    assert final["parse_mode"] is None
    button = final["reply_markup"].inline_keyboard[0][0]
    assert PlayCallback.unpack(button.callback_data) == PlayCallback(generation=1, entry=0, file=0)
    assert session.state.status == "ready"


@pytest.mark.asyncio
async def test_search_error_is_reported():
    message = DummyMessage(text="Hotel California")
    session = SearchSession()

    await search_router.handle_text(
        message,
        resolver=StubResolver(SearchUnavailable("503")),
        search_session=session,
    )

    assert "unavailable" in message.answers[-1]["text"]
    assert session.state.status == "error"


@pytest.mark.asyncio
async def test_empty_results_are_reported():
    message = DummyMessage(text="zzzz")

    await search_router.handle_text(message, resolver=StubResolver([]), search_session=SearchSession())

    assert message.answers[-1]["text"] == 'No playable audio found for "zzzz".'


@pytest.mark.asyncio
async def test_submission_rejected_while_loading():
    message = DummyMessage(text="Imagine")
    session = SearchSession()
    session.begin("earlier")
    resolver = StubResolver([_entry("Imagine")])

    await search_router.handle_text(message, resolver=resolver, search_session=session)

    assert resolver.queries == []
    assert "already running" in message.answers[-1]["text"]


@pytest.mark.asyncio
async def test_search_command_requires_query():
    message = DummyMessage(text="/search")
    resolver = StubResolver([])

    await search_router.handle_search_command(
        message,
        command=SimpleNamespace(args=None),
        resolver=resolver,
        search_session=SearchSession(),
    )

    assert message.answers[-1]["text"].startswith("Usage")
    assert resolver.queries == []


@pytest.mark.asyncio
async def test_superseded_search_sends_nothing():
    message = DummyMessage(text="first")
    session = SearchSession()
    gate = asyncio.Event()

    class SlowResolver:
        async def resolve(self, query, max_hits=None):
            await gate.wait()
            return [_entry("First")]

    task = asyncio.create_task(
        search_router.handle_text(message, resolver=SlowResolver(), search_session=session)
    )
    await asyncio.sleep(0.01)
    session.begin("second")
    gate.set()
    await task

    assert [answer["text"] for answer in message.answers] == ['Searching for "first"...']


class YieldingMessage(DummyMessage):
    async def answer(self, text: str, parse_mode: str | None = None, reply_markup=None):
        await asyncio.sleep(0)
        return await super().answer(text, parse_mode=parse_mode, reply_markup=reply_markup)


@pytest.mark.asyncio
async def test_concurrent_submissions_resolve_only_once():
    session = SearchSession()
    gate = asyncio.Event()
    queries: list[str] = []

    class GatedResolver:
        async def resolve(self, query, max_hits=None):
            queries.append(query)
            await gate.wait()
            return [_entry("First")]

    resolver = GatedResolver()
    first = YieldingMessage(text="first")
    second = YieldingMessage(text="second")

    first_task = asyncio.create_task(
        search_router.handle_text(first, resolver=resolver, search_session=session)
    )
    second_task = asyncio.create_task(
        search_router.handle_text(second, resolver=resolver, search_session=session)
    )
    await second_task
    gate.set()
    await first_task

    assert queries == ["first"]
    assert "already running" in second.answers[-1]["text"]
    assert first.answers[0]["text"] == 'Searching for "first"...'
    assert "1. First" in first.answers[-1]["text"]
    assert session.state.status == "ready"


@pytest.mark.asyncio
async def test_trending_rejected_while_search_loading():
    message = DummyMessage(text="/trending")
    session = SearchSession()
    session.begin("earlier")
    calls = []

    async def load():
        calls.append("load")
        return []

    await search_router.handle_trending(message, trending=SimpleNamespace(load=load), search_session=session)

    assert calls == []
    assert "already running" in message.answers[-1]["text"]


@pytest.mark.asyncio
async def test_failed_loading_reply_does_not_leave_session_loading():
    class BrokenMessage(DummyMessage):
        async def answer(self, text: str, parse_mode: str | None = None, reply_markup=None):
            raise RuntimeError("telegram down")

    session = SearchSession()
    resolver = StubResolver([_entry("Imagine")])

    with pytest.raises(RuntimeError):
        await search_router.handle_text(BrokenMessage(text="imagine"), resolver=resolver, search_session=session)

    assert resolver.queries == []
    assert session.state.status == "error"


@pytest.mark.asyncio
async def test_play_sends_audio_and_updates_selection():
    message = DummyMessage()
    session = SearchSession()
    await session.run(StubResolver([_entry("Billie Jean")]), "billie jean")
    callback = DummyCallback(message)

    await search_router.handle_play(
        callback,
        callback_data=PlayCallback(generation=session.state.generation, entry=0, file=0),
        search_session=session,
    )

    assert callback.answers == [(None, False)]
    assert message.audios[0]["audio"] == "https://upload.wikimedia.org/clip.mp3"
    assert message.audios[0]["title"] == "Billie Jean"
    assert session.state.current.article_title == "Billie Jean"


@pytest.mark.asyncio
async def test_play_falls_back_to_link_when_telegram_rejects_url():
    message = DummyMessage()
    message.audio_error = TelegramBadRequest(method=None, message="wrong file type")
    session = SearchSession()
    ogg_url = "https://upload.wikimedia.org/clip.ogg"
    await session.run(StubResolver([_entry("Yesterday", url=ogg_url)]), "yesterday")

    await search_router.handle_play(
        DummyCallback(message),
        callback_data=PlayCallback(generation=session.state.generation, entry=0, file=0),
        search_session=session,
    )

    assert ogg_url in message.answers[-1]["text"]
    assert session.state.current is not None


@pytest.mark.asyncio
async def test_play_from_outdated_results_is_rejected():
    message = DummyMessage()
    session = SearchSession()
    await session.run(StubResolver([_entry("Billie Jean")]), "billie jean")
    old_generation = session.state.generation
    await session.run(StubResolver([_entry("Thriller")]), "thriller")
    callback = DummyCallback(message)

    await search_router.handle_play(
        callback,
        callback_data=PlayCallback(generation=old_generation, entry=0, file=0),
        search_session=session,
    )

    assert callback.answers[0][1] is True
    assert "outdated" in callback.answers[0][0]
    assert message.audios == []
    assert session.state.current is None


@pytest.mark.asyncio
async def test_play_unknown_index_is_rejected():
    message = DummyMessage()
    session = SearchSession()
    await session.run(StubResolver([_entry("Billie Jean")]), "billie jean")
    callback = DummyCallback(message)

    await search_router.handle_play(
        callback,
        callback_data=PlayCallback(generation=session.state.generation, entry=4, file=0),
        search_session=session,
    )

    assert callback.answers[0] == ("That recording is no longer available.", True)


@pytest.mark.asyncio
async def test_trending_commits_featured_list():
    message = DummyMessage(text="/trending")
    session = SearchSession()

    async def load():
        return [_entry("Viva la Vida")]

    await search_router.handle_trending(
        message,
        trending=SimpleNamespace(load=load),
        search_session=session,
    )

    assert session.state.query == search_router.TRENDING_QUERY
    assert message.answers[-1]["text"].startswith("Trending songs:")
    assert message.answers[-1]["reply_markup"] is not None


@pytest.mark.asyncio
async def test_trending_empty():
    message = DummyMessage(text="/trending")

    async def load():
        return []

    await search_router.handle_trending(
        message,
        trending=SimpleNamespace(load=load),
        search_session=SearchSession(),
    )

    assert message.answers[-1]["text"].startswith("No trending songs")


@pytest.mark.asyncio
async def test_now_playing_and_stop():
    message = DummyMessage()
    session = SearchSession()
    await session.run(StubResolver([_entry("Imagine")]), "imagine")

    await search_router.handle_now_playing(message, search_session=session)
    assert message.answers[-1]["text"] == "Nothing is playing."

    session.play(0, 0)
    await search_router.handle_now_playing(message, search_session=session)
    assert message.answers[-1]["text"].startswith("Now playing: Imagine")

    await search_router.handle_stop(message, search_session=session)
    assert message.answers[-1]["text"] == "Stopped Imagine."
    assert session.state.current is None


@pytest.mark.asyncio
async def test_start_greets_in_user_language():
    message = DummyMessage(text="/start", from_user=DummyFromUser(full_name="Freddie", language_code="de-DE"))

    await search_router.handle_start(message)

    assert message.answers[0]["text"].startswith("Hallo Freddie!")


@pytest.mark.asyncio
async def test_results_beyond_button_limit_are_not_listed(monkeypatch):
    monkeypatch.setattr(search_router.keyboards, "MAX_PLAY_BUTTONS", 2)
    entry = ResultEntry(
        hit=SearchHit(id=1, title="Symphony No. 9"),
        audio_files=tuple(
            ResolvedMedia(
                title=f"File:Movement_{idx}.ogg",
                url=f"https://upload.wikimedia.org/Movement_{idx}.ogg",
                mime_type="audio/ogg",
            )
            for idx in range(3)
        ),
    )
    message = DummyMessage(text="symphony")

    await search_router.handle_text(message, resolver=StubResolver([entry]), search_session=SearchSession())

    final = message.answers[-1]
    listed = [line for line in final["text"].splitlines() if line.strip().startswith("♪")]
    assert len(listed) == 2
    assert "Movement 2.ogg" not in final["text"]
    assert final["text"].endswith("1 more recordings are not listed, try a narrower search.")
    assert len(final["reply_markup"].inline_keyboard) == 2
