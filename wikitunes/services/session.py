"""Per-chat search state kept as immutable snapshots."""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass, field, replace
from typing import Awaitable, Callable, Literal, Protocol, Sequence

from wikitunes.domain.models import PlaybackSelection, ResultEntry
from wikitunes.logging import logger
from wikitunes.services.exceptions import SearchUnavailable, SelectionNotFound

SessionStatus = Literal["idle", "loading", "ready", "empty", "error"]


class Resolver(Protocol):
    async def resolve(self, query: str, max_hits: int | None = None) -> list[ResultEntry]: ...


@dataclass(frozen=True, slots=True)
class SessionState:
    query: str = ""
    status: SessionStatus = "idle"
    results: tuple[ResultEntry, ...] = ()
    error: str | None = None
    generation: int = 0
    current: PlaybackSelection | None = None

    @property
    def loading(self) -> bool:
        return self.status == "loading"


class SearchSession:
    """Search and playback state for one chat.

    Every change produces a new ``SessionState``. Results are committed only
    for the generation that is still current, so a slow search can never
    overwrite the outcome of a newer one.
    """

    def __init__(self, chat_id: int | None = None) -> None:
        self.chat_id = chat_id
        self._state = SessionState()

    @property
    def state(self) -> SessionState:
        return self._state

    def begin(self, query: str) -> int:
        generation = self._state.generation + 1
        self._state = replace(
            self._state,
            query=query.strip(),
            status="loading",
            results=(),
            error=None,
            generation=generation,
        )
        return generation

    def commit(self, generation: int, results: Sequence[ResultEntry]) -> bool:
        if self._is_stale(generation):
            return False
        self._state = replace(
            self._state,
            status="ready" if results else "empty",
            results=tuple(results),
            error=None,
        )
        return True

    def fail(self, generation: int, message: str) -> bool:
        if self._is_stale(generation):
            return False
        self._state = replace(self._state, status="error", results=(), error=message)
        return True

    async def run(
        self,
        resolver: Resolver,
        query: str,
        max_hits: int | None = None,
    ) -> SessionState | None:
        """Resolve ``query`` and commit the outcome.

        Returns the committed snapshot, or ``None`` when a newer search started
        meanwhile and this outcome was discarded. A blank query changes nothing
        and returns the current snapshot.
        """

        if not (query or "").strip():
            return self._state
        return await self.load(query, lambda: resolver.resolve(query, max_hits=max_hits))

    async def load(
        self,
        query: str,
        loader: Callable[[], Awaitable[Sequence[ResultEntry]]],
    ) -> SessionState | None:
        return await self.complete(self.begin(query), loader)

    async def complete(
        self,
        generation: int,
        loader: Callable[[], Awaitable[Sequence[ResultEntry]]],
    ) -> SessionState | None:
        """Await ``loader`` and commit its outcome for ``generation``.

        Callers that must claim the chat before their first ``await`` call
        ``begin`` themselves and hand the generation over here.
        """

        try:
            results = await loader()
        except SearchUnavailable as exc:
            committed = self.fail(generation, str(exc))
        except BaseException as exc:
            # Never leave the chat stuck in "loading".
            self.fail(generation, str(exc) or exc.__class__.__name__)
            raise
        else:
            committed = self.commit(generation, results)
        return self._state if committed else None

    def play(self, entry_index: int, file_index: int) -> PlaybackSelection:
        results = self._state.results
        if not 0 <= entry_index < len(results):
            raise SelectionNotFound(f"No result at position {entry_index}.")
        entry = results[entry_index]
        if not 0 <= file_index < len(entry.audio_files):
            raise SelectionNotFound(f"No audio file at position {file_index}.")

        selection = PlaybackSelection(
            entry_index=entry_index,
            file_index=file_index,
            article_title=entry.hit.title,
            media=entry.audio_files[file_index],
        )
        self._state = replace(self._state, current=selection)
        return selection

    def stop(self) -> PlaybackSelection | None:
        previous = self._state.current
        self._state = replace(self._state, current=None)
        return previous

    def _is_stale(self, generation: int) -> bool:
        if generation == self._state.generation:
            return False
        logger.info(
            "stale_results_discarded",
            chat_id=self.chat_id,
            generation=generation,
            current_generation=self._state.generation,
        )
        return True


DEFAULT_MAX_SESSIONS = 10_000


@dataclass(slots=True)
class SessionRegistry:
    """Per-chat sessions, least recently used first.

    Above ``max_sessions`` the oldest sessions that are not loading are
    forgotten; a chat that comes back simply starts from a fresh session.
    """

    max_sessions: int = DEFAULT_MAX_SESSIONS
    _sessions: OrderedDict[int, SearchSession] = field(default_factory=OrderedDict)

    def __post_init__(self) -> None:
        if self.max_sessions < 1:
            raise ValueError("max_sessions must be at least 1")

    def get(self, chat_id: int) -> SearchSession:
        session = self._sessions.get(chat_id)
        if session is None:
            session = SearchSession(chat_id)
            self._sessions[chat_id] = session
            self._evict(keep=chat_id)
        else:
            self._sessions.move_to_end(chat_id)
        return session

    def _evict(self, *, keep: int) -> None:
        overflow = len(self._sessions) - self.max_sessions
        if overflow <= 0:
            return
        idle = [
            chat_id
            for chat_id, session in self._sessions.items()
            if chat_id != keep and not session.state.loading
        ][:overflow]
        for chat_id in idle:
            del self._sessions[chat_id]
        if idle:
            logger.info("sessions_evicted", count=len(idle), remaining=len(self._sessions))

    def __len__(self) -> int:
        return len(self._sessions)


__all__ = [
    "DEFAULT_MAX_SESSIONS",
    "Resolver",
    "SearchSession",
    "SessionRegistry",
    "SessionState",
    "SessionStatus",
]
