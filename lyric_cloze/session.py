from __future__ import annotations

import logging
import secrets
import threading
from collections import OrderedDict
from typing import Protocol

from lyric_cloze.config import EMPTY_LYRICS_MESSAGE, GENERATION_FAILED_MESSAGE
from lyric_cloze.logging_utils import log_event
from lyric_cloze.models import AppState, ClozeResult, SongData
from lyric_cloze.services.llm import ClozeGenerationError
from lyric_cloze.worksheet.layout import ResolvedStyles, resolve_for_lines

logger = logging.getLogger(__name__)

MAX_SESSIONS = 256


class ClozeGenerator(Protocol):
    def generate(self, lyrics: str) -> ClozeResult: ...


class LyricsValidationError(ValueError):
    pass


class SessionBusyError(RuntimeError):
    pass


class WorksheetSession:
    """State of one browser tab: the song being edited and its worksheet.

    At most one generation call is in flight; ``submit`` claims the
    GENERATING state under the lock before touching the network.
    """

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        self.song = SongData()
        self.result: ClozeResult | None = None
        self.state = AppState.IDLE
        self.error: str | None = None
        self._lock = threading.Lock()

    def update_song(
        self,
        *,
        title: str,
        artist: str,
        lyrics: str,
        cover_image: str | None = None,
        keep_cover: bool = True,
    ) -> None:
        with self._lock:
            self._ensure_idle()
            if cover_image is None and keep_cover:
                cover_image = self.song.cover_image
            self.song = SongData(title=title, artist=artist, original_lyrics=lyrics, cover_image=cover_image)

    def submit(self, service: ClozeGenerator) -> AppState:
        with self._lock:
            self._ensure_idle()
            lyrics = self.song.original_lyrics
            if not lyrics.strip():
                self.error = EMPTY_LYRICS_MESSAGE
                raise LyricsValidationError(EMPTY_LYRICS_MESSAGE)
            self.state = AppState.GENERATING
            self.error = None

        try:
            result = service.generate(lyrics)
        except ClozeGenerationError as exc:
            log_event(logger, "cloze_generation_failed", logging.WARNING, session=self.session_id, detail=str(exc))
            with self._lock:
                self.state = AppState.ERROR
                self.error = GENERATION_FAILED_MESSAGE
            return self.state
        except Exception:
            with self._lock:
                self.state = AppState.ERROR
                self.error = GENERATION_FAILED_MESSAGE
            raise

        with self._lock:
            self.result = result
            self.state = AppState.READY
        return self.state

    def styles(self) -> ResolvedStyles:
        if self.result is None:
            raise LookupError("no worksheet has been generated")
        return resolve_for_lines(self.result.lines)

    def reset(self) -> None:
        with self._lock:
            self._ensure_idle()
            self.state = AppState.IDLE
            self.result = None
            self.error = None

    def start_over(self) -> None:
        with self._lock:
            self._ensure_idle()
            self.song = SongData()
            self.state = AppState.IDLE
            self.result = None
            self.error = None

    def _ensure_idle(self) -> None:
        if self.state == AppState.GENERATING:
            raise SessionBusyError("a worksheet is already being generated")


class SessionStore:
    def __init__(self, max_sessions: int = MAX_SESSIONS) -> None:
        self.max_sessions = max_sessions
        self._sessions: OrderedDict[str, WorksheetSession] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, session_id: str | None) -> WorksheetSession | None:
        if not session_id:
            return None
        with self._lock:
            session = self._sessions.get(session_id)
            if session is not None:
                self._sessions.move_to_end(session_id)
            return session

    def get_or_create(self, session_id: str | None) -> tuple[WorksheetSession, bool]:
        existing = self.get(session_id)
        if existing is not None:
            return existing, False
        session = WorksheetSession(secrets.token_urlsafe(18))
        with self._lock:
            self._sessions[session.session_id] = session
            # oldest idle sessions go first; a generating one and the new one are never evicted
            while len(self._sessions) > self.max_sessions:
                victim = next(
                    (
                        sid
                        for sid, s in self._sessions.items()
                        if sid != session.session_id and s.state != AppState.GENERATING
                    ),
                    None,
                )
                if victim is None:
                    break
                del self._sessions[victim]
        return session, True

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
