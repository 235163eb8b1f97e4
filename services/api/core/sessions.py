# services/api/core/sessions.py
from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass, field

from cachetools import TTLCache

from models.drafts import DraftEditor

logger = logging.getLogger(__name__)


class SessionNotFound(LookupError):
    """Unknown or expired editor session."""


class SubmissionInProgress(RuntimeError):
    """A submission for this session has not finished yet."""


@dataclass
class EditorSession:
    session_id: str
    editor: DraftEditor = field(default_factory=DraftEditor)
    submitting: bool = False


class EditorSessionStore:
    """
    Server-held editor sessions.

    Sessions expire after `ttl` seconds of no access and the oldest are
    evicted beyond `maxsize`. The `submitting` flag keeps one session from
    running two submissions at once; it does not cancel anything.
    """

    def __init__(self, maxsize: int = 500, ttl: int = 3600) -> None:
        self._sessions: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl)
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._sessions)

    def create(self) -> EditorSession:
        session = EditorSession(session_id=uuid.uuid4().hex)
        with self._lock:
            self._sessions[session.session_id] = session
        logger.info(f"Created editor session {session.session_id[:8]}")
        return session

    def get(self, session_id: str) -> EditorSession:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise SessionNotFound(f"Session {session_id} not found or expired")
            # re-insert to refresh the TTL on access
            self._sessions[session_id] = session
        return session

    def begin_submit(self, session: EditorSession) -> None:
        with self._lock:
            if session.submitting:
                raise SubmissionInProgress("A submission is already in progress")
            session.submitting = True

    def end_submit(self, session: EditorSession) -> None:
        with self._lock:
            session.submitting = False
