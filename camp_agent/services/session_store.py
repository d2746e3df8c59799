"""Thread-safe, process-local session store with a fixed time-to-live.

Design decisions
────────────────
• **TTL from creation**: a session expires ``ttl_seconds`` after it was
  created, whatever happened in between.  Long conversations can be cut
  off mid-flow; this is the current product policy.
• **OrderedDict** in creation order, so ``sweep`` pops from the front and
  stops at the first live session.
• **threading.Lock** because FastAPI runs each chat turn on a worker
  thread (see ``api/routes.py``).
• **max_sessions** ceiling: when full, the oldest session is evicted.
• Purely ephemeral.  A multi-process deployment should provide another
  ``SessionStore`` implementation (e.g. Redis-backed).
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from collections import OrderedDict
from collections.abc import Callable
from typing import Protocol

from camp_agent.conversation import Session

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 2 * 60 * 60
DEFAULT_MAX_SESSIONS = 10_000


class SessionStore(Protocol):
    def get(self, session_id: str) -> Session | None: ...
    def create(self) -> Session: ...
    def sweep(self, now: float | None = None) -> int: ...


class InMemorySessionStore:
    """Session map bounded by age and by entry count."""

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_sessions: int = DEFAULT_MAX_SESSIONS,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._ttl = ttl_seconds
        self._max_sessions = max_sessions
        self._clock = clock
        self._sessions: OrderedDict[str, Session] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, session_id: str) -> Session | None:
        """Return the live session for *session_id*, or ``None``.

        An expired session is evicted on lookup even if no sweep ran yet.
        """
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            if session.expired(self._clock(), self._ttl):
                del self._sessions[session_id]
                logger.debug("Session %s expired on lookup", session_id)
                return None
            return session

    def create(self) -> Session:
        """Create and register a session with a fresh unique id."""
        session = Session(id=str(uuid.uuid4()), created_at=self._clock())
        with self._lock:
            while len(self._sessions) >= self._max_sessions and self._sessions:
                evicted_id, _ = self._sessions.popitem(last=False)
                logger.info("Session store full: evicted %s", evicted_id)
            self._sessions[session.id] = session
        logger.info("Created session %s", session.id)
        return session

    def sweep(self, now: float | None = None) -> int:
        """Remove sessions older than the TTL.  Returns count removed."""
        now = self._clock() if now is None else now
        removed = 0
        with self._lock:
            while self._sessions:
                oldest = next(iter(self._sessions.values()))
                if not oldest.expired(now, self._ttl):
                    break
                self._sessions.popitem(last=False)
                removed += 1
        if removed:
            logger.info("Swept %d expired session(s)", removed)
        return removed

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions
