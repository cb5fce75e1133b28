"""
Session Store

In-memory mapping from MCP session id to the transport handle that owns the
session. One store is created per application and injected into the router.
"""

import contextlib
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional

from error_handling import SessionConflictError

logger = logging.getLogger("mcp_servers.session_store")


class SessionState(str, Enum):
    """Lifecycle of a stored session. An id with no record is uninitialized."""
    ACTIVE = "active"
    CLOSED = "closed"


@dataclass
class Session:
    """A stateful conversation between one client and the server."""
    session_id: str
    transport: Any
    state: SessionState = SessionState.ACTIVE
    created_at: float = 0.0
    last_activity: float = 0.0
    request_count: int = 0
    in_flight: int = 0


class SessionStore:
    """
    Maps session ids to sessions.

    No locking: mutations are synchronous, so they never interleave on the
    event loop. Removal is idempotent.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._sessions: Dict[str, Session] = {}
        self._clock = clock

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def session_ids(self) -> List[str]:
        return list(self._sessions)

    def put(self, session_id: str, transport: Any) -> Session:
        """Record a newly initialized session as active."""
        if session_id in self._sessions:
            raise SessionConflictError(session_id)

        now = self._clock()
        session = Session(
            session_id=session_id,
            transport=transport,
            state=SessionState.ACTIVE,
            created_at=now,
            last_activity=now,
        )
        self._sessions[session_id] = session
        logger.info("Session %s stored (%d active)", session_id, len(self._sessions))
        return session

    def get_session(self, session_id: str) -> Optional[Session]:
        """Return the active session record and mark it as used."""
        session = self._sessions.get(session_id)
        if session is not None:
            session.last_activity = self._clock()
            session.request_count += 1
        return session

    def get(self, session_id: str) -> Optional[Any]:
        """Return the transport handle of an active session, if any."""
        session = self.get_session(session_id)
        return session.transport if session is not None else None

    def remove(self, session_id: str) -> Optional[Session]:
        """Drop a session. Returns None when it was already gone."""
        session = self._sessions.pop(session_id, None)
        if session is None:
            return None
        session.state = SessionState.CLOSED
        logger.info("Session %s removed (%d active)", session_id, len(self._sessions))
        return session

    @contextlib.contextmanager
    def track_request(self, session_id: str) -> Iterator[Optional[Session]]:
        """
        Mark a request as in flight for the duration of the block.

        Long-lived requests such as the GET notification stream keep the
        session from expiring; activity is refreshed again when they end.
        """
        session = self._sessions.get(session_id)
        if session is None:
            yield None
            return
        session.in_flight += 1
        try:
            yield session
        finally:
            session.in_flight -= 1
            session.last_activity = self._clock()

    def expired(self, idle_timeout: float) -> List[Session]:
        """Sessions with no request in flight, idle for longer than ``idle_timeout`` seconds."""
        if idle_timeout <= 0:
            return []
        cutoff = self._clock() - idle_timeout
        return [
            s for s in self._sessions.values()
            if s.in_flight == 0 and s.last_activity < cutoff
        ]

    def clear(self) -> List[Session]:
        """Remove every session, returning what was removed."""
        sessions = list(self._sessions.values())
        self._sessions.clear()
        for session in sessions:
            session.state = SessionState.CLOSED
        return sessions
