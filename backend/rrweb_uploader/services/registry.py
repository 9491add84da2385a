"""In-memory registry of live replay sessions.

Sessions live here from their first observed operation (an explicit start or
a first chunk) until they are finalized or evicted by the idle sweep. The
registry is volatile: a process restart drops every live session, and
durable storage only happens once a session is finalized and published.

Every operation is synchronous and guarded by a lock, so a single call never
observes a partially applied mutation of the same session, whether handlers
run on the event loop or in a thread pool.
"""
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from rrweb_uploader.constants import DEFAULT_IDLE_TIMEOUT_MS
from rrweb_uploader.utils.clock import now_ms
from rrweb_uploader.utils.exceptions import BadRequest, UnknownSession
from rrweb_uploader.utils.hashing import generate_session_token
from rrweb_uploader.utils.logger import logger


@dataclass
class ReplaySession:
    """One in-progress recording buffered server-side."""
    id: str
    started_at: int
    last_activity_at: int
    events: List[Dict[str, Any]] = field(default_factory=list)
    meta: Dict[str, Any] = field(default_factory=dict)
    token: Optional[str] = None

    @classmethod
    def started(cls, session_id: str, at: int, meta: Optional[Dict[str, Any]] = None) -> "ReplaySession":
        """Session declared through /replay/start; carries a beacon token."""
        return cls(
            id=session_id,
            started_at=at,
            last_activity_at=at,
            meta=dict(meta or {}),
            token=generate_session_token(),
        )

    @classmethod
    def implicit(cls, session_id: str, at: int) -> "ReplaySession":
        """Session created by a first chunk arriving without a start call."""
        return cls(id=session_id, started_at=at, last_activity_at=at)

    @property
    def event_count(self) -> int:
        return len(self.events)

    def merge_meta(self, meta: Optional[Dict[str, Any]]) -> None:
        """Shallow merge; later keys win."""
        if meta:
            self.meta.update(meta)

    def is_idle(self, now: int, idle_timeout_ms: int) -> bool:
        return now - self.last_activity_at > idle_timeout_ms


class SessionRegistry:
    """Owns every live session, keyed by the caller-supplied session id."""

    def __init__(
        self,
        idle_timeout_ms: int = DEFAULT_IDLE_TIMEOUT_MS,
        strict: bool = False,
        clock: Callable[[], int] = now_ms,
    ):
        self.idle_timeout_ms = idle_timeout_ms
        self.strict = strict
        self._clock = clock
        self._sessions: Dict[str, ReplaySession] = {}
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._sessions

    def get(self, session_id: str) -> Optional[ReplaySession]:
        """Look up a session without touching its activity time."""
        with self._lock:
            return self._sessions.get(session_id)

    def get_or_create(
        self,
        session_id: str,
        meta: Optional[Dict[str, Any]] = None,
        issue_token: bool = True,
    ) -> ReplaySession:
        """
        Return the live session for an id, creating it if needed.

        Args:
            session_id: Caller-supplied session id
            meta: Descriptive fields to merge into the session meta
            issue_token: Mint a beacon token if the session has none yet

        Returns:
            The single session registered for this id
        """
        _require_session_id(session_id)
        with self._lock:
            now = self._clock()
            session = self._sessions.get(session_id)
            if session is None:
                if issue_token:
                    session = ReplaySession.started(session_id, now, meta)
                else:
                    session = ReplaySession.implicit(session_id, now)
                    session.merge_meta(meta)
                self._sessions[session_id] = session
                logger.debug(f"Registered session {session_id} (token={'yes' if session.token else 'no'})")
                return session

            session.merge_meta(meta)
            if issue_token and session.token is None:
                session.token = generate_session_token()
            session.last_activity_at = now
            return session

    def append(self, session_id: str, events: List[Dict[str, Any]]) -> ReplaySession:
        """
        Append a chunk of events in arrival order.

        Events are neither sorted nor deduplicated here; ordering is only
        restored when recordings are merged.

        Args:
            session_id: Caller-supplied session id
            events: Events to append (may be empty)

        Returns:
            The session the events were appended to

        Raises:
            BadRequest: If the id is empty or events is not a list
            UnknownSession: In strict mode, if the session was never declared
        """
        _require_session_id(session_id)
        if not isinstance(events, list):
            raise BadRequest("events must be a list")

        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                if self.strict:
                    raise UnknownSession(session_id)
                session = self.get_or_create(session_id, issue_token=False)

            session.events.extend(events)
            session.last_activity_at = self._clock()
            return session

    def finalize(self, session_id: str) -> Optional[ReplaySession]:
        """
        Remove and return a session.

        Returns None when the session is unknown, which is how a second
        finalize of the same id (or a finalize after expiry) is detected.
        """
        with self._lock:
            return self._sessions.pop(session_id, None)

    def sweep_expired(self, now: Optional[int] = None) -> List[str]:
        """
        Evict every session idle for longer than the idle window.

        Buffered events of evicted sessions are dropped.

        Args:
            now: Reference time in epoch ms (defaults to the registry clock)

        Returns:
            Ids of the evicted sessions
        """
        with self._lock:
            reference = self._clock() if now is None else now
            expired = [
                session_id
                for session_id, session in self._sessions.items()
                if session.is_idle(reference, self.idle_timeout_ms)
            ]
            for session_id in expired:
                dropped = self._sessions.pop(session_id)
                logger.info(
                    f"Evicted idle session {session_id} "
                    f"({dropped.event_count} buffered events dropped)"
                )
            return expired


def _require_session_id(session_id: Any) -> None:
    if not isinstance(session_id, str) or not session_id:
        raise BadRequest("missing sessionId")
