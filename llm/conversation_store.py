"""
In-process conversation session store.

One process-wide map from (tenant, user, ticket) to a session, guarded
by a single lock. Readers get a copy; changes become visible only when
the caller commits them with ``put``. Sessions idle for longer than the
TTL are treated as absent.
"""

import copy
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, NamedTuple, Optional

from tickets.models import AuthorKind

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 3600.0


class SessionKey(NamedTuple):
    """Identifies a conversation; ticket_id 0 means no ticket yet."""
    tenant_id: int
    user_id: int
    ticket_id: int = 0


@dataclass
class SessionMessage:
    author: AuthorKind
    text: str
    timestamp: float = field(default_factory=time.time)


@dataclass
class ConversationSession:
    """Per-conversation state kept between turns."""
    key: SessionKey
    history: List[SessionMessage] = field(default_factory=list)
    linked_ticket_id: Optional[int] = None
    last_interaction: float = field(default_factory=time.time)
    awaiting_confirmation: bool = False
    pending_action: Optional[str] = None
    topic: Optional[str] = None
    trigger_message: Optional[str] = None

    def add_message(self, author: AuthorKind, text: str, timestamp: Optional[float] = None):
        self.history.append(SessionMessage(author, text, timestamp or time.time()))

    @property
    def last_message(self) -> Optional[SessionMessage]:
        return self.history[-1] if self.history else None

    @property
    def is_fresh(self) -> bool:
        return not self.history and self.linked_ticket_id is None

    def clear_pending(self):
        self.awaiting_confirmation = False
        self.pending_action = None
        self.trigger_message = None


class ConversationStateStore:
    """
    Thread-safe TTL map of conversation sessions.

    Args:
        ttl_seconds: Idle time after which a session is discarded
        clock: Returns the current time in seconds (injectable for tests)
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._sessions: Dict[SessionKey, ConversationSession] = {}

    def now(self) -> float:
        return self._clock()

    def _expired(self, session: ConversationSession, now: float) -> bool:
        return now - session.last_interaction > self.ttl_seconds

    def get(self, key: SessionKey) -> ConversationSession:
        """Return a copy of the live session, or a fresh one."""
        now = self._clock()
        with self._lock:
            session = self._sessions.get(key)
            if session is not None and self._expired(session, now):
                logger.info(f"Session expired: {key}")
                del self._sessions[key]
                session = None
            if session is None:
                return ConversationSession(key=key, last_interaction=now)
            return copy.deepcopy(session)

    def put(self, session: ConversationSession) -> None:
        """Commit a session, refreshing its last-interaction time."""
        snapshot = copy.deepcopy(session)
        snapshot.last_interaction = self._clock()
        with self._lock:
            self._sessions[snapshot.key] = snapshot

    def evict(self, key: SessionKey) -> bool:
        with self._lock:
            return self._sessions.pop(key, None) is not None

    def purge_expired(self) -> int:
        """Drop every expired session. Returns the number removed."""
        now = self._clock()
        with self._lock:
            stale = [k for k, s in self._sessions.items() if self._expired(s, now)]
            for key in stale:
                del self._sessions[key]
        if stale:
            logger.info(f"Purged {len(stale)} expired session(s)")
        return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
