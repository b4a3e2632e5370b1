"""Conversation history and per-session storage."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

logger = logging.getLogger("search_agent")

ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"
ROLE_LABELS = {ROLE_USER: "User", ROLE_ASSISTANT: "Assistant"}

DEFAULT_SESSION_ID = "default"


@dataclass(frozen=True)
class Turn:
    role: str
    content: str

    def __post_init__(self) -> None:
        if self.role not in ROLE_LABELS:
            raise ValueError(f"Unknown role: {self.role!r}")


class ConversationHistory:
    """Ordered log of turns; grows without limit, renders only a recent tail."""

    def __init__(self) -> None:
        self._turns: List[Turn] = []
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._turns)

    @property
    def turns(self) -> Tuple[Turn, ...]:
        with self._lock:
            return tuple(self._turns)

    def append(self, turn: Turn) -> None:
        with self._lock:
            self._turns.append(turn)

    def extend(self, *turns: Turn) -> None:
        """Append several turns so no other writer can interleave between them."""
        with self._lock:
            self._turns.extend(turns)

    def render_context(self, max_turns: int) -> str:
        if max_turns <= 0:
            return ""
        with self._lock:
            tail = self._turns[-max_turns:]
        return "\n".join(f"{ROLE_LABELS[turn.role]}: {turn.content}" for turn in tail)

    def reset(self) -> None:
        with self._lock:
            self._turns = []


class SessionStore:
    """Keeps one ConversationHistory per session id.

    Sessions idle for longer than ``ttl_seconds`` are dropped on access and by
    :meth:`cleanup_expired`. ``ttl_seconds=None`` disables expiry.
    """

    def __init__(self, ttl_seconds: Optional[float] = None):
        self._histories: Dict[str, ConversationHistory] = {}
        self._last_used: Dict[str, datetime] = {}
        self._lock = threading.RLock()
        self.ttl_seconds = ttl_seconds

    def get(self, session_id: str = DEFAULT_SESSION_ID) -> ConversationHistory:
        with self._lock:
            if self._is_expired(session_id):
                logger.debug(f"Session {session_id} expired, starting a new history")
                self._remove(session_id)
            if self.ttl_seconds is not None:
                self.cleanup_expired()
            history = self._histories.get(session_id)
            if history is None:
                history = ConversationHistory()
                self._histories[session_id] = history
            self._last_used[session_id] = datetime.now()
            return history

    def reset(self, session_id: str = DEFAULT_SESSION_ID) -> None:
        with self._lock:
            history = self._histories.get(session_id)
            if history is not None:
                history.reset()

    def drop(self, session_id: str) -> bool:
        with self._lock:
            return self._remove(session_id)

    def session_ids(self) -> List[str]:
        with self._lock:
            return sorted(self._histories)

    def cleanup_expired(self) -> int:
        """Remove idle sessions and return how many were dropped."""
        with self._lock:
            expired = [sid for sid in self._histories if self._is_expired(sid)]
            for session_id in expired:
                self._remove(session_id)
            if expired:
                logger.info(f"Cleaned up {len(expired)} expired sessions")
            return len(expired)

    def _is_expired(self, session_id: str) -> bool:
        if self.ttl_seconds is None:
            return False
        last_used = self._last_used.get(session_id)
        if last_used is None:
            return False
        return datetime.now() - last_used > timedelta(seconds=self.ttl_seconds)

    def _remove(self, session_id: str) -> bool:
        self._last_used.pop(session_id, None)
        return self._histories.pop(session_id, None) is not None
