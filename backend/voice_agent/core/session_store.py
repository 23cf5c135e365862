"""
Session Memory Store - Per-session conversation state held in memory.

Each session is addressed by an opaque id and owns its chat history,
selected model, booked calendar events and calendar credentials. Nothing
is shared between sessions and nothing outlives the process.

History is capacity-bounded: after every append the oldest entries are
dropped until at most ``max_history`` remain.

Concurrency: a turn (read history, generate, append the user/assistant
pair) should run under ``store.lock(session_id)``. Without the lock two
racing turns on the same session both append, and the second writer's
view of history is the one the next turn sees.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..models.calendar import CalendarEvent, OAuthTokens
from ..models.chat import ChatMessage

logger = logging.getLogger(__name__)


@dataclass
class SessionState:
    """Server-side state bucket for one conversational client."""
    session_id: str
    selected_model: str
    chat_history: List[ChatMessage] = field(default_factory=list)
    calendar_events: List[CalendarEvent] = field(default_factory=list)
    auth_tokens: Optional[OAuthTokens] = None
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)
    last_seen: float = field(default_factory=time.monotonic)


class SessionStore:
    """In-memory mapping of session id to SessionState."""

    def __init__(self, max_history: int = 20, default_model: str = ""):
        if max_history < 1:
            raise ValueError("max_history must be at least 1")
        self.max_history = max_history
        self.default_model = default_model
        self._sessions: Dict[str, SessionState] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def get(self, session_id: str) -> SessionState:
        """Return the session, creating it on first access."""
        state = self._sessions.get(session_id)
        if state is None:
            state = SessionState(session_id=session_id, selected_model=self.default_model)
            self._sessions[session_id] = state
            logger.debug(f"Session created: {session_id}")
        state.last_seen = time.monotonic()
        return state

    def lock(self, session_id: str) -> asyncio.Lock:
        return self.get(session_id).lock

    def get_history(self, session_id: str) -> List[ChatMessage]:
        """Chronological copy of the session's history."""
        return list(self.get(session_id).chat_history)

    def append(self, session_id: str, role: str, content: str) -> ChatMessage:
        """Append a message, then drop the oldest entries beyond capacity."""
        state = self.get(session_id)
        message = ChatMessage(role=role, content=content)
        state.chat_history.append(message)
        overflow = len(state.chat_history) - self.max_history
        if overflow > 0:
            del state.chat_history[:overflow]
        return message

    def append_turn(self, session_id: str, user_text: str, assistant_text: str) -> None:
        """Record one turn as exactly one user entry followed by one assistant entry."""
        self.append(session_id, "user", user_text)
        self.append(session_id, "assistant", assistant_text)

    def clear(self, session_id: str) -> None:
        """Empty history without touching model, events or credentials."""
        self.get(session_id).chat_history.clear()

    def destroy(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)

    def set_model(self, session_id: str, model: str) -> None:
        # Opaque: the provider validates model names
        self.get(session_id).selected_model = model

    def get_model(self, session_id: str) -> str:
        return self.get(session_id).selected_model or self.default_model

    def add_event(self, session_id: str, event: CalendarEvent) -> CalendarEvent:
        state = self.get(session_id)
        if any(existing.id == event.id for existing in state.calendar_events):
            raise ValueError(f"Duplicate calendar event id: {event.id}")
        state.calendar_events.append(event)
        return event

    def set_tokens(self, session_id: str, tokens: Optional[OAuthTokens]) -> None:
        self.get(session_id).auth_tokens = tokens

    def evict_idle(self, max_age_seconds: float) -> int:
        """Drop sessions not seen for ``max_age_seconds``. Returns how many were removed."""
        cutoff = time.monotonic() - max_age_seconds
        stale = [
            sid for sid, state in self._sessions.items()
            if state.last_seen < cutoff and not state.lock.locked()
        ]
        for sid in stale:
            del self._sessions[sid]
        if stale:
            logger.info(f"Evicted {len(stale)} idle sessions")
        return len(stale)


_session_store: Optional[SessionStore] = None


def init_session_store(max_history: int, default_model: str) -> SessionStore:
    global _session_store
    _session_store = SessionStore(max_history=max_history, default_model=default_model)
    return _session_store


def get_session_store() -> SessionStore:
    """
    Get the process-wide session store, creating it from settings on first use.
    """
    global _session_store
    if _session_store is None:
        from ..config import settings
        _session_store = SessionStore(
            max_history=settings.max_history_messages,
            default_model=settings.default_model,
        )
    return _session_store
