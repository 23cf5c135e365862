"""Core module - pure conversational logic and shared infrastructure."""

from .intent import Intent, IntentClassifier, classify
from .meeting_parser import parse_meeting
from .session_store import SessionStore, SessionState, get_session_store
from .token_repair import TokenRepairer, repair_token

__all__ = [
    'Intent', 'IntentClassifier', 'classify',
    'parse_meeting',
    'SessionStore', 'SessionState', 'get_session_store',
    'TokenRepairer', 'repair_token',
]
