"""
Intent Classifier - Maps raw utterances to a closed set of intent tags.

Rules are regular expressions evaluated in priority order (calendar, then
image, then document); the first matching intent wins and anything else
is general chat. Classification never raises.
"""

import logging
import re
from enum import Enum
from typing import Iterable, List, Optional, Pattern, Tuple

logger = logging.getLogger(__name__)


class Intent(str, Enum):
    """Closed set of utterance purposes."""
    CREATE_CALENDAR_EVENT = "create_calendar_event"
    CREATE_IMAGE = "create_image"
    READ_DOCUMENT = "read_document"
    GENERAL_CHAT = "general_chat"


DATE_WORDS = (
    r"today|tonight|tomorrow|next\s+week|"
    r"monday|tuesday|wednesday|thursday|friday|saturday|sunday"
)

# Date token immediately followed by an hour, e.g. "tomorrow 3", "friday at 10:30am"
DATE_TIME_SHORTHAND = re.compile(
    rf"\b(?:{DATE_WORDS})\s+(?:at\s+)?\d{{1,2}}(?::\d{{2}})?\s*(?:am|pm)?\b",
    re.IGNORECASE,
)

# Hour with explicit marker followed by a date token, e.g. "3pm tomorrow"
TIME_DATE_SHORTHAND = re.compile(
    rf"\b\d{{1,2}}(?::\d{{2}})?\s*(?:am|pm)\s+(?:{DATE_WORDS})\b",
    re.IGNORECASE,
)

CALENDAR_PATTERNS: Tuple[Pattern[str], ...] = (
    re.compile(r"\b(?:meetings?|schedul(?:e|ed|ing)|calendar|appointments?|book(?:ing)?)\b", re.IGNORECASE),
    re.compile(r"\b(?:set\s+up|add|create)\b.*\b(?:meeting|event)s?\b", re.IGNORECASE),
    DATE_TIME_SHORTHAND,
    TIME_DATE_SHORTHAND,
)

IMAGE_PATTERNS: Tuple[Pattern[str], ...] = (
    re.compile(
        r"\b(?:create|draw|generate|make|paint|render)\b.*"
        r"\b(?:images?|pictures?|photos?|art(?:work)?|drawings?|illustrations?)\b",
        re.IGNORECASE,
    ),
)

DOCUMENT_PATTERNS: Tuple[Pattern[str], ...] = (
    re.compile(r"\b(?:drive|onedrive|documents?|pdf|files?)\b", re.IGNORECASE),
)

DEFAULT_RULES: List[Tuple[Intent, Tuple[Pattern[str], ...]]] = [
    (Intent.CREATE_CALENDAR_EVENT, CALENDAR_PATTERNS),
    (Intent.CREATE_IMAGE, IMAGE_PATTERNS),
    (Intent.READ_DOCUMENT, DOCUMENT_PATTERNS),
]


class IntentClassifier:
    """
    Ordered rule set. Earlier rules take precedence over later ones.

    The member set can be narrowed with ``enabled``; disabled intents are
    skipped and their utterances fall through to later rules or general chat.
    """

    def __init__(
        self,
        rules: Optional[List[Tuple[Intent, Tuple[Pattern[str], ...]]]] = None,
        enabled: Optional[Iterable[Intent]] = None,
    ):
        self.rules = list(rules if rules is not None else DEFAULT_RULES)
        self.enabled = set(enabled) if enabled is not None else {intent for intent, _ in self.rules}

    def classify(self, text: str) -> Intent:
        if not text:
            return Intent.GENERAL_CHAT

        for intent, patterns in self.rules:
            if intent not in self.enabled:
                continue
            if any(pattern.search(text) for pattern in patterns):
                logger.debug(f"Intent matched: {intent.value}")
                return intent

        return Intent.GENERAL_CHAT


_default_classifier = IntentClassifier()


def classify(text: str) -> Intent:
    """Classify ``text`` with the default rule set."""
    return _default_classifier.classify(text)


def is_calendar_request(text: str) -> bool:
    return classify(text) is Intent.CREATE_CALENDAR_EVENT
