"""
Meeting Request Parser - Extracts title, date and time from free text.

Heuristic grammar, not a general date parser:
- "tomorrow" is now + 1 day, "next week" is now + 7 days, otherwise today.
- The time token is ``\\d{1,2}(:\\d{2})?\\s*(am|pm)?``, normalized to 24-hour.
- A bare hour without am/pm in 1-7 is read as PM (see ``bare_hour_to_24h``).
- The title comes from "meeting/event/appointment [for] <text>" or
  "book/schedule <text>" and defaults to "Meeting".
"""

import re
from datetime import datetime, timedelta
from typing import Optional, Tuple

from ..models.calendar import MeetingRequest

DEFAULT_TITLE = "Meeting"
DEFAULT_TIME = (17, 0)

# Bare hours in this range are assumed to be afternoon/evening.
BARE_HOUR_PM_RANGE = range(1, 8)

TIME_TOKEN = re.compile(r"\b(\d{1,2})(?::(\d{2}))?\s*(am|pm)?\b", re.IGNORECASE)

RELATIVE_DAYS = (
    (re.compile(r"\btomorrow\b", re.IGNORECASE), 1),
    (re.compile(r"\bnext\s+week\b", re.IGNORECASE), 7),
)

TITLE_PATTERNS = (
    re.compile(r"\b(?:meeting|event|appointment)\s+(?:for\s+)?([^.!?\n]+)", re.IGNORECASE),
    re.compile(r"\b(?:book|schedule)\s+([^.!?\n]+)", re.IGNORECASE),
)

_DATE_PHRASE = re.compile(
    r"\b(?:(?:on|for)\s+)?(?:today|tonight|tomorrow|next\s+week)\b", re.IGNORECASE
)
_TIME_PHRASE = re.compile(
    r"\b(?:at\s+)?\d{1,2}(?::\d{2})?\s*(?:am|pm)?\b(?:\s*o'?clock)?", re.IGNORECASE
)


def bare_hour_to_24h(hour: int) -> int:
    """
    Resolve an hour written without am/pm.

    1-7 becomes PM (13-19); everything else is taken as written. "3" is
    far more often "3pm" than "3am" in scheduling talk, but "8" or "11"
    are read as morning. This is ambiguous by construction.
    """
    if hour in BARE_HOUR_PM_RANGE:
        return hour + 12
    return hour


def _to_24h(hour: int, minute: int, meridiem: Optional[str]) -> Optional[Tuple[int, int]]:
    if minute > 59:
        return None
    if meridiem:
        if hour < 1 or hour > 12:
            return None
        meridiem = meridiem.lower()
        if meridiem == "pm" and hour != 12:
            hour += 12
        elif meridiem == "am" and hour == 12:
            hour = 0
    else:
        if hour > 23:
            return None
        hour = bare_hour_to_24h(hour)
    return hour, minute


def resolve_date(text: str, now: datetime) -> datetime:
    for pattern, days in RELATIVE_DAYS:
        if pattern.search(text):
            return now + timedelta(days=days)
    return now


def extract_time(text: str) -> Optional[Tuple[int, int]]:
    """
    Return (hour, minute) in 24-hour form, or None when no time is present.

    Tokens carrying am/pm or minutes are preferred over bare numbers, so
    "book 2 rooms at 3pm" resolves to 15:00.
    """
    candidates = []
    for match in TIME_TOKEN.finditer(text):
        hour_str, minute_str, meridiem = match.groups()
        resolved = _to_24h(int(hour_str), int(minute_str or 0), meridiem)
        if resolved is None:
            continue
        explicit = bool(meridiem or minute_str)
        candidates.append((not explicit, match.start(), resolved))

    if not candidates:
        return None
    candidates.sort(key=lambda c: (c[0], c[1]))
    return candidates[0][2]


def _clean_title(raw: str) -> str:
    cleaned = _DATE_PHRASE.sub(" ", raw)
    cleaned = _TIME_PHRASE.sub(" ", cleaned)
    cleaned = re.sub(r"\s+", " ", cleaned)
    return cleaned.strip(" ,;:-")


def extract_title(text: str) -> str:
    for pattern in TITLE_PATTERNS:
        for match in pattern.finditer(text):
            title = _clean_title(match.group(1))
            if title:
                return title
    return DEFAULT_TITLE


def parse_meeting(text: str, now: Optional[datetime] = None) -> MeetingRequest:
    """
    Parse a scheduling utterance into a MeetingRequest.

    Args:
        text: Free text such as "book a meeting tomorrow at 3pm"
        now: Reference time; defaults to the current local time

    Returns:
        MeetingRequest with ISO date and zero-padded HH:MM time
    """
    now = now or datetime.now()
    text = text or ""

    day = resolve_date(text, now)
    hour, minute = extract_time(text) or DEFAULT_TIME

    return MeetingRequest(
        title=extract_title(text),
        date=day.date().isoformat(),
        time=f"{hour:02d}:{minute:02d}",
        notes=text.strip(),
    )
