"""
Canned replies used when no generation provider produced text.
"""

import re

_RULES = (
    (re.compile(r"\b(?:hello|hi|hey)\b", re.IGNORECASE),
     "Hello! How can I help you today?"),
    (re.compile(r"\byour name\b", re.IGNORECASE),
     "I am your AI voice assistant."),
    (re.compile(r"\b(?:schedul\w*|meetings?|calendar|appointments?)\b", re.IGNORECASE),
     "Sure! I understood you want to schedule something. "
     "I have prepared a calendar link you can open to confirm the details."),
    (re.compile(r"\b(?:drive|onedrive|documents?|pdf)\b", re.IGNORECASE),
     "You can upload a text or PDF document and I will read it for you."),
    (re.compile(r"\b(?:image|picture|photo|draw)\b", re.IGNORECASE),
     "I can create images from a short description. Try \"draw a picture of a lighthouse\"."),
)

DEFAULT_REPLY = (
    "Got it. I understood your request, but my language services are "
    "unavailable right now. I can still help with scheduling and images."
)


def fallback_response(text: str) -> str:
    """Deterministic, never-empty reply keyed on the user's words."""
    for pattern, reply in _RULES:
        if pattern.search(text or ""):
            return reply
    return DEFAULT_REPLY
