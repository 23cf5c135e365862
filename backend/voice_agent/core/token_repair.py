"""
Token Repair - Rebuilds word boundaries in streamed model output.

Some models emit tokens without their leading spaces, producing text like
"Reactisapopular". Two best-effort passes run on every token:

1. Boundary insertion: a space goes between the accumulated text and the
   new token when neither side has whitespace or punctuation at the seam.
2. Word splitting: a long fragment with no whitespace inside the token is
   segmented against a fixed dictionary of common English words
   ("assumingyouare" -> "assuming you are").

This is not a tokenizer. Unknown words are left as they are.
"""

import re
import string
from typing import List, Optional, Tuple

LONG_FRAGMENT_THRESHOLD = 10
MIN_UNKNOWN_RUN = 3
MIN_KNOWN_COVERAGE = 0.6

BOUNDARY_CHARS = frozenset(string.whitespace + string.punctuation)

COMMON_WORDS = frozenset("""
a about above after again against all also always am an and another any
anything are around as ask assume assuming at available back based be
because been before being below best better between both build but by
can code common could create data day did different do does doing done
down during each easy either even every example few find first for from
function get give go good great had has have having he help her here
him his how however i if important in information into is it its just
keep know language learn library like list little long look made make
many may me might more most much must my need new next no not now number
of off often on once one only or other our out over own part people
place please popular question react really right same say see set she
should show simple so some something start still such sure take tell
than thank thanks that the their them then there these they thing think
this those through time to today too try two under until up use used
user using very want was way we well were what when where which while
who why will with within without work would write year yes yet you your
""".split())

MAX_WORD_LENGTH = max(len(word) for word in COMMON_WORDS)

_LETTER_RUN = re.compile(r"[A-Za-z]+")


def _is_boundary(ch: str) -> bool:
    return ch in BOUNDARY_CHARS


def needs_separator(accumulated: str, token: str) -> bool:
    """True when a space must be inserted between ``accumulated`` and ``token``."""
    if not accumulated or not token:
        return False
    return not _is_boundary(accumulated[-1]) and not _is_boundary(token[0])


def _segment(word: str) -> Optional[List[Tuple[int, int]]]:
    """
    Segment a run of letters into dictionary words.

    Minimizes unknown characters, then the number of pieces. Returns the
    piece boundaries, or None when the run should be left untouched.
    """
    lowered = word.lower()
    n = len(lowered)
    # best[i] = (unknown_chars, pieces, segments) for lowered[:i]
    best: List[Optional[Tuple[int, int, List[Tuple[int, int, bool]]]]] = [None] * (n + 1)
    best[0] = (0, 0, [])

    for i in range(1, n + 1):
        candidates = []
        for j in range(max(0, i - MAX_WORD_LENGTH), i):
            if best[j] is not None and lowered[j:i] in COMMON_WORDS:
                unknown, pieces, segments = best[j]
                candidates.append((unknown, pieces + 1, segments + [(j, i, True)]))

        unknown, pieces, segments = best[i - 1]
        if segments and not segments[-1][2]:
            start = segments[-1][0]
            candidates.append((unknown + 1, pieces, segments[:-1] + [(start, i, False)]))
        else:
            candidates.append((unknown + 1, pieces + 1, segments + [(i - 1, i, False)]))

        best[i] = min(candidates, key=lambda c: (c[0], c[1]))

    unknown, pieces, segments = best[n]
    if pieces < 2:
        return None
    # Known words must cover strictly more than the threshold
    if (n - unknown) / n <= MIN_KNOWN_COVERAGE:
        return None
    if any(not known and end - start < MIN_UNKNOWN_RUN for start, end, known in segments):
        return None
    return [(start, end) for start, end, _ in segments]


def split_concatenated_words(fragment: str) -> str:
    """Insert spaces between common words glued together inside ``fragment``."""

    def _split(match: "re.Match[str]") -> str:
        word = match.group(0)
        segments = _segment(word)
        if segments is None:
            return word
        return " ".join(word[start:end] for start, end in segments)

    return _LETTER_RUN.sub(_split, fragment)


def normalize_newlines(fragment: str) -> str:
    """SSE frames are line-delimited; newlines inside a fragment become spaces."""
    return fragment.replace("\r\n", " ").replace("\n", " ").replace("\r", " ")


def repair_token(accumulated: str, token: str) -> str:
    """
    Produce the fragment to forward for ``token`` given what was sent so far.

    Args:
        accumulated: Text already forwarded in this reply
        token: Raw token from the provider

    Returns:
        The fragment to forward and append to the reply
    """
    prefix = " " if needs_separator(accumulated, token) else ""
    if len(prefix + token) > LONG_FRAGMENT_THRESHOLD and not any(ch.isspace() for ch in token):
        token = split_concatenated_words(token)
    return normalize_newlines(prefix + token)


class TokenRepairer:
    """Stateful repair stage for one reply stream."""

    def __init__(self):
        self.text = ""

    def feed(self, token: str) -> str:
        fragment = repair_token(self.text, token)
        self.text += fragment
        return fragment
