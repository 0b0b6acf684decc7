from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass, field


FILLER_VOCABULARY = (
    "um",
    "uh",
    "like",
    "you know",
    "so",
    "actually",
    "basically",
)


def _filler_pattern(entry: str) -> re.Pattern:
    # "you know" should also match "you  know" across a line break.
    words = [re.escape(part) for part in entry.split()]
    return re.compile(r"\b" + r"\s+".join(words) + r"\b", re.IGNORECASE)


FILLER_PATTERNS = {entry: _filler_pattern(entry) for entry in FILLER_VOCABULARY}


@dataclass
class FillerWordStats:
    count: int
    percentage: float
    breakdown: dict[str, int] = field(default_factory=dict)


def count_words(text: str) -> int:
    return len((text or "").split())


def words_per_minute(transcript: str, duration_seconds: float) -> int:
    if not duration_seconds or duration_seconds <= 0:
        return 0
    return int(round(count_words(transcript) / duration_seconds * 60))


def count_filler_words(transcript: str) -> FillerWordStats:
    """Count filler words and phrases in a transcript.

    Matching is case-insensitive on word boundaries, so "likely" does not
    count as "like". The percentage is relative to whitespace-delimited
    tokens, capped at 100 when punctuation-joined fillers such as "um,um"
    outnumber the tokens, and is 0 for an empty transcript.
    """
    text = transcript or ""
    filler_counter: Counter[str] = Counter()

    for entry, pattern in FILLER_PATTERNS.items():
        matches = len(pattern.findall(text))
        if matches:
            filler_counter[entry] = matches

    filler_count = int(sum(filler_counter.values()))
    total_words = count_words(text)
    percentage = float(min(100, round(100 * filler_count / total_words))) if total_words else 0.0

    return FillerWordStats(
        count=filler_count,
        percentage=percentage,
        breakdown=dict(filler_counter.most_common()),
    )
