"""
Duration string normalization.

Package and itinerary durations are typed by hand in the admin back-office
("6 Nights 5 Days", "5 Days 6 Nights", "6N 7D", "7", ...). Everything that
filters or sorts by duration goes through format_duration() so the whole
catalog agrees on a single "<N> Nights <M> Days" form.
"""

import re
from typing import Any, Optional

NOT_AVAILABLE = "N/A"

# (pattern, nights_first). Order matters: the first matching pattern wins.
_TWO_NUMBER_PATTERNS = [
    (re.compile(r"^(\d+)\s*Nights?\s+(\d+)\s*Days?$", re.IGNORECASE), True),
    (re.compile(r"^(\d+)\s*Days?\s+(\d+)\s*Nights?$", re.IGNORECASE), False),
    (re.compile(r"^(\d+)\s*Nights?\s*&\s*(\d+)\s*Days?$", re.IGNORECASE), True),
    (re.compile(r"^(\d+)\s*Days?\s*&\s*(\d+)\s*Nights?$", re.IGNORECASE), False),
    (re.compile(r"^(\d+)\s*N\s*(\d+)\s*D$", re.IGNORECASE), True),
    (re.compile(r"^(\d+)\s*D\s*(\d+)\s*N$", re.IGNORECASE), False),
]
_BARE_DAYS = re.compile(r"^(\d+)$")

_NIGHTS_TOKEN = re.compile(r"(\d+)\s*Nights?", re.IGNORECASE)
_DAYS_TOKEN = re.compile(r"(\d+)\s*Days?", re.IGNORECASE)


def format_duration(duration: Any, trust_labels: bool = True) -> str:
    """
    Normalize a duration to "<nights> Nights <days> Days".

    Each number keeps the label it was typed with, so "5 Days 6 Nights"
    becomes "6 Nights 5 Days". With trust_labels=False the smaller of the two
    numbers is taken as nights whatever its label, as older back-office
    entries assumed ("7 Nights 6 Days" becomes "6 Nights 7 Days").
    A bare number is a day count with nights = max(1, days - 1).
    Unrecognized text comes back trimmed; empty or non-string input comes
    back as "N/A".
    """
    if not duration or not isinstance(duration, str):
        return NOT_AVAILABLE

    clean = duration.strip()
    if not clean:
        return NOT_AVAILABLE

    for pattern, nights_first in _TWO_NUMBER_PATTERNS:
        match = pattern.match(clean)
        if match:
            first, second = int(match.group(1)), int(match.group(2))
            nights, days = (first, second) if nights_first else (second, first)
            if not trust_labels:
                nights, days = min(first, second), max(first, second)
            return f"{nights} Nights {days} Days"

    match = _BARE_DAYS.match(clean)
    if match:
        days = int(match.group(1))
        nights = max(1, days - 1)
        return f"{nights} Nights {days} Days"

    return clean


def extract_nights(duration: Any) -> str:
    """Return the canonical "<N> Nights" token, the duration filter key."""
    match = _NIGHTS_TOKEN.search(format_duration(duration))
    return f"{match.group(1)} Nights" if match else NOT_AVAILABLE


def extract_days(duration: Any) -> str:
    """Return the canonical "<N> Days" token."""
    match = _DAYS_TOKEN.search(format_duration(duration))
    return f"{match.group(1)} Days" if match else NOT_AVAILABLE


def nights_count(duration: Any) -> Optional[int]:
    """Integer form of extract_nights(), or None when there is no nights token."""
    token = extract_nights(duration)
    if token == NOT_AVAILABLE:
        return None
    return int(token.split(" ", 1)[0])
