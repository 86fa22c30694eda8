"""
Price parsing for package records.

The upstream API stores prices as numbers, but older records (and anything
echoed back from a rendered page) carry display strings such as "₹85,000/-"
or "INR85000". parse_price() reduces all of them to a non-negative int.
"""

import re
from typing import Any

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")
_STRIP_TOKENS = ("INR", "Rs.", "₹", ",", "/-")


def parse_price(value: Any) -> int:
    """Parse a price field into whole rupees. Never raises; unparsable -> 0."""
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return max(0, value)
    if isinstance(value, float):
        if value != value or value in (float("inf"), float("-inf")):
            return 0
        return max(0, int(value))
    if not isinstance(value, str):
        return 0

    cleaned = value
    for token in _STRIP_TOKENS:
        cleaned = cleaned.replace(token, "")
    match = _LEADING_INT.match(cleaned)
    if not match:
        return 0
    return max(0, int(match.group(1)))


def format_price(amount: Any) -> str:
    """Render a price the way destination pages show it: ₹85,000/-."""
    return f"₹{parse_price(amount):,}/-"
