import math
from datetime import datetime, timezone

from .constants import MAX_TIMESTAMP_MS


def normalize_text(s: str) -> str:
    return " ".join(s.strip().lower().split())


def normalize_skill(skill: str) -> str:
    """Lower-case a skill and collapse its whitespace, for comparisons."""
    return normalize_text(skill)


def contains_ci(haystack: str, needle: str) -> bool:
    """Case-insensitive substring test."""
    return needle.lower() in haystack.lower()


def _in_range(ms: int) -> int:
    if abs(ms) > MAX_TIMESTAMP_MS:
        raise ValueError(f"Timestamp out of range: {ms}")
    return ms


def parse_timestamp_ms(value) -> int:
    """
    Convert a store timestamp to epoch milliseconds.

    Accepts integers/floats (already milliseconds), numeric strings and
    ISO-8601 strings. Naive ISO strings are read as UTC.
    Raises ValueError for anything else, including infinite, NaN and
    out-of-range numbers.
    """
    if isinstance(value, bool):
        raise ValueError(f"Not a timestamp: {value!r}")
    if isinstance(value, float) and not math.isfinite(value):
        raise ValueError(f"Not a finite timestamp: {value!r}")
    if isinstance(value, (int, float)):
        return _in_range(int(value))
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Not a timestamp: {value!r}")
    s = value.strip()
    if s.lstrip("-").isdigit():
        return _in_range(int(s))
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    dt = datetime.fromisoformat(s)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)


def now_ms() -> int:
    return int(datetime.now(timezone.utc).timestamp() * 1000)


def split_csv(value) -> tuple[str, ...]:
    """Split a comma-separated string (or pass through a list) into clean items."""
    if value is None:
        return ()
    if isinstance(value, str):
        items = value.split(",")
    else:
        items = [str(v) for v in value]
    return tuple(i.strip() for i in items if i and i.strip())
