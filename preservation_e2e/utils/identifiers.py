"""
Identifier and timestamp helpers for naming test resources.

Names only need a small chance of colliding between concurrent runs; they are
not meant to be globally unique.
"""

import random
import string
from datetime import datetime, timezone
from typing import Optional

_ALPHABET = string.ascii_lowercase + string.digits

_DATE_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%d/%m/%Y %H:%M:%S",
    "%d/%m/%Y %H:%M",
)


def generate_unique_id(length: int = 6) -> str:
    """Random lowercase alphanumeric suffix for slugs and titles."""
    return "".join(random.choice(_ALPHABET) for _ in range(length))


def second_of_day(now: Optional[datetime] = None) -> str:
    """Seconds since local midnight, zero padded to five digits."""
    now = now or datetime.now()
    seconds = now.hour * 3600 + now.minute * 60 + now.second
    return f"{seconds:05d}"


def short_timestamp(now: Optional[datetime] = None) -> str:
    """'-DDD-SSSSS': day of year and second of day."""
    now = now or datetime.now()
    return f"-{now.timetuple().tm_yday:03d}-{second_of_day(now)}"


def ymd(now: Optional[datetime] = None) -> str:
    """ISO date (UTC) used for dated parent containers, e.g. 2024-06-30."""
    now = now or datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%d")


def parse_display_date(text: str) -> datetime:
    """Parse a date as rendered by the UI or returned by the API."""
    text = text.strip()
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    raise ValueError(f"Unrecognised date format: {text!r}")


def check_date_within_seconds(text: str, seconds: float, now: Optional[datetime] = None) -> datetime:
    """
    Assert a rendered date lies within `seconds` of now (either side).

    Naive dates are taken as local time.
    """
    parsed = parse_display_date(text)
    if parsed.tzinfo is None:
        parsed = parsed.astimezone()
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.astimezone()
    delta = abs((now - parsed).total_seconds())
    assert delta <= seconds, (
        f"Date {text!r} is {delta:.0f}s away from now, expected within {seconds}s"
    )
    return parsed
