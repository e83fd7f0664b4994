import re
from datetime import datetime
from typing import Optional

import bleach


def sanitize_input(value: Optional[str]) -> str:
    """Sanitize a user-supplied string for safe display and search.

    - Strips HTML tags using bleach.clean(..., strip=True)
    - Removes obvious SQL metacharacters like '--' and ';'
    - Trims whitespace
    """
    if value is None:
        return ""
    # remove NULL bytes
    val = value.replace("\x00", "")
    # strip tags
    val = bleach.clean(val, strip=True)
    # remove common SQL comment and statement separators
    val = re.sub(r"(--|;)", "", val)
    return val.strip()


def format_rating(rating: Optional[float]) -> str:
    if rating is None:
        return "No ratings yet"
    return f"{rating:.1f} / 5"


def rounded_stars(rating: Optional[float]) -> int:
    # half-up, like the star row on the store cards
    return int((rating or 0) + 0.5)


def _parse(value) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def format_date(value) -> str:
    date = _parse(value)
    if date is None:
        return ""
    return f"{date:%b} {date.day}, {date.year}"


def format_datetime(value) -> str:
    date = _parse(value)
    if date is None:
        return ""
    return f"{format_date(date)}, {date:%I:%M %p}"
