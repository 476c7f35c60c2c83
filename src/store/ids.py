"""Identifier and timestamp helpers."""

import random
import string
import time
from datetime import datetime, timezone

_ALPHABET = string.ascii_lowercase + string.digits


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


def _suffix(length: int) -> str:
    return "".join(random.choices(_ALPHABET, k=length))


def new_id() -> str:
    """Generate a row id: ``<epoch-ms>_<random base36>``.

    Ids sort by creation time as a side effect, and the random part makes
    collisions within one millisecond improbable.
    """
    return f"{now_ms()}_{_suffix(11)}"


def new_book_id(file_path: str) -> str:
    """Generate a book id that embeds the file path.

    Two books with the same title still get distinct ids, and the id stays
    readable when inspecting the store by hand.
    """
    return f"{now_ms()}_{_suffix(9)}_{file_path}"


def to_millis(value) -> int:
    """Coerce a stored timestamp (epoch ms, epoch seconds text, ISO text) to ms."""
    if value is None or value == "":
        return 0
    if isinstance(value, (int, float)):
        return int(value)
    text = str(value).strip()
    if text.lstrip("-").isdigit():
        return int(text)
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return 0
    if parsed.tzinfo is None:
        # SQLite CURRENT_TIMESTAMP is UTC without an offset
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp() * 1000)
