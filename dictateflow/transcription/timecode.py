"""Conversion between second offsets and "MM:SS" display timestamps."""

import logging
from typing import Union

logger = logging.getLogger(__name__)


def format_time(seconds: Union[int, float]) -> str:
    """Format an offset in seconds as a "MM:SS" display timestamp.

    Fractions are truncated and negative values clamp to zero. Minutes are
    not wrapped into hours, so 75 minutes renders as "75:00".
    """
    total = max(0, int(seconds))
    minutes, secs = divmod(total, 60)
    return f"{minutes:02d}:{secs:02d}"


def parse_time(timestamp: str) -> int:
    """Parse a "MM:SS" (or "H:MM:SS") timestamp into whole seconds.

    Unparseable timestamps decode to 0 so that malformed provider output
    still sorts deterministically.
    """
    if not timestamp:
        return 0

    parts = timestamp.strip().split(':')
    total = 0
    try:
        for part in parts:
            total = total * 60 + int(float(part))
    except ValueError:
        logger.warning(f"Unparseable timestamp '{timestamp}', treating as 00:00")
        return 0

    return max(0, total)


def shift_time(timestamp: str, offset_seconds: Union[int, float]) -> str:
    """Move a display timestamp forward by ``offset_seconds``."""
    return format_time(parse_time(timestamp) + offset_seconds)
