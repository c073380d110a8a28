"""
utils/text_utils.py

Purpose: Bounding untrusted free text before it is stored
"""

import re
from typing import Optional

from utils.constants import UNKNOWN_VALUE

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")


def sanitize_text(value: Optional[str], max_length: int, default: Optional[str] = UNKNOWN_VALUE) -> Optional[str]:
    """
    Removes control characters, collapses surrounding whitespace and truncates.

    Args:
        value: Raw header or query value
        max_length: Maximum number of characters kept
        default: Returned when nothing usable remains

    Returns:
        Sanitized string or default
    """
    if value is None:
        return default

    cleaned = _CONTROL_CHARS.sub("", str(value)).strip()
    if not cleaned:
        return default

    return cleaned[:max_length]
