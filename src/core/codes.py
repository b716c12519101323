"""Bonus code patterns shared by the strategies and the media adapter."""

from __future__ import annotations

import re
from typing import Optional

SPOILER_CODE = re.compile(r"^[a-zA-Z0-9]{10,30}$")
STANDALONE_CODE = re.compile(r"^[a-zA-Z0-9]+$")
GENERIC_CODE = re.compile(r"\b[a-z0-9]{10,30}\b", re.IGNORECASE)

STANDALONE_MAX_CHARS = 50


def is_spoiler_code(text: str) -> bool:
    return bool(text) and bool(SPOILER_CODE.match(text))


def is_standalone_code(text: str) -> bool:
    """Short, single-token, purely alphanumeric text (no colon, no slash)."""

    trimmed = (text or "").strip()
    if not trimmed or len(trimmed) >= STANDALONE_MAX_CHARS:
        return False
    if ":" in trimmed or "/" in trimmed:
        return False
    return bool(STANDALONE_CODE.match(trimmed))


def prefix_pattern(prefix: str) -> re.Pattern:
    return re.compile(rf"{re.escape(prefix)}[a-z0-9]{{3,20}}", re.IGNORECASE)


def parse_recognized_code(text: str, prefix: Optional[str] = None) -> Optional[str]:
    """Pick a code out of recognized text.

    The platform prefix pattern wins; otherwise the first bounded-length
    alphanumeric token is used. Codes are returned lower-cased.
    """

    if not text:
        return None
    if prefix:
        match = prefix_pattern(prefix).search(text)
        if match:
            return match.group(0).lower()
    match = GENERIC_CODE.search(text)
    if match:
        return match.group(0).lower()
    return None
