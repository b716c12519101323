"""Condition extraction and sanitization (core domain).

Conditions are ``Label: value`` lines found in announcement and caption
text. Every pair goes through the same whitelist/denylist sanitizer before
it can reach a published notice.
"""

from __future__ import annotations

import logging
import re
from typing import List, Optional

from core.models import Condition

LOGGER = logging.getLogger(__name__)

MAX_CONDITIONS = 10
MAX_LABEL_CHARS = 50
MAX_VALUE_CHARS = 200
VALUE_CAP_CHARS = 100

ALLOWED_LABELS = frozenset(
    {
        "value",
        "min bet",
        "minimum bet",
        "total drop limit",
        "drop limit",
        "type",
        "minimum rank",
        "rank",
        "wagering",
        "wager",
        "expiry",
        "currency",
        "max claims",
        "claims",
        "claim",
        "bonus",
        "reward",
        "amount",
        "prize",
        "limit",
        "duration",
        "level",
        "tier",
    }
)

_LABEL_SHAPE = re.compile(r"^[a-z\s]{3,25}$")
_INJECTION = re.compile(r"<script|javascript:|onclick|onerror|onload", re.IGNORECASE)
# Labels never span lines, otherwise a preceding sentence glues onto them.
_LINE_PAIR = re.compile(r"([A-Za-z][A-Za-z \t]*):[ \t]*([^\n]+)")
_URL_START = re.compile(r"^(?:https?:|//)", re.IGNORECASE)
_URL_SCHEME = re.compile(r"^https?$", re.IGNORECASE)
_CODE_LABEL = re.compile(r"^code$", re.IGNORECASE)


def sanitize_condition(label: str, value: str) -> Optional[Condition]:
    """Return a trimmed condition, or None when the pair must be rejected."""

    if not label or not value:
        return None
    if len(label) > MAX_LABEL_CHARS or len(value) > MAX_VALUE_CHARS:
        return None

    label_lower = label.lower().strip()
    if label_lower not in ALLOWED_LABELS and not _LABEL_SHAPE.match(label_lower):
        LOGGER.debug("Condition label rejected: %r", label)
        return None

    if _INJECTION.search(value):
        LOGGER.debug("Condition value rejected: %r", value)
        return None

    return Condition(
        label=label.strip()[:MAX_LABEL_CHARS],
        value=value.strip()[:VALUE_CAP_CHARS],
    )


def extract_conditions(text: str) -> List[Condition]:
    """Scan ``Label: value`` pairs, keeping the first ten accepted ones."""

    conditions: List[Condition] = []
    for match in _LINE_PAIR.finditer(text or ""):
        label = match.group(1).strip()
        value = match.group(2).strip()
        if not label or not value:
            continue
        # URL fragments and explicit "Code:" lines are not conditions.
        if _URL_SCHEME.match(label) or _URL_START.match(value) or _CODE_LABEL.match(label):
            continue
        condition = sanitize_condition(label, value)
        if condition is not None:
            conditions.append(condition)
        if len(conditions) >= MAX_CONDITIONS:
            break
    return conditions
