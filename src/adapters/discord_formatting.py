"""Discord notice formatting helpers.

Keeping formatting here prevents drift between the publish path and the
health ping, and keeps every notice consistent.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from core.models import BonusCandidate

EMBED_COLOR = 0x1475E1
MAX_FIELDS = 25

_DEFAULT_TITLE = "NOUVEAU CODE BONUS"
_DEFAULT_DESCRIPTION = "Un nouveau code bonus vient d'être publié."


def escape_markdown(value: str) -> str:
    """Escape the characters Discord markdown would interpret."""

    for ch in "\\*_`~|>":
        value = value.replace(ch, f"\\{ch}")
    return value


def _role_ping(ping_role_id: Optional[str]) -> str:
    return f"<@&{ping_role_id}>" if ping_role_id else ""


def build_payload(
    candidate: BonusCandidate,
    ping_role_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> dict[str, Any]:
    """Return the JSON body for POST /channels/{id}/messages."""

    moment = now or datetime.now(timezone.utc)
    code = escape_markdown(candidate.code)

    fields: list[dict[str, Any]] = []
    # Notices rendered from a template carry their own text, so no conditions block.
    if candidate.title is None:
        for condition in candidate.conditions:
            fields.append(
                {
                    "name": escape_markdown(condition.label),
                    "value": escape_markdown(condition.value),
                    "inline": True,
                }
            )
        fields.append({"name": "Rang minimum", "value": escape_markdown(candidate.rank_min), "inline": True})
    fields.append({"name": "Code", "value": f"||`{candidate.code}`||", "inline": False})

    embed = {
        "title": candidate.title or _DEFAULT_TITLE,
        "description": candidate.description or _DEFAULT_DESCRIPTION,
        "url": candidate.url,
        "color": EMBED_COLOR,
        "fields": fields[:MAX_FIELDS],
        "timestamp": moment.isoformat(),
    }

    content_parts = [part for part in (_role_ping(ping_role_id), f"||{code}||") if part]
    payload: dict[str, Any] = {
        "content": " ".join(content_parts),
        "embeds": [embed],
        "components": [
            {
                "type": 1,
                "components": [{"type": 2, "style": 5, "label": "Récupérer le bonus", "url": candidate.url}],
            }
        ],
    }
    if ping_role_id:
        payload["allowed_mentions"] = {"roles": [str(ping_role_id)]}
    else:
        payload["allowed_mentions"] = {"parse": []}
    return payload


def build_text_payload(text: str) -> dict[str, Any]:
    return {"content": text, "allowed_mentions": {"parse": []}}
