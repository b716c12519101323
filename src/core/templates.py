"""Title/description template rendering for published notices.

Tokens:
- ``{DATE}``: weekday, day, month and year, upper-cased French
- ``{MONTH}``: month and year, upper-cased French
- ``{RANK_MIN}``: the configured minimum rank
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

DEFAULT_TIMEZONE = "Europe/Paris"

_WEEKDAYS_FR = ("lundi", "mardi", "mercredi", "jeudi", "vendredi", "samedi", "dimanche")
_MONTHS_FR = (
    "janvier",
    "février",
    "mars",
    "avril",
    "mai",
    "juin",
    "juillet",
    "août",
    "septembre",
    "octobre",
    "novembre",
    "décembre",
)


def format_date_fr(moment: datetime) -> str:
    weekday = _WEEKDAYS_FR[moment.weekday()]
    month = _MONTHS_FR[moment.month - 1]
    return f"{weekday} {moment.day:02d} {month} {moment.year}".upper()


def format_month_fr(moment: datetime) -> str:
    return f"{_MONTHS_FR[moment.month - 1]} {moment.year}".upper()


def render_template(
    template: str,
    rank_min: str,
    now: Optional[datetime] = None,
    timezone: str = DEFAULT_TIMEZONE,
) -> str:
    """Resolve date, month and rank tokens in a title or description."""

    zone = ZoneInfo(timezone)
    moment = now.astimezone(zone) if now is not None else datetime.now(zone)
    return (
        template.replace("{DATE}", format_date_fr(moment))
        .replace("{MONTH}", format_month_fr(moment))
        .replace("{RANK_MIN}", rank_min)
    )
