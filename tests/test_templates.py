from __future__ import annotations

from datetime import datetime, timezone

from core.templates import format_date_fr, format_month_fr, render_template


def test_format_date_in_french() -> None:
    assert format_date_fr(datetime(2024, 3, 4)) == "LUNDI 04 MARS 2024"


def test_format_month_in_french() -> None:
    assert format_month_fr(datetime(2024, 8, 1)) == "AOÛT 2024"


def test_render_template_uses_paris_time() -> None:
    # 23:30 UTC on Sunday is already Monday in Paris (UTC+1 in winter).
    now = datetime(2024, 1, 7, 23, 30, tzinfo=timezone.utc)
    rendered = render_template("{DATE} / {MONTH} / {RANK_MIN}", "Bronze", now)
    assert rendered == "LUNDI 08 JANVIER 2024 / JANVIER 2024 / Bronze"


def test_render_template_leaves_plain_text() -> None:
    now = datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert render_template("Bonus", "Gold", now) == "Bonus"
