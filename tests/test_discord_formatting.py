from __future__ import annotations

from datetime import datetime, timezone

from adapters.discord_formatting import build_payload, build_text_payload, escape_markdown
from core.models import BonusCandidate, Condition

NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _candidate(**overrides) -> BonusCandidate:
    values = dict(
        code="stakecom_abc",
        url="https://stake.com/settings/offers?type=drop&code=stakecom_abc",
        rank_min="Bronze",
        conditions=(Condition(label="Value", value="$5"),),
        origin="spoiler",
    )
    values.update(overrides)
    return BonusCandidate(**values)


def test_escape_markdown() -> None:
    assert escape_markdown("a_b*c|d") == "a\\_b\\*c\\|d"


def test_payload_hides_code_and_lists_conditions() -> None:
    payload = build_payload(_candidate(), now=NOW)
    embed = payload["embeds"][0]
    assert payload["content"] == "||stakecom\\_abc||"
    assert payload["allowed_mentions"] == {"parse": []}
    assert embed["url"] == _candidate().url
    assert embed["timestamp"] == NOW.isoformat()
    names = [field["name"] for field in embed["fields"]]
    assert names == ["Value", "Rang minimum", "Code"]
    assert embed["fields"][-1]["value"] == "||`stakecom_abc`||"
    button = payload["components"][0]["components"][0]
    assert button["url"] == _candidate().url


def test_payload_pings_role() -> None:
    payload = build_payload(_candidate(), ping_role_id="42", now=NOW)
    assert payload["content"].startswith("<@&42> ")
    assert payload["allowed_mentions"] == {"roles": ["42"]}


def test_templated_notice_keeps_its_own_text() -> None:
    candidate = _candidate(title="BONUS WEEKLY - LUNDI 01 JANVIER 2024", description="Bonus du jour", conditions=())
    embed = build_payload(candidate, now=NOW)["embeds"][0]
    assert embed["title"] == "BONUS WEEKLY - LUNDI 01 JANVIER 2024"
    assert embed["description"] == "Bonus du jour"
    assert [field["name"] for field in embed["fields"]] == ["Code"]


def test_text_payload() -> None:
    assert build_text_payload("online") == {"content": "online", "allowed_mentions": {"parse": []}}
