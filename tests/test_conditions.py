from __future__ import annotations

from core.conditions import MAX_CONDITIONS, extract_conditions, sanitize_condition
from core.models import Condition


def test_sanitize_accepts_whitelisted_label() -> None:
    assert sanitize_condition("Value", "$100") == Condition(label="Value", value="$100")


def test_sanitize_rejects_script_injection() -> None:
    assert sanitize_condition("Value", "<script>alert(1)</script>") is None
    assert sanitize_condition("Value", "javascript:void(0)") is None


def test_sanitize_rejects_long_label() -> None:
    assert sanitize_condition("a" * 51, "x") is None


def test_sanitize_rejects_empty_parts() -> None:
    assert sanitize_condition("", "x") is None
    assert sanitize_condition("Value", "") is None


def test_sanitize_caps_value_length() -> None:
    condition = sanitize_condition("Value", "x" * 150)
    assert condition is not None
    assert len(condition.value) == 100


def test_sanitize_accepts_short_alphabetic_label_outside_whitelist() -> None:
    assert sanitize_condition("Winners", "50") == Condition(label="Winners", value="50")
    assert sanitize_condition("Label 2", "50") is None


def test_extract_conditions_reads_label_value_lines() -> None:
    text = "DROP INCOMING\nValue: $5\nMin Bet: $1\nWagering: 3x"
    assert extract_conditions(text) == [
        Condition(label="Value", value="$5"),
        Condition(label="Min Bet", value="$1"),
        Condition(label="Wagering", value="3x"),
    ]


def test_extract_conditions_skips_urls_and_code_lines() -> None:
    text = "Claim at https://playstake.club/abc\nCode: stakecomabc\nLink: //example.com\nValue: $5"
    assert extract_conditions(text) == [Condition(label="Value", value="$5")]


def test_extract_conditions_keeps_first_ten() -> None:
    text = "\n".join(f"Value: {index}" for index in range(15))
    conditions = extract_conditions(text)
    assert len(conditions) == MAX_CONDITIONS
    assert conditions[0].value == "0"
    assert conditions[-1].value == "9"
