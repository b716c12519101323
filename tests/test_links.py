from __future__ import annotations

from core.config import DEFAULT_REDEEM_URL
from core.links import build_link, classify_notice, extract_code_from_url, normalize_url

DOMAINS = ("playstake.club",)


def test_normalize_url_trims_punctuation_and_adds_scheme() -> None:
    assert normalize_url("playstake.club/abc).", DOMAINS) == "https://playstake.club/abc"
    assert normalize_url("//playstake.club/abc", DOMAINS) == "https://playstake.club/abc"
    assert normalize_url(None, DOMAINS) is None


def test_normalize_url_unwraps_instant_view() -> None:
    wrapped = "https://t.me/iv?url=https%3A%2F%2Fplaystake.club%2Fabc&rhash=1"
    assert normalize_url(wrapped, DOMAINS) == "https://playstake.club/abc"


def test_extract_code_from_query_or_path() -> None:
    assert extract_code_from_url("https://playstake.club/?code=ABC123") == "ABC123"
    assert extract_code_from_url("https://playstake.club/?c=xyz789") == "xyz789"
    assert extract_code_from_url("https://playstake.club/drops/Summer2024") == "Summer2024"
    assert extract_code_from_url("https://playstake.club/monthly") is None
    assert extract_code_from_url("https://playstake.club/") is None


def test_classify_notice_prefers_specific_kinds() -> None:
    assert classify_notice("Pre-monthly bonus", "").name == "pre_monthly"
    assert classify_notice("Post monthly reload", "").name == "post_monthly"
    assert classify_notice("", "https://playstake.club/monthly?code=x1y").name == "monthly"
    assert classify_notice("Weekly", "").name == "weekly"
    assert classify_notice("hello", "https://playstake.club/?code=abc") is None


def test_build_link_quotes_code() -> None:
    link = build_link(DEFAULT_REDEEM_URL, "abc 1")
    assert "code=abc%201&" in link
