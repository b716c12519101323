from __future__ import annotations

from core.channels import AllowList, build_identity, normalize_chat_id, normalize_handle


def test_normalize_chat_id_strips_peer_prefixes() -> None:
    assert normalize_chat_id(-1001234567890) == "1234567890"
    assert normalize_chat_id("-4567") == "4567"
    assert normalize_chat_id("1234567890") == "1234567890"


def test_normalize_chat_id_keeps_basic_group_ids_starting_with_100() -> None:
    assert normalize_chat_id("-1005") == "1005"
    assert normalize_chat_id(-1000123) == "1000123"
    assert normalize_chat_id(-1000000000005) == "5"
    allow_list = AllowList.from_entries(["-1005"])
    assert allow_list.allows(build_identity(1005, None))


def test_normalize_chat_id_is_idempotent() -> None:
    once = normalize_chat_id("-1001234567890")
    assert normalize_chat_id(once) == once


def test_normalize_handle_variants() -> None:
    assert normalize_handle("@StakeDrops") == "stakedrops"
    assert normalize_handle("https://t.me/StakeDrops") == "stakedrops"
    assert normalize_handle("t.me/stakedrops/") == "stakedrops"
    assert normalize_handle(normalize_handle("@StakeDrops")) == "stakedrops"


def test_allow_list_matches_handle_case_insensitively() -> None:
    allow_list = AllowList.from_entries(["@StakeDrops"])
    assert allow_list.allows(build_identity(-1000000000555, "stakedrops"))
    assert allow_list.allows(build_identity(None, "STAKEDROPS"))
    assert not allow_list.allows(build_identity(-1000000000555, "otherchannel"))


def test_allow_list_matches_numeric_id_in_any_form() -> None:
    allow_list = AllowList.from_entries(["-1001234567890"])
    assert allow_list.allows(build_identity(1234567890, None))
    assert allow_list.allows(build_identity(-1001234567890, "renamed"))
    assert not allow_list.allows(build_identity(42, None))


def test_empty_allow_list_accepts_everything() -> None:
    allow_list = AllowList.from_entries(["", "  "])
    assert allow_list.is_open
    assert allow_list.allows(build_identity(42, None))
    assert allow_list.describe() == "ALL CHATS"
