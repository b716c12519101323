"""Helpers for working with dropwatch channel identities and the allow-list."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, Optional

from core.models import ChannelIdentity

_NUMERIC_ID = re.compile(r"^-?\d+$")
_LINK_PREFIX = re.compile(r"^(?:https?://)?(?:www\.)?t\.me/", re.IGNORECASE)
CHANNEL_ID_MARK = 10**12


def normalize_chat_id(raw_chat_id: "str | int") -> str:
    """Return the bare numeric id, dropping Telegram's peer-id prefixes.

    Channel/supergroup peer ids are ``-(10**12 + channel_id)`` and basic
    groups ``-chat_id``; both collapse to the positive id so config values
    and event ids compare equal whichever form they come in. A basic group
    such as ``-1005`` keeps its id (1005) since it is above the channel mark.
    """

    text = str(raw_chat_id).strip()
    if not _NUMERIC_ID.match(text):
        return text.lstrip("-")
    value = int(text)
    if value <= -CHANNEL_ID_MARK:
        return str(-value - CHANNEL_ID_MARK)
    return str(abs(value))


def normalize_handle(raw_handle: str) -> str:
    """Lower-case a handle and strip ``@`` and ``t.me/`` prefixes."""

    text = _LINK_PREFIX.sub("", raw_handle.strip())
    return text.lstrip("@").strip("/").lower()


def build_identity(chat_id: "str | int | None", handle: Optional[str]) -> ChannelIdentity:
    """Build a normalized identity from whatever the event exposes."""

    normalized_id = normalize_chat_id(chat_id) if chat_id is not None else ""
    normalized_handle = normalize_handle(handle) if handle else None
    return ChannelIdentity(chat_id=normalized_id, handle=normalized_handle or None)


@dataclass(frozen=True)
class AllowList:
    """Set-membership filter over handles and numeric ids.

    An empty allow-list accepts every channel.
    """

    handles: frozenset = field(default_factory=frozenset)
    ids: frozenset = field(default_factory=frozenset)

    @classmethod
    def from_entries(cls, entries: Iterable[str]) -> "AllowList":
        handles: set[str] = set()
        ids: set[str] = set()
        for entry in entries:
            raw = str(entry).strip()
            if not raw:
                continue
            if _NUMERIC_ID.match(raw):
                ids.add(normalize_chat_id(raw))
            else:
                handle = normalize_handle(raw)
                if handle:
                    handles.add(handle)
        return cls(handles=frozenset(handles), ids=frozenset(ids))

    @property
    def is_open(self) -> bool:
        return not self.handles and not self.ids

    def allows(self, identity: ChannelIdentity) -> bool:
        if self.is_open:
            return True
        if identity.handle and identity.handle in self.handles:
            return True
        return bool(identity.chat_id) and identity.chat_id in self.ids

    def describe(self) -> str:
        if self.is_open:
            return "ALL CHATS"
        return f"handles=[{', '.join(sorted(self.handles))}], ids=[{', '.join(sorted(self.ids))}]"
