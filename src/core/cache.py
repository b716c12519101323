"""Short-lived in-process caches (core domain).

Both caches expire entries passively: every read or write first sweeps
entries older than the TTL, so no background timer is needed.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Sequence, Tuple

from core.models import Condition, InboundMessage, MediaKind

LOGGER = logging.getLogger(__name__)

Clock = Callable[[], float]


@dataclass(frozen=True)
class AnnouncementEntry:
    conditions: Tuple[Condition, ...]
    timestamp: float


class AnnouncementCache:
    """Conditions announced in a channel, waiting for the matching code."""

    def __init__(self, ttl_seconds: float = 300.0, clock: Clock = time.monotonic) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, AnnouncementEntry] = {}

    def sweep(self) -> int:
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if now - entry.timestamp > self._ttl]
        for key in expired:
            del self._entries[key]
            LOGGER.debug("Announcement cache expired for %s", key)
        return len(expired)

    def store(self, channel_key: str, conditions: Sequence[Condition]) -> None:
        """Store conditions for a channel, replacing any previous announcement."""

        self.sweep()
        self._entries[channel_key] = AnnouncementEntry(tuple(conditions), self._clock())

    def peek(self, channel_key: str) -> Optional[AnnouncementEntry]:
        self.sweep()
        return self._entries.get(channel_key)

    def take(self, channel_key: str) -> Optional[AnnouncementEntry]:
        """Return and delete the live entry for a channel, if any."""

        self.sweep()
        return self._entries.pop(channel_key, None)

    def __len__(self) -> int:
        self.sweep()
        return len(self._entries)

    def __contains__(self, channel_key: object) -> bool:
        self.sweep()
        return channel_key in self._entries


def processed_media_key(kind: MediaKind, message: InboundMessage) -> str:
    return f"{kind.value}:{message.channel.key}:{message.message_id}"


class ProcessedMediaRegistry:
    """Attachments that already went through recognition, found or not."""

    def __init__(self, ttl_seconds: float = 3600.0, clock: Clock = time.monotonic) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._marked: Dict[str, float] = {}

    def _sweep(self) -> None:
        now = self._clock()
        for key in [key for key, ts in self._marked.items() if now - ts > self._ttl]:
            del self._marked[key]

    def is_processed(self, key: str) -> bool:
        self._sweep()
        return key in self._marked

    def mark(self, key: str) -> None:
        self._sweep()
        self._marked[key] = self._clock()
