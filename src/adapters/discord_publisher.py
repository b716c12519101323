"""Discord REST publishing adapter.

Posts bonus notices into one Discord text channel through the REST API with
a bot token. The HTTP call is blocking, so it runs in a worker thread to
keep the event loop serving other messages.
"""

from __future__ import annotations

import asyncio
import json
import logging
import urllib.error
import urllib.request
from typing import Any, Optional

from adapters.discord_formatting import build_payload, build_text_payload
from core.models import BonusCandidate

LOGGER = logging.getLogger(__name__)

API_BASE = "https://discord.com/api/v10"
USER_AGENT = "DiscordBot (dropwatch, 1.0.0)"


class DestinationError(RuntimeError):
    """The destination channel rejected or could not receive a request."""


class DiscordChannelPublisher:
    """Publisher adapter that sends notices via the Discord REST API."""

    def __init__(
        self,
        bot_token: str,
        channel_id: str,
        ping_role_id: Optional[str] = None,
        timeout: float = 10.0,
    ) -> None:
        self._bot_token = bot_token
        self._channel_id = str(channel_id)
        self._ping_role_id = str(ping_role_id) if ping_role_id else None
        self._timeout = timeout

    def _endpoint(self, suffix: str = "") -> str:
        return f"{API_BASE}/channels/{self._channel_id}{suffix}"

    def _request(self, method: str, url: str, payload: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        data = json.dumps(payload).encode("utf-8") if payload is not None else None
        request = urllib.request.Request(url, data=data, method=method)
        request.add_header("Authorization", f"Bot {self._bot_token}")
        request.add_header("User-Agent", USER_AGENT)
        if data is not None:
            request.add_header("Content-Type", "application/json")
        try:
            with urllib.request.urlopen(request, timeout=self._timeout) as response:
                body = response.read().decode("utf-8") or "{}"
        except urllib.error.HTTPError as e:
            body = e.read().decode("utf-8", errors="replace")
            raise DestinationError(f"Discord API error {e.code}: {body}") from e
        except urllib.error.URLError as e:
            raise DestinationError(f"Discord API unreachable: {e.reason}") from e
        return json.loads(body)

    async def publish(self, candidate: BonusCandidate) -> None:
        """Send the formatted notice to the destination channel."""

        payload = build_payload(candidate, self._ping_role_id)
        await asyncio.to_thread(self._request, "POST", self._endpoint("/messages"), payload)

    async def send_text(self, text: str) -> None:
        await asyncio.to_thread(self._request, "POST", self._endpoint("/messages"), build_text_payload(text))

    async def verify(self) -> str:
        """Fetch the channel once and return its name; raise if unusable."""

        channel = await asyncio.to_thread(self._request, "GET", self._endpoint())
        # Types 0 (text) and 5 (announcement) accept messages.
        if channel.get("type") not in (0, 5):
            raise DestinationError(f"Discord channel {self._channel_id} is not a text channel")
        name = str(channel.get("name") or self._channel_id)
        LOGGER.info("Destination channel validated: #%s", name)
        return name
