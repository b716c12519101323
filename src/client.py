"""Telegram client factory for dropwatch.

A fresh client is built for every (re)connect so a broken transport never
leaks into the next session. Credentials come from the environment; the
session is either a StringSession (preferred, survives container rebuilds)
or a local .session file.
"""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv
from telethon import TelegramClient
from telethon.sessions import StringSession


def _session():
    string_session = os.getenv("STRING_SESSION")
    if string_session:
        return StringSession(string_session)
    return os.getenv("SESSION_NAME", "dropwatch")


def build_client(
    connection_retries: int = 10,
    timeout: int = 60,
    request_retries: int = 3,
) -> TelegramClient:
    """Create a Telethon client from environment variables.

    We read API_ID/API_HASH via python-dotenv to keep secrets out of the repo.
    """

    load_dotenv()

    api_id = os.getenv("API_ID")
    api_hash = os.getenv("API_HASH")

    # Fail fast on missing credentials to avoid an ambiguous login prompt.
    if not api_id or not api_hash:
        raise RuntimeError("Missing API_ID or API_HASH in environment")

    logging.getLogger(__name__).debug("Initializing Telegram client")

    return TelegramClient(
        _session(),
        int(api_id),
        api_hash,
        connection_retries=connection_retries,
        timeout=timeout,
        request_retries=request_retries,
    )
