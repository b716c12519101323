"""Static configuration for dropwatch.

All user-editable settings (sources, destination, extraction, dedup,
reconnect, publish, ocr, logging) live in a single JSON file for quick edits
without touching Python. Secrets stay in the environment (.env).
"""

import json
import os

from dotenv import load_dotenv

from core.config import (
    DEFAULT_NOTICE_URL,
    DEFAULT_REDEEM_URL,
    DedupConfig,
    ExtractionConfig,
    OcrConfig,
    PublishConfig,
    ReconnectConfig,
)

load_dotenv()

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

# Where to store the SQLite dedup ledger.
DB_PATH = os.path.join(PROJECT_ROOT, "seen.db")

CONFIG_PATH = os.path.join(PROJECT_ROOT, "config.json")


def _load_json_config() -> dict:
    """Load config.json with a flat, user-friendly schema."""

    if not os.path.exists(CONFIG_PATH):
        raise FileNotFoundError(f"Config file not found: {CONFIG_PATH}")

    with open(CONFIG_PATH, "r", encoding="utf-8") as handle:
        return json.load(handle)


def _collect_sources(raw_sources: list, env_value: str) -> list[str]:
    """Merge config sources with the comma-separated TG_CHANNELS variable."""

    sources: list[str] = []
    for entry in raw_sources:
        # Entries may be plain strings or {"source": ..., "enabled": ...} objects.
        if isinstance(entry, dict):
            if not entry.get("enabled", True):
                continue
            entry = entry.get("source")
        if entry:
            sources.append(str(entry))
    sources.extend(part.strip() for part in env_value.split(",") if part.strip())
    return sources


_CONFIG = _load_json_config()

# Expose the raw config for modules that need structured access.
CONFIG = _CONFIG

# Allow-list of source channels; empty means every chat the account sees.
SOURCES = _collect_sources(_CONFIG.get("sources", []), os.getenv("TG_CHANNELS", ""))

# Destination Discord channel.
_destination = _CONFIG.get("destination", {})
DESTINATION_CHANNEL_ID = _destination.get("channel_id") or os.getenv("CHANNEL_ID")
PING_ROLE_ID = _destination.get("ping_role_id") or os.getenv("PING_ROLE_ID")
HEALTH_PING = bool(_destination.get("health_ping", False))

_extraction = _CONFIG.get("extraction", {})
EXTRACTION = ExtractionConfig(
    rank_min=_extraction.get("rank_min", "Bronze"),
    known_domains=tuple(_extraction.get("known_domains", ["playstake.club"])),
    announcement_mention=_extraction.get("announcement_mention"),
    timezone=_extraction.get("timezone", "Europe/Paris"),
    redeem_url_template=_extraction.get("redeem_url_template", DEFAULT_REDEEM_URL),
    notice_url_template=_extraction.get("notice_url_template", DEFAULT_NOTICE_URL),
    announcement_ttl_seconds=float(_extraction.get("announcement_ttl_seconds", 300)),
)

# Deduplication controls for at-most-once publishing.
# - retention_days: cleanup horizon for ledger keys (purged at startup)
# - lock_release_seconds: how long a checked key stays locked in memory
_dedup = _CONFIG.get("dedup", {})
DEDUP = DedupConfig(
    retention_days=int(_dedup.get("retention_days", 7)),
    lock_release_seconds=float(_dedup.get("lock_release_seconds", 1.0)),
)

_reconnect = _CONFIG.get("reconnect", {})
RECONNECT = ReconnectConfig(
    max_attempts=int(_reconnect.get("max_attempts", 10)),
    heartbeat_seconds=float(_reconnect.get("heartbeat_seconds", 30)),
    max_delay_seconds=float(_reconnect.get("max_delay_seconds", 300)),
)
# Transport-level options handed to Telethon itself.
CONNECTION_RETRIES = int(_reconnect.get("connection_retries", 10))
CONNECTION_TIMEOUT = int(_reconnect.get("timeout_seconds", 60))
REQUEST_RETRIES = int(_reconnect.get("request_retries", 3))

_publish = _CONFIG.get("publish", {})
PUBLISH = PublishConfig(
    max_attempts=int(_publish.get("max_attempts", 3)),
    base_delay_seconds=float(_publish.get("base_delay_seconds", 5)),
)

_ocr = _CONFIG.get("ocr", {})
OCR = OcrConfig(
    enabled=bool(_ocr.get("enabled", True)),
    video_last_seconds=float(_ocr.get("video_last_seconds", 2)),
    video_fps=int(_ocr.get("video_fps", 5)),
    batch_size=int(_ocr.get("batch_size", 3)),
    code_prefix=_ocr.get("code_prefix", "stakecom"),
    processed_ttl_seconds=float(_ocr.get("processed_ttl_seconds", 3600)),
    language=_ocr.get("language", "eng"),
)

# Logging configuration (optional). DEBUG_TELEGRAM=1 forces debug verbosity.
LOGGING = _CONFIG.get("logging", {})
DEBUG = bool(LOGGING.get("debug", False)) or os.getenv("DEBUG_TELEGRAM") == "1"
