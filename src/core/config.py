"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

DEFAULT_REDEEM_URL = (
    "https://stake.com/settings/offers?type=drop&code={code}&currency=usdc&modal=redeemBonus"
)
DEFAULT_NOTICE_URL = "https://stake.com?bonus={code}"


@dataclass(frozen=True)
class DedupConfig:
    """Deduplication settings for the dedup ledger."""

    retention_days: int = 7
    lock_release_seconds: float = 1.0


@dataclass(frozen=True)
class ReconnectConfig:
    """Session supervision settings for the source channel."""

    max_attempts: int = 10
    heartbeat_seconds: float = 30.0
    base_delay_seconds: float = 1.0
    max_delay_seconds: float = 300.0


@dataclass(frozen=True)
class PublishConfig:
    """Bounded retry settings for the destination channel."""

    max_attempts: int = 3
    base_delay_seconds: float = 5.0


@dataclass(frozen=True)
class OcrConfig:
    """Media recognition settings (frame sampling, batching, code prefix)."""

    enabled: bool = True
    video_last_seconds: float = 2.0
    video_fps: int = 5
    batch_size: int = 3
    code_prefix: str = "stakecom"
    processed_ttl_seconds: float = 3600.0
    language: str = "eng"


@dataclass(frozen=True)
class ExtractionConfig:
    """Settings shared by the extraction strategies."""

    rank_min: str = "Bronze"
    known_domains: Tuple[str, ...] = ("playstake.club",)
    announcement_mention: Optional[str] = None
    timezone: str = "Europe/Paris"
    redeem_url_template: str = DEFAULT_REDEEM_URL
    notice_url_template: str = DEFAULT_NOTICE_URL
    announcement_ttl_seconds: float = 300.0
