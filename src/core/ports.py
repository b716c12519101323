"""Ports (interfaces) used by the core pipeline.

Ports define the minimal contracts for storage, publishing and media
adapters so that the core can be reused with different backends.
"""

from __future__ import annotations

from typing import Protocol, Tuple

from core.models import BonusCandidate, InboundMessage, MediaAttachment, RecognitionResult


class DedupStorePort(Protocol):
    """Durable key/timestamp table behind the dedup ledger."""

    def is_seen(self, key: str) -> bool:
        ...

    def try_mark_seen(self, key: str) -> bool:
        """Insert the key; return False when it already exists."""
        ...

    def cleanup_seen(self, retention_days: int) -> int:
        ...


class PublisherPort(Protocol):
    """Destination channel operations required by the dispatcher."""

    async def publish(self, candidate: BonusCandidate) -> None:
        ...


class MediaDownloaderPort(Protocol):
    """Download an attachment by reference into a local file."""

    async def download(self, attachment: MediaAttachment, path: str) -> str:
        ...


class TextRecognizerPort(Protocol):
    """External OCR capability: image bytes in, text and confidence out."""

    def recognize(self, image_bytes: bytes) -> Tuple[str, float]:
        ...


class MediaScannerPort(Protocol):
    """Run recognition over a message attachment."""

    async def scan(self, message: InboundMessage, attachment: MediaAttachment) -> RecognitionResult:
        ...
