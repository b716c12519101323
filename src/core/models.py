"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any integration-specific types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Tuple


class AnnotationKind(str, Enum):
    SPOILER = "spoiler"
    TEXT_URL = "text_url"
    URL = "url"
    OTHER = "other"


class MediaKind(str, Enum):
    PHOTO = "photo"
    VIDEO = "video"
    OTHER = "other"


@dataclass(frozen=True)
class ChannelIdentity:
    """Normalized source chat identity (numeric id and optional handle)."""

    chat_id: str
    handle: Optional[str] = None

    @property
    def key(self) -> str:
        # Numeric ids are stable across renames, so they key all per-channel state.
        return self.chat_id or self.handle or "x"


@dataclass(frozen=True)
class TextAnnotation:
    """A formatting range over the message text, in Python string indices."""

    kind: AnnotationKind
    offset: int
    length: int
    url: Optional[str] = None

    def covered(self, text: str) -> str:
        return text[self.offset : self.offset + self.length]


@dataclass(frozen=True)
class MediaAttachment:
    """Attached media; ``ref`` is the opaque handle the downloader understands."""

    kind: MediaKind
    ref: Any = field(default=None, compare=False, repr=False)
    mime_type: Optional[str] = None


@dataclass(frozen=True)
class InboundMessage:
    """Minimal message shape used by the core detection pipeline."""

    channel: ChannelIdentity
    message_id: str
    text: str
    annotations: Tuple[TextAnnotation, ...] = ()
    media: Optional[MediaAttachment] = None
    edited: bool = False

    @property
    def seen_key(self) -> str:
        # New and edited deliveries of one message share a key on purpose.
        return f"tg:{self.channel.key}:{self.message_id}"


@dataclass(frozen=True)
class Condition:
    """A sanitized label/value pair shown alongside a code."""

    label: str
    value: str


@dataclass(frozen=True)
class BonusCandidate:
    """A structured extraction result ready to be published."""

    code: str
    url: str
    rank_min: str
    conditions: Tuple[Condition, ...] = ()
    title: Optional[str] = None
    description: Optional[str] = None
    origin: str = ""


@dataclass(frozen=True)
class RecognitionResult:
    """Outcome of running text recognition over an image or video."""

    code: Optional[str]
    text: str = ""
    confidence: float = 0.0
    frames_processed: int = 0

    @classmethod
    def empty(cls, frames_processed: int = 0) -> "RecognitionResult":
        return cls(code=None, text="", confidence=0.0, frames_processed=frames_processed)
