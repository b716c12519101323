"""Telegram-to-core message mapping adapter.

This keeps Telethon-specific details out of the core pipeline.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Tuple

from telethon.helpers import add_surrogate, del_surrogate
from telethon.tl.custom import Message
from telethon.tl.types import (
    MessageEntitySpoiler,
    MessageEntityTextUrl,
    MessageEntityUrl,
    MessageMediaDocument,
    MessageMediaPhoto,
    PeerChannel,
    PeerChat,
    PeerUser,
)

from core.channels import build_identity
from core.models import (
    AnnotationKind,
    ChannelIdentity,
    InboundMessage,
    MediaAttachment,
    MediaKind,
    TextAnnotation,
)

LOGGER = logging.getLogger(__name__)


def _chat_id_from_peer(peer_id: Any) -> Optional[int]:
    if isinstance(peer_id, PeerChannel):
        return peer_id.channel_id
    if isinstance(peer_id, PeerChat):
        return peer_id.chat_id
    if isinstance(peer_id, PeerUser):
        return peer_id.user_id
    return None


def channel_from_message(message: Message, chat: Any = None) -> ChannelIdentity:
    """Normalize the source channel using the resolved chat when available."""

    chat = chat if chat is not None else getattr(message, "chat", None)
    username = getattr(chat, "username", None)
    handle = username if isinstance(username, str) and username else None

    chat_id = getattr(chat, "id", None)
    if chat_id is None:
        chat_id = getattr(message, "chat_id", None)
    if chat_id is None:
        # Fallback: the peer always carries the raw id
        chat_id = _chat_id_from_peer(getattr(message, "peer_id", None))
    return build_identity(chat_id, handle)


def _python_range(surrogated: str, offset: int, length: int) -> Tuple[int, int]:
    # Telegram offsets count UTF-16 code units; Python strings count code points.
    start = len(del_surrogate(surrogated[:offset]))
    covered = len(del_surrogate(surrogated[offset : offset + length]))
    return start, covered


def annotations_from_message(message: Message) -> Tuple[TextAnnotation, ...]:
    text = getattr(message, "message", None) or ""
    entities = getattr(message, "entities", None) or []
    if not entities:
        return ()

    surrogated = add_surrogate(text)
    annotations = []
    for entity in entities:
        if isinstance(entity, MessageEntitySpoiler):
            kind, url = AnnotationKind.SPOILER, None
        elif isinstance(entity, MessageEntityTextUrl):
            kind, url = AnnotationKind.TEXT_URL, entity.url
        elif isinstance(entity, MessageEntityUrl):
            kind, url = AnnotationKind.URL, None
        else:
            kind, url = AnnotationKind.OTHER, None
        offset, length = _python_range(surrogated, entity.offset, entity.length)
        if kind is AnnotationKind.URL:
            url = text[offset : offset + length]
        annotations.append(TextAnnotation(kind=kind, offset=offset, length=length, url=url))
    return tuple(annotations)


def media_from_message(message: Message) -> Optional[MediaAttachment]:
    media = getattr(message, "media", None)
    if media is None:
        return None
    if isinstance(media, MessageMediaPhoto):
        return MediaAttachment(kind=MediaKind.PHOTO, ref=media, mime_type="image/jpeg")
    if isinstance(media, MessageMediaDocument):
        document = getattr(media, "document", None)
        mime_type = getattr(document, "mime_type", None) or ""
        if mime_type.startswith("video/"):
            return MediaAttachment(kind=MediaKind.VIDEO, ref=media, mime_type=mime_type)
        return MediaAttachment(kind=MediaKind.OTHER, ref=media, mime_type=mime_type or None)
    return MediaAttachment(kind=MediaKind.OTHER, ref=media)


def build_inbound(message: Message, *, edited: bool = False, chat: Any = None) -> InboundMessage:
    """Build a core InboundMessage from a Telethon Message."""

    return InboundMessage(
        channel=channel_from_message(message, chat),
        message_id=str(message.id),
        text=getattr(message, "message", None) or "",
        annotations=annotations_from_message(message),
        media=media_from_message(message),
        edited=edited,
    )
