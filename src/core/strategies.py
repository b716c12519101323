"""Ordered extraction strategies (core domain).

Each strategy inspects one inbound message and returns an ``Outcome``:
- ``NO_MATCH``: not for this strategy, try the next one
- ``DEFERRED``: looked relevant but could not decide, try the next one
- ``HANDLED``: consumed without publishing, stop here
- ``CANDIDATE``: a bonus was extracted, stop and publish

The dispatcher runs them in ``build_strategies`` order.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional, Sequence

from core.cache import AnnouncementCache, ProcessedMediaRegistry, processed_media_key
from core.codes import is_spoiler_code, is_standalone_code
from core.conditions import extract_conditions
from core.config import ExtractionConfig
from core.links import (
    build_link,
    classify_notice,
    extract_code_from_url,
    find_notice_url,
)
from core.models import (
    AnnotationKind,
    BonusCandidate,
    Condition,
    InboundMessage,
    MediaKind,
)
from core.ports import MediaScannerPort
from core.templates import render_template

LOGGER = logging.getLogger(__name__)

ANNOUNCEMENT_PATTERN = re.compile(r"DROP\s+INCOMING", re.IGNORECASE)
COMING_SOON_PATTERNS = (
    re.compile(r"COMING\s+IN\s+FEW\s+SECONDS", re.IGNORECASE),
    re.compile(r"DROP\s+IS\s+COMING", re.IGNORECASE),
)


class OutcomeKind(str, Enum):
    NO_MATCH = "no_match"
    DEFERRED = "deferred"
    HANDLED = "handled"
    CANDIDATE = "candidate"


@dataclass(frozen=True)
class Outcome:
    kind: OutcomeKind
    candidate: Optional[BonusCandidate] = None

    @property
    def is_final(self) -> bool:
        return self.kind in (OutcomeKind.HANDLED, OutcomeKind.CANDIDATE)


NO_MATCH = Outcome(OutcomeKind.NO_MATCH)
DEFERRED = Outcome(OutcomeKind.DEFERRED)
HANDLED = Outcome(OutcomeKind.HANDLED)


def found(candidate: BonusCandidate) -> Outcome:
    return Outcome(OutcomeKind.CANDIDATE, candidate)


class Strategy:
    """Base class for the closed set of extraction strategies."""

    name = "strategy"

    def __init__(self, config: ExtractionConfig) -> None:
        self._config = config

    async def evaluate(self, message: InboundMessage) -> Outcome:
        raise NotImplementedError

    def claim(self, message: InboundMessage) -> None:
        """Called once the ledger accepted the candidate this strategy produced."""

    def _mentioned(self, text: str) -> bool:
        mention = self._config.announcement_mention
        if not mention:
            return True
        return mention.lower() in text.lower()

    def _redeem_candidate(self, code: str, conditions: Sequence[Condition]) -> BonusCandidate:
        return BonusCandidate(
            code=code,
            url=build_link(self._config.redeem_url_template, code),
            rank_min=self._config.rank_min,
            conditions=tuple(conditions),
            origin=self.name,
        )


class AnnouncementStrategy(Strategy):
    """Store the conditions of an "incoming drop" post for the code to follow."""

    name = "announcement"

    def __init__(self, config: ExtractionConfig, cache: AnnouncementCache) -> None:
        super().__init__(config)
        self._cache = cache

    async def evaluate(self, message: InboundMessage) -> Outcome:
        text = message.text
        if not ANNOUNCEMENT_PATTERN.search(text) or not self._mentioned(text):
            return NO_MATCH
        conditions = extract_conditions(text)
        if conditions:
            self._cache.store(message.channel.key, conditions)
            LOGGER.debug("Announcement in %s: stored %s conditions", message.channel.key, len(conditions))
        return HANDLED


class ComingSoonStrategy(Strategy):
    """Ignore "drop is coming" teasers that never carry a code."""

    name = "coming_soon"

    async def evaluate(self, message: InboundMessage) -> Outcome:
        text = message.text
        if not any(pattern.search(text) for pattern in COMING_SOON_PATTERNS):
            return NO_MATCH
        if not self._mentioned(text):
            return NO_MATCH
        LOGGER.debug("Coming-soon teaser ignored in %s", message.channel.key)
        return HANDLED


class StandaloneCodeStrategy(Strategy):
    """A bare code posted shortly after an announcement in the same channel."""

    name = "standalone"

    def __init__(self, config: ExtractionConfig, cache: AnnouncementCache) -> None:
        super().__init__(config)
        self._cache = cache

    async def evaluate(self, message: InboundMessage) -> Outcome:
        if not is_standalone_code(message.text):
            return NO_MATCH
        entry = self._cache.peek(message.channel.key)
        if entry is None:
            # Without a live announcement the text may still be a spoiler or media post.
            return NO_MATCH
        return found(self._redeem_candidate(message.text.strip(), entry.conditions))

    def claim(self, message: InboundMessage) -> None:
        # Consumed only for a new key, so a redelivered code never uses up the next announcement.
        self._cache.take(message.channel.key)


class UrlStrategy(Strategy):
    """Notices linking to a known bonus domain with the code in the URL."""

    name = "url"

    def __init__(
        self,
        config: ExtractionConfig,
        now: Callable[[], Optional[datetime]] = lambda: None,
    ) -> None:
        super().__init__(config)
        self._now = now

    async def evaluate(self, message: InboundMessage) -> Outcome:
        url = find_notice_url(message, self._config.known_domains)
        if not url:
            return NO_MATCH
        code = extract_code_from_url(url)
        if not code:
            LOGGER.debug("Notice URL without code: %s", url)
            return DEFERRED
        kind = classify_notice(message.text, url)
        if kind is None:
            LOGGER.debug("Notice type not recognized for %s", url)
            return DEFERRED

        rank_min = self._config.rank_min
        now = self._now()
        title = render_template(kind.title, rank_min, now, self._config.timezone)
        description = render_template(kind.description, rank_min, now, self._config.timezone)
        return found(
            BonusCandidate(
                code=code,
                url=build_link(self._config.notice_url_template, code),
                rank_min=rank_min,
                title=title,
                description=description,
                origin=f"{self.name}:{kind.name}",
            )
        )


class SpoilerStrategy(Strategy):
    """A code hidden in a spoiler range of the message text."""

    name = "spoiler"

    async def evaluate(self, message: InboundMessage) -> Outcome:
        for annotation in message.annotations:
            if annotation.kind is not AnnotationKind.SPOILER:
                continue
            covered = annotation.covered(message.text).strip()
            if is_spoiler_code(covered):
                return found(self._redeem_candidate(covered, extract_conditions(message.text)))
            LOGGER.debug("Spoiler content is not a code: %r", covered)
        return NO_MATCH


class MediaStrategy(Strategy):
    """Recognize a code rendered inside an attached photo or video."""

    name = "media"

    def __init__(
        self,
        config: ExtractionConfig,
        scanner: MediaScannerPort,
        processed: ProcessedMediaRegistry,
    ) -> None:
        super().__init__(config)
        self._scanner = scanner
        self._processed = processed

    async def evaluate(self, message: InboundMessage) -> Outcome:
        attachment = message.media
        if attachment is None or attachment.kind not in (MediaKind.PHOTO, MediaKind.VIDEO):
            return NO_MATCH

        key = processed_media_key(attachment.kind, message)
        if self._processed.is_processed(key):
            LOGGER.debug("Media already processed: %s", key)
            return NO_MATCH

        result = await self._scanner.scan(message, attachment)
        # Marked either way so retries and edits never repeat the recognition work.
        self._processed.mark(key)
        if not result.code:
            LOGGER.debug("No code found in %s (%s frames)", key, result.frames_processed)
            return NO_MATCH

        LOGGER.info(
            "Code recognized in %s (confidence %.1f%%, %s frames)",
            key,
            result.confidence,
            result.frames_processed,
        )
        return found(self._redeem_candidate(result.code, extract_conditions(message.text)))


def build_strategies(
    config: ExtractionConfig,
    cache: AnnouncementCache,
    scanner: Optional[MediaScannerPort] = None,
    processed: Optional[ProcessedMediaRegistry] = None,
) -> List[Strategy]:
    """Return the strategies in evaluation order."""

    strategies: List[Strategy] = [
        AnnouncementStrategy(config, cache),
        ComingSoonStrategy(config),
        StandaloneCodeStrategy(config, cache),
        UrlStrategy(config),
        SpoilerStrategy(config),
    ]
    if scanner is not None:
        strategies.append(MediaStrategy(config, scanner, processed or ProcessedMediaRegistry()))
    return strategies
