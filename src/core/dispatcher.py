"""Core message dispatching pipeline.

This module is integration-agnostic. It only relies on ports for storage and
publishing, enabling other sources or destinations without changes here.

The dispatcher enforces a strict order:
1) Fast-exit for channels outside the allow-list
2) Run strategies in priority order until one is final
3) Dedup ledger check on the message key
4) Publish through the bounded retrier
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Iterable

from core.channels import AllowList
from core.config import PublishConfig
from core.ledger import DedupLedger
from core.models import BonusCandidate, InboundMessage
from core.ports import PublisherPort
from core.retry import retry_publish
from core.strategies import Strategy

LOGGER = logging.getLogger(__name__)

Retrier = Callable[..., Awaitable[bool]]


class Dispatcher:
    """Orchestrates strategies, deduplication and publishing."""

    def __init__(
        self,
        strategies: Iterable[Strategy],
        ledger: DedupLedger,
        publisher: PublisherPort,
        allow_list: AllowList,
        publish_config: PublishConfig = PublishConfig(),
        retrier: Retrier = retry_publish,
    ) -> None:
        self._strategies = list(strategies)
        self._ledger = ledger
        self._publisher = publisher
        self._allow_list = allow_list
        self._publish_config = publish_config
        self._retrier = retrier

    async def handle(self, message: InboundMessage) -> bool:
        """Process one inbound message; return True when a notice was published."""

        if not self._allow_list.allows(message.channel):
            return False

        for strategy in self._strategies:
            outcome = await strategy.evaluate(message)
            if not outcome.is_final:
                continue
            if outcome.candidate is None:
                LOGGER.debug("Message consumed by %s: %s", strategy.name, message.seen_key)
                return False

            # New and edited deliveries share this key, so only one of them publishes.
            if await self._ledger.already_seen(message.seen_key):
                LOGGER.info("Dedup skip for %s (%s)", message.seen_key, strategy.name)
                return False
            strategy.claim(message)
            return await self._publish(outcome.candidate, message)

        LOGGER.debug("Message ignored (no bonus detected): %s", message.seen_key)
        return False

    async def _publish(self, candidate: BonusCandidate, message: InboundMessage) -> bool:
        label = f"{candidate.origin or 'bonus'} {candidate.code}"
        published = await self._retrier(
            lambda: self._publisher.publish(candidate),
            label,
            self._publish_config,
        )
        if published:
            LOGGER.info("Bonus published from %s (%s) -> %s", message.channel.key, candidate.origin, candidate.code)
        else:
            LOGGER.error("Bonus dropped after retries for %s -> %s", message.seen_key, candidate.code)
        return published
