"""Telegram session supervision adapter.

Owns the Telethon client for the whole process: initial connect, keep-alive
heartbeat, bounded exponential-backoff reconnection and (re)installation of
the message handlers. State transitions:

    DISCONNECTED -> CONNECTING -> CONNECTED -> RECONNECTING -> CONNECTING
                                           \\-> FAILED (manual restart)
"""

from __future__ import annotations

import asyncio
import logging
import random
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from telethon import TelegramClient, events

from adapters.telegram_mapper import build_inbound
from core.config import ReconnectConfig
from core.models import InboundMessage, MediaAttachment

LOGGER = logging.getLogger(__name__)

MessageCallback = Callable[[InboundMessage], Awaitable[Any]]
ClientFactory = Callable[[], TelegramClient]
Sleep = Callable[[float], Awaitable[None]]


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    FAILED = "failed"
    STOPPED = "stopped"


class SessionNotAuthorizedError(RuntimeError):
    """No usable session: missing credentials or a login is required."""


class ReconnectExhaustedError(RuntimeError):
    """Reconnection gave up after the maximum number of attempts."""


def backoff_delay(
    attempt: int,
    config: ReconnectConfig = ReconnectConfig(),
    jitter: Callable[[], float] = random.random,
) -> float:
    """Seconds to wait before reconnect ``attempt`` (1-based)."""

    base = min((2 ** attempt) * config.base_delay_seconds, config.max_delay_seconds)
    return base + jitter()


class ConnectionSupervisor:
    """Keeps one live Telethon session and feeds its events to a callback."""

    def __init__(
        self,
        client_factory: ClientFactory,
        on_message: MessageCallback,
        config: ReconnectConfig = ReconnectConfig(),
        sleep: Sleep = asyncio.sleep,
        jitter: Callable[[], float] = random.random,
    ) -> None:
        self._client_factory = client_factory
        self._on_message = on_message
        self._config = config
        self._sleep = sleep
        self._jitter = jitter

        self.client: Optional[TelegramClient] = None
        self.state = ConnectionState.DISCONNECTED
        self.attempts = 0
        self.last_error: Optional[BaseException] = None
        self._reconnecting = False
        self._heartbeat_task: Optional[asyncio.Task] = None
        self._reconnect_task: Optional[asyncio.Task] = None
        self._done: Optional[asyncio.Future] = None

    # ------------------------------------------------------------------ lifecycle

    async def start(self) -> None:
        """Connect once, falling back to the reconnect loop on failure."""

        self._done = asyncio.get_running_loop().create_future()
        if await self.connect():
            return
        if isinstance(self.last_error, SessionNotAuthorizedError):
            raise self.last_error
        LOGGER.error("Initial connection failed, entering reconnect loop")
        await self.reconnect()

    async def run(self) -> None:
        """Wait until ``stop()`` is called; raise if reconnection is exhausted."""

        if self._done is None:
            raise RuntimeError("ConnectionSupervisor.start() must be awaited first")
        await self._done

    async def stop(self) -> None:
        """Cooperative shutdown: cancel timers and close the session."""

        LOGGER.info("Stopping Telegram session")
        self._stop_heartbeat()
        if self._reconnect_task is not None and not self._reconnect_task.done():
            self._reconnect_task.cancel()
        await self._disconnect_quietly()
        self.state = ConnectionState.STOPPED
        if self._done is not None and not self._done.done():
            self._done.set_result(None)

    # ------------------------------------------------------------------ connect

    async def connect(self) -> bool:
        """Establish a session; never raises, the outcome is the return value."""

        self.state = ConnectionState.CONNECTING
        LOGGER.info("Connecting to Telegram...")
        client = None
        try:
            try:
                client = self._client_factory()
            except Exception as exc:
                # Missing or malformed credentials never heal by retrying.
                raise SessionNotAuthorizedError(
                    f"Cannot create Telegram client ({exc}); set API_ID and API_HASH in .env"
                ) from exc
            await client.connect()
            if not await client.is_user_authorized():
                raise SessionNotAuthorizedError(
                    "Telegram session is not authorized; run `dropwatch session` to create one"
                )
        except Exception as exc:
            self.last_error = exc
            self.state = ConnectionState.DISCONNECTED
            if isinstance(exc, SessionNotAuthorizedError):
                LOGGER.critical("%s", exc)
            else:
                LOGGER.error("Telegram connection error: %s", exc)
            if client is not None:
                await self._disconnect_quietly(client)
            return False

        self.client = client
        self.last_error = None
        self.attempts = 0
        self.state = ConnectionState.CONNECTED
        self._install_handlers(client)
        self._start_heartbeat()
        LOGGER.info("Connected to Telegram")
        return True

    async def reconnect(self) -> bool:
        """Iterative backoff loop; a concurrent call while one runs is a no-op."""

        if self._reconnecting:
            LOGGER.info("Reconnection already in progress")
            return False

        self._reconnecting = True
        self.state = ConnectionState.RECONNECTING
        try:
            while self.attempts < self._config.max_attempts:
                self.attempts += 1
                delay = backoff_delay(self.attempts, self._config, self._jitter)
                LOGGER.warning(
                    "Reconnect attempt %s/%s in %.1fs",
                    self.attempts,
                    self._config.max_attempts,
                    delay,
                )
                await self._sleep(delay)

                self._stop_heartbeat()
                await self._disconnect_quietly()
                if await self.connect():
                    return True
                if isinstance(self.last_error, SessionNotAuthorizedError):
                    break

            self.state = ConnectionState.FAILED
            error = ReconnectExhaustedError(
                f"Telegram reconnection failed after {self.attempts} attempts; manual restart required"
            )
            LOGGER.critical("%s", error)
            if self._done is not None and not self._done.done():
                self._done.set_exception(error)
            return False
        finally:
            self._reconnecting = False

    def trigger_reconnect(self) -> None:
        """Start the reconnect loop in its own task unless one is running."""

        if self._reconnecting or (self._reconnect_task is not None and not self._reconnect_task.done()):
            LOGGER.debug("Reconnect trigger ignored, already reconnecting")
            return
        self._reconnect_task = asyncio.create_task(self.reconnect())

    # ------------------------------------------------------------------ heartbeat

    def _start_heartbeat(self) -> None:
        self._stop_heartbeat()
        self._heartbeat_task = asyncio.create_task(self._heartbeat_loop())
        LOGGER.debug("Heartbeat started (every %ss)", self._config.heartbeat_seconds)

    def _stop_heartbeat(self) -> None:
        if self._heartbeat_task is not None:
            self._heartbeat_task.cancel()
            self._heartbeat_task = None

    async def _heartbeat_loop(self) -> None:
        while True:
            await asyncio.sleep(self._config.heartbeat_seconds)
            await self.heartbeat()

    async def heartbeat(self) -> None:
        """One liveness probe.

        A failed probe is only logged; reconnection is triggered solely when
        the client reports itself disconnected.
        """

        client = self.client
        if client is not None and client.is_connected():
            try:
                await client.get_me()
            except Exception as exc:
                LOGGER.warning("Heartbeat error: %s", exc)
                return
            LOGGER.debug("Heartbeat OK")
            return

        LOGGER.warning("Connection lost, detected by heartbeat")
        self.trigger_reconnect()

    # ------------------------------------------------------------------ events

    def _install_handlers(self, client: TelegramClient) -> None:
        # Remove first so reconnects never stack duplicate handlers.
        client.remove_event_handler(self._handle_new)
        client.remove_event_handler(self._handle_edit)
        client.add_event_handler(self._handle_new, events.NewMessage())
        client.add_event_handler(self._handle_edit, events.MessageEdited())
        LOGGER.info("Message handlers registered (new + edited)")

    async def _handle_new(self, event) -> None:
        await self._dispatch(event, edited=False)

    async def _handle_edit(self, event) -> None:
        await self._dispatch(event, edited=True)

    async def _dispatch(self, event, edited: bool) -> None:
        # Handler errors never trigger a reconnect.
        try:
            message = getattr(event, "message", None)
            if message is None:
                return
            chat = None
            try:
                chat = await event.get_chat()
            except Exception as exc:
                LOGGER.debug("Could not resolve chat for event: %s", exc)
            inbound = build_inbound(message, edited=edited, chat=chat)
            LOGGER.info(
                "%s in %s -> msgId=%s",
                "EDIT" if edited else "NEW",
                inbound.channel.handle or inbound.channel.chat_id,
                inbound.message_id,
            )
            await self._on_message(inbound)
        except Exception:
            LOGGER.exception("Error while processing message")

    # ------------------------------------------------------------------ helpers

    async def download(self, attachment: MediaAttachment, path: str) -> str:
        """Download attachment media through the current session."""

        if self.client is None:
            raise RuntimeError("No Telegram session available for media download")
        result = await self.client.download_media(attachment.ref, file=path)
        return str(result or path)

    async def _disconnect_quietly(self, client: Optional[TelegramClient] = None) -> None:
        client = client or self.client
        if client is None:
            return
        try:
            await client.disconnect()
        except Exception as exc:
            LOGGER.debug("Ignoring disconnect error: %s", exc)
