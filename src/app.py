"""Application entry point for the dropwatch relay."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
import sys
from logging.handlers import RotatingFileHandler
from typing import Any, Optional

from art import tprint
from dotenv import load_dotenv

import settings
from adapters.discord_publisher import DestinationError, DiscordChannelPublisher
from adapters.media_recognition import MediaRecognizer
from adapters.sqlite_storage import SQLiteStorage
from adapters.telegram_supervisor import (
    ConnectionSupervisor,
    ReconnectExhaustedError,
    SessionNotAuthorizedError,
)
from adapters.tesseract_ocr import TesseractRecognizer
from client import build_client
from get_session import main as session_main
from core.cache import AnnouncementCache, ProcessedMediaRegistry
from core.channels import AllowList
from core.dispatcher import Dispatcher
from core.ledger import DedupLedger
from core.strategies import build_strategies

NAME = "DROPWATCH"
FONT = "tarty-1"

LOGGER = logging.getLogger(__name__)


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = [secret for secret in secrets if secret]

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _collect_redaction_values(config: dict) -> list[str]:
    redact_cfg = config.get("redact", {}) if config else {}
    if not redact_cfg.get("enabled", False):
        return []
    values = [os.getenv(name) for name in redact_cfg.get("patterns", [])]
    return sorted({value for value in values if value}, key=len, reverse=True)


def _configure_logging() -> None:
    config = settings.LOGGING or {}
    if not config.get("enabled", True):
        return

    load_dotenv()
    level_name = "DEBUG" if settings.DEBUG else str(config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    formatter = _RedactingFormatter(
        _collect_redaction_values(config), fmt=fmt, datefmt="%Y-%m-%d %H:%M:%S"
    )

    handlers: list[logging.Handler] = []
    if config.get("console", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/dropwatch.log")
        if not os.path.isabs(path):
            path = os.path.join(settings.PROJECT_ROOT, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        file_handler = RotatingFileHandler(
            path,
            maxBytes=int(file_cfg.get("max_bytes", 5 * 1024 * 1024)),
            backupCount=int(file_cfg.get("backup_count", 5)),
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers)
    # Telethon is chatty at DEBUG; only follow it when explicitly asked to.
    if not settings.DEBUG:
        logging.getLogger("telethon").setLevel(logging.WARNING)


def _new_client():
    return build_client(
        connection_retries=settings.CONNECTION_RETRIES,
        timeout=settings.CONNECTION_TIMEOUT,
        request_retries=settings.REQUEST_RETRIES,
    )


async def _start_destination() -> DiscordChannelPublisher:
    token = os.getenv("DISCORD_TOKEN")
    if not token:
        raise RuntimeError("DISCORD_TOKEN is required in the environment")
    if not settings.DESTINATION_CHANNEL_ID:
        raise RuntimeError("destination.channel_id is required in config.json")

    publisher = DiscordChannelPublisher(
        bot_token=token,
        channel_id=str(settings.DESTINATION_CHANNEL_ID),
        ping_role_id=settings.PING_ROLE_ID,
    )
    await publisher.verify()
    if settings.HEALTH_PING:
        try:
            await publisher.send_text(f"{NAME.lower()} is online")
        except DestinationError as exc:
            LOGGER.warning("Health ping failed: %s", exc)
    return publisher


def schedule_stop(loop: asyncio.AbstractEventLoop, stop, pending: set) -> asyncio.Task:
    """Run the async shutdown from a signal handler, keeping the task referenced."""

    task = loop.create_task(stop())
    pending.add(task)
    task.add_done_callback(pending.discard)
    return task


async def _run_async() -> int:
    storage = SQLiteStorage(settings.DB_PATH)
    storage.init_db()
    ledger = DedupLedger(storage, settings.DEDUP)
    ledger.purge_expired()

    try:
        publisher = await _start_destination()
    except DestinationError as exc:
        LOGGER.critical("Destination channel unusable: %s (check DISCORD_TOKEN and channel_id)", exc)
        return 1

    allow_list = AllowList.from_entries(settings.SOURCES)
    LOGGER.info("Watching %s", allow_list.describe())

    cache = AnnouncementCache(settings.EXTRACTION.announcement_ttl_seconds)

    async def on_message(message) -> None:
        await dispatcher.handle(message)

    supervisor = ConnectionSupervisor(
        client_factory=_new_client,
        on_message=on_message,
        config=settings.RECONNECT,
    )
    # The supervisor owns the session; the media adapter downloads through it.
    scanner = None
    processed = None
    if settings.OCR.enabled:
        processed = ProcessedMediaRegistry(settings.OCR.processed_ttl_seconds)
        scanner = MediaRecognizer(
            recognizer=TesseractRecognizer(settings.OCR.language),
            downloader=supervisor,
            config=settings.OCR,
        )

    strategies = build_strategies(settings.EXTRACTION, cache, scanner, processed)
    dispatcher = Dispatcher(
        strategies=strategies,
        ledger=ledger,
        publisher=publisher,
        allow_list=allow_list,
        publish_config=settings.PUBLISH,
    )
    LOGGER.info("%s strategies are loaded", len(strategies))

    loop = asyncio.get_running_loop()
    stopping: set[asyncio.Task] = set()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, schedule_stop, loop, supervisor.stop, stopping)
        except NotImplementedError:
            # Windows event loops have no signal handler support.
            pass

    try:
        await supervisor.start()
        LOGGER.info("Listening for incoming messages...")
        await supervisor.run()
    except SessionNotAuthorizedError as exc:
        LOGGER.critical("%s", exc)
        return 1
    except ReconnectExhaustedError as exc:
        LOGGER.critical("%s. Check network access and restart the service.", exc)
        await supervisor.stop()
        return 1
    LOGGER.info("Stopped")
    return 0


def _run() -> None:
    _print_banner()
    _configure_logging()
    LOGGER.info("Starting dropwatch")
    sys.exit(asyncio.run(_run_async()))


def _session() -> None:
    _print_banner()
    _configure_logging()
    asyncio.run(session_main())


def _dialog_type(dialog: Any) -> str:
    if getattr(dialog, "is_channel", False):
        entity = getattr(dialog, "entity", None)
        if getattr(entity, "megagroup", False):
            return "group"
        return "channel"
    if getattr(dialog, "is_group", False):
        return "group"
    return "chat"


def _dialog_title(dialog: Any) -> str:
    entity = getattr(dialog, "entity", None)
    title = getattr(entity, "title", None) or getattr(dialog, "name", None)
    if title:
        return str(title)
    entity_id = getattr(entity, "id", None)
    return str(entity_id or "unknown")


def source_entry_from_dialog(dialog: Any) -> str:
    """Return the value to paste into the ``sources`` list of config.json."""

    entity = getattr(dialog, "entity", None)
    username = getattr(entity, "username", None)
    if username:
        return f"@{str(username).lower()}"
    return str(getattr(entity, "id", None) or getattr(dialog, "id", ""))


async def _list_dialogs(client) -> None:
    allow_list = AllowList.from_entries(settings.SOURCES)
    count = 0
    async for dialog in client.iter_dialogs():
        # Only channels and groups can be sources.
        if getattr(dialog, "is_user", False):
            continue
        count += 1
        entry = source_entry_from_dialog(dialog)
        marker = "*" if not allow_list.is_open and entry in _watched_entries(allow_list) else " "
        print(f"{marker} {count}. {_dialog_type(dialog)} | {_dialog_title(dialog)} | {entry}")

    if not count:
        print("No channels or groups found for this account.")


def _watched_entries(allow_list: AllowList) -> set[str]:
    return {f"@{handle}" for handle in allow_list.handles} | set(allow_list.ids)


def _discover() -> None:
    _print_banner()
    client = _new_client()

    async def _run_discover() -> None:
        await client.connect()
        try:
            if not await client.is_user_authorized():
                raise SessionNotAuthorizedError(
                    "Telegram session is not authorized; run `dropwatch session` first"
                )
            await _list_dialogs(client)
        finally:
            await client.disconnect()

    try:
        asyncio.run(_run_discover())
    except SessionNotAuthorizedError as exc:
        print(exc)
        sys.exit(1)


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="dropwatch")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Start the relay")
    subparsers.add_parser("session", help="Log in and generate a STRING_SESSION")
    subparsers.add_parser(
        "discover",
        help="List channels and groups with the entry to paste into config.json",
    )

    args = parser.parse_args(argv)
    if args.command == "session":
        _session()
        return
    if args.command == "discover":
        _discover()
        return
    _run()


if __name__ == "__main__":
    main()
