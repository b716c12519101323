"""Interactive login that materializes a reusable Telegram session.

Run once (``dropwatch session``); the resulting StringSession goes into the
STRING_SESSION environment variable so the watcher never prompts.
"""

import asyncio
import logging
import os
from getpass import getpass

import qrcode
from dotenv import load_dotenv
from telethon import TelegramClient, errors
from telethon.sessions import StringSession

BACKUP_PATH = ".session-backup"
LOGIN_METHODS = {"1": "qr", "2": "phone", "qr": "qr", "phone": "phone"}
QR_ATTEMPTS = 3
QR_TIMEOUT_SECONDS = 60

LOGGER = logging.getLogger(__name__)


def create_client() -> TelegramClient:
    load_dotenv()
    api_id = os.getenv("API_ID")
    api_hash = os.getenv("API_HASH")
    if not api_id or not api_hash:
        raise RuntimeError("Missing API_ID or API_HASH in environment")
    return TelegramClient(StringSession(os.getenv("STRING_SESSION", "")), int(api_id), api_hash)


def _print_qr(url: str) -> None:
    qr = qrcode.QRCode(border=1)
    qr.add_data(url)
    qr.make(fit=True)
    qr.print_ascii(invert=True)


def _two_factor_password() -> str:
    return os.getenv("2FA") or getpass("Two-step verification password: ")


async def _login_with_qr(client: TelegramClient) -> None:
    """Show a QR code, refreshing it when it expires unscanned."""

    qr = await client.qr_login()
    for attempt in range(1, QR_ATTEMPTS + 1):
        print(f"Scan with Telegram > Settings > Devices > Link Desktop Device ({attempt}/{QR_ATTEMPTS})")
        _print_qr(qr.url)
        try:
            await qr.wait(timeout=QR_TIMEOUT_SECONDS)
            return
        except asyncio.TimeoutError:
            await qr.recreate()
    raise RuntimeError("QR code was not scanned in time")


async def _login_with_phone(client: TelegramClient) -> None:
    phone = os.getenv("PHONE") or input("Phone number (international format): ").strip()
    await client.send_code_request(phone)
    await client.sign_in(phone=phone, code=input("Login code: ").strip())


def _choose_login_method() -> str:
    preset = LOGIN_METHODS.get((os.getenv("LOGIN_METHOD") or "").strip().lower())
    while preset is None:
        answer = input("Login with [1] QR code or [2] phone code (q to quit): ").strip().lower()
        if answer == "q":
            raise SystemExit(0)
        preset = LOGIN_METHODS.get(answer)
    return preset


async def authorize(client: TelegramClient) -> None:
    if await client.is_user_authorized():
        return

    login = _login_with_phone if _choose_login_method() == "phone" else _login_with_qr
    try:
        await login(client)
    except errors.SessionPasswordNeededError:
        await client.sign_in(password=_two_factor_password())


def mask_session(saved: str) -> str:
    if len(saved) <= 20:
        return "*" * len(saved)
    return f"{saved[:10]}...{saved[-10:]}"


def save_session_backup(saved: str, path: str = BACKUP_PATH) -> None:
    """Write the full session with owner-only permissions."""

    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as handle:
        handle.write(saved)


async def main() -> None:
    client = create_client()
    await client.connect()

    await authorize(client)

    me = await client.get_me()
    LOGGER.info("Logged in as: %s", me.first_name)

    saved = client.session.save()
    if saved != os.getenv("STRING_SESSION"):
        save_session_backup(saved)
        print(f"New session generated: STRING_SESSION={mask_session(saved)}")
        print(f"Copy the full value from {BACKUP_PATH} into STRING_SESSION in your .env")

    await client.disconnect()


if __name__ == "__main__":
    asyncio.run(main())
