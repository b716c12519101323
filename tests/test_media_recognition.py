from __future__ import annotations

import asyncio
import io
import os
import threading

from PIL import Image

from adapters.ffmpeg_frames import RecognitionError
from adapters.media_recognition import MediaRecognizer, preprocess_image
from core.channels import build_identity
from core.codes import parse_recognized_code
from core.config import OcrConfig
from core.models import InboundMessage, MediaAttachment, MediaKind

CODE_LEVEL = 200


def _write_image(path: str, level: int = 30, size=(90, 60)) -> str:
    Image.new("RGB", size, (level, level, level)).save(path, format="PNG")
    return path


class LevelRecognizer:
    """Reports a code only for images whose gray level is CODE_LEVEL."""

    def __init__(self) -> None:
        self.calls = 0
        self._lock = threading.Lock()

    def recognize(self, image_bytes: bytes):
        with self._lock:
            self.calls += 1
        with Image.open(io.BytesIO(image_bytes)) as image:
            level = image.getpixel((0, 0))
        if level == CODE_LEVEL:
            return "BONUS STAKECOMABC123", 87.5
        return "nothing", 40.0


class FakeDownloader:
    def __init__(self, level: int = CODE_LEVEL, fail: bool = False) -> None:
        self.level = level
        self.fail = fail
        self.paths: list[str] = []

    async def download(self, attachment: MediaAttachment, path: str) -> str:
        _write_image(path, self.level)
        self.paths.append(path)
        if self.fail:
            raise ConnectionError("download interrupted")
        return path


def _message(kind: MediaKind) -> InboundMessage:
    return InboundMessage(
        channel=build_identity(-1000000000123, None),
        message_id="42",
        text="",
        media=MediaAttachment(kind=kind),
    )


def test_parse_recognized_code_prefers_prefix() -> None:
    assert parse_recognized_code("xx STAKECOMabc123 yy", "stakecom") == "stakecomabc123"
    assert parse_recognized_code("code ABCDEFGHIJ12 here", "stakecom") == "abcdefghij12"
    assert parse_recognized_code("short abc", "stakecom") is None
    assert parse_recognized_code("", "stakecom") is None


def test_preprocess_crops_bottom_third_to_grayscale() -> None:
    prepared = preprocess_image(Image.new("RGB", (90, 60), (10, 20, 30)))
    assert prepared.size == (90, 20)
    assert prepared.mode == "L"


def test_photo_scan_finds_code_and_cleans_up() -> None:
    downloader = FakeDownloader()
    scanner = MediaRecognizer(LevelRecognizer(), downloader)
    message = _message(MediaKind.PHOTO)
    result = asyncio.run(scanner.scan(message, message.media))
    assert result.code == "stakecomabc123"
    assert result.confidence == 87.5
    assert result.frames_processed == 1
    assert not os.path.exists(downloader.paths[0])
    assert not os.path.exists(os.path.dirname(downloader.paths[0]))


def test_failed_download_still_cleans_up() -> None:
    downloader = FakeDownloader(fail=True)
    scanner = MediaRecognizer(LevelRecognizer(), downloader)
    message = _message(MediaKind.PHOTO)
    result = asyncio.run(scanner.scan(message, message.media))
    assert result.code is None
    assert not os.path.exists(os.path.dirname(downloader.paths[0]))


def test_search_frames_stops_at_first_positive_batch(tmp_path) -> None:
    levels = [30, 40, 50, 60, CODE_LEVEL, 70, 80]
    frames = [_write_image(str(tmp_path / f"frame-{i}.png"), level) for i, level in enumerate(levels)]
    recognizer = LevelRecognizer()
    scanner = MediaRecognizer(recognizer, FakeDownloader(), OcrConfig(batch_size=3))
    result = asyncio.run(scanner.search_frames(frames))
    assert result.code == "stakecomabc123"
    assert result.frames_processed == 5
    assert recognizer.calls == 6


def test_search_frames_without_code(tmp_path) -> None:
    frames = [_write_image(str(tmp_path / f"frame-{i}.png"), 30 + i) for i in range(4)]
    recognizer = LevelRecognizer()
    result = asyncio.run(MediaRecognizer(recognizer, FakeDownloader()).search_frames(frames))
    assert result.code is None
    assert result.frames_processed == 4
    assert recognizer.calls == 4


def test_video_scan_uses_last_frames_and_cleans_up() -> None:
    seen = {}

    async def fake_extractor(video_path: str, frame_dir: str, last_seconds: float, fps: int):
        os.makedirs(frame_dir, exist_ok=True)
        seen.update(video=video_path, frame_dir=frame_dir, last_seconds=last_seconds, fps=fps)
        return [_write_image(os.path.join(frame_dir, "frame-002.png"), CODE_LEVEL)]

    downloader = FakeDownloader(level=30)
    scanner = MediaRecognizer(LevelRecognizer(), downloader, frame_extractor=fake_extractor)
    message = _message(MediaKind.VIDEO)
    result = asyncio.run(scanner.scan(message, message.media))
    assert result.code == "stakecomabc123"
    assert seen["last_seconds"] == 2.0
    assert seen["fps"] == 5
    assert seen["video"].endswith("video_42.mp4")
    assert not os.path.exists(seen["frame_dir"])


def test_video_extraction_error_yields_empty_result() -> None:
    async def broken_extractor(video_path: str, frame_dir: str, last_seconds: float, fps: int):
        raise RecognitionError("ffmpeg exited with code 1")

    scanner = MediaRecognizer(LevelRecognizer(), FakeDownloader(), frame_extractor=broken_extractor)
    message = _message(MediaKind.VIDEO)
    result = asyncio.run(scanner.scan(message, message.media))
    assert result.code is None
    assert result.frames_processed == 0
