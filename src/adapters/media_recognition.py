"""Media recognition adapter.

Drives the external text-recognition capability over downloaded photos and
videos. Everything downloaded or derived for one attachment lives in a
single temporary directory that is removed on every exit path.
"""

from __future__ import annotations

import asyncio
import io
import logging
import os
import tempfile
from typing import Awaitable, Callable, List, Sequence

from PIL import Image, ImageFilter, ImageOps

from adapters.ffmpeg_frames import RecognitionError, extract_last_frames
from core.codes import parse_recognized_code
from core.config import OcrConfig
from core.models import InboundMessage, MediaAttachment, MediaKind, RecognitionResult
from core.ports import MediaDownloaderPort, TextRecognizerPort

LOGGER = logging.getLogger(__name__)

FrameExtractor = Callable[[str, str, float, int], Awaitable[List[str]]]


def preprocess_image(image: Image.Image) -> Image.Image:
    """Crop the bottom third (where codes are rendered) and boost contrast."""

    width, height = image.size
    crop_height = max(1, height // 3)
    cropped = image.crop((0, height - crop_height, width, height))
    gray = ImageOps.grayscale(cropped)
    return ImageOps.autocontrast(gray).filter(ImageFilter.SHARPEN)


def _prepared_png(path: str) -> bytes:
    with Image.open(path) as image:
        prepared = preprocess_image(image)
    buffer = io.BytesIO()
    prepared.save(buffer, format="PNG")
    return buffer.getvalue()


class MediaRecognizer:
    """MediaScannerPort implementation: download, sample, recognize, clean up."""

    def __init__(
        self,
        recognizer: TextRecognizerPort,
        downloader: MediaDownloaderPort,
        config: OcrConfig = OcrConfig(),
        frame_extractor: FrameExtractor = extract_last_frames,
    ) -> None:
        self._recognizer = recognizer
        self._downloader = downloader
        self._config = config
        self._frame_extractor = frame_extractor

    async def scan(self, message: InboundMessage, attachment: MediaAttachment) -> RecognitionResult:
        """Recognize a code in a photo or video attachment; never raises."""

        try:
            with tempfile.TemporaryDirectory(prefix="dropwatch_") as workdir:
                if attachment.kind is MediaKind.PHOTO:
                    target = os.path.join(workdir, f"photo_{message.message_id}.jpg")
                    path = await self._downloader.download(attachment, target)
                    return await self.recognize_image(path)
                if attachment.kind is MediaKind.VIDEO:
                    target = os.path.join(workdir, f"video_{message.message_id}.mp4")
                    path = await self._downloader.download(attachment, target)
                    return await self.recognize_video(path, os.path.join(workdir, "frames"))
        except Exception:
            LOGGER.exception("Media recognition failed for %s", message.seen_key)
        return RecognitionResult.empty()

    async def recognize_image(self, path: str) -> RecognitionResult:
        try:
            prepared = await asyncio.to_thread(_prepared_png, path)
            text, confidence = await asyncio.to_thread(self._recognizer.recognize, prepared)
        except Exception as exc:
            LOGGER.error("Image recognition error for %s: %s", os.path.basename(path), exc)
            return RecognitionResult.empty(frames_processed=1)

        code = parse_recognized_code(text, self._config.code_prefix)
        LOGGER.debug("Recognized %r (confidence %.1f) -> %s", text[:200], confidence, code or "none")
        return RecognitionResult(code=code, text=text, confidence=confidence, frames_processed=1)

    async def recognize_video(self, path: str, frame_dir: str) -> RecognitionResult:
        try:
            frames = await self._frame_extractor(
                path,
                frame_dir,
                self._config.video_last_seconds,
                self._config.video_fps,
            )
        except RecognitionError as exc:
            LOGGER.error("Frame extraction failed: %s", exc)
            return RecognitionResult.empty()
        return await self.search_frames(frames)

    async def search_frames(self, frames: Sequence[str]) -> RecognitionResult:
        """Evaluate frames in parallel batches, stopping at the first code."""

        batch_size = max(1, self._config.batch_size)
        for start in range(0, len(frames), batch_size):
            batch = frames[start : start + batch_size]
            results = await asyncio.gather(*(self.recognize_image(frame) for frame in batch))
            for index, result in enumerate(results):
                if result.code:
                    LOGGER.debug("Code found in batch starting at frame %s", start + 1)
                    return RecognitionResult(
                        code=result.code,
                        text=result.text,
                        confidence=result.confidence,
                        frames_processed=start + index + 1,
                    )
        LOGGER.debug("No code found in %s frames", len(frames))
        return RecognitionResult.empty(frames_processed=len(frames))
