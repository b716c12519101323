"""FFmpeg frame sampling for video recognition.

Codes appear near the end of promo clips, so only the final seconds are
sampled. Frames are returned newest first.
"""

from __future__ import annotations

import asyncio
import logging
import os
import sys
from typing import List, Tuple

LOGGER = logging.getLogger(__name__)

FFMPEG = "ffmpeg.exe" if sys.platform == "win32" else "ffmpeg"
FFPROBE = "ffprobe.exe" if sys.platform == "win32" else "ffprobe"


class RecognitionError(RuntimeError):
    """Frame extraction or text recognition failed for one attachment."""


async def _run(command: str, *args: str) -> Tuple[str, str]:
    try:
        proc = await asyncio.create_subprocess_exec(
            command,
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        raise RecognitionError(f"{command} spawn error: {exc}") from exc
    stdout, stderr = await proc.communicate()
    if proc.returncode != 0:
        tail = stderr.decode("utf-8", errors="replace")[-500:]
        raise RecognitionError(f"{command} exited with code {proc.returncode}: {tail}")
    return stdout.decode("utf-8", errors="replace"), stderr.decode("utf-8", errors="replace")


async def probe_duration(video_path: str) -> float:
    stdout, _ = await _run(
        FFPROBE,
        "-v",
        "error",
        "-show_entries",
        "format=duration",
        "-of",
        "default=noprint_wrappers=1:nokey=1",
        video_path,
    )
    try:
        return float(stdout.strip())
    except ValueError as exc:
        raise RecognitionError(f"Could not parse video duration: {stdout.strip()!r}") from exc


async def extract_last_frames(
    video_path: str,
    frame_dir: str,
    last_seconds: float = 2.0,
    fps: int = 5,
) -> List[str]:
    """Write frames of the final ``last_seconds`` into ``frame_dir``."""

    os.makedirs(frame_dir, exist_ok=True)
    duration = await probe_duration(video_path)
    start = max(0.0, duration - last_seconds)
    LOGGER.debug("Video duration %.1fs, sampling from %.1fs at %s fps", duration, start, fps)

    await _run(
        FFMPEG,
        "-ss",
        f"{start:.3f}",
        "-i",
        video_path,
        "-t",
        str(last_seconds),
        "-vf",
        f"fps={fps}",
        "-y",
        os.path.join(frame_dir, "frame-%03d.png"),
    )

    frames = sorted(
        os.path.join(frame_dir, name) for name in os.listdir(frame_dir) if name.startswith("frame-")
    )
    frames.reverse()
    LOGGER.debug("Extracted %s frames", len(frames))
    return frames
