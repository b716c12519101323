"""Tesseract text-recognition adapter.

The engine is configured once per process for short single-line codes:
a restricted alphanumeric character set and a uniform-block page
segmentation mode.
"""

from __future__ import annotations

import io
import logging
from typing import Tuple

import pytesseract
from PIL import Image

LOGGER = logging.getLogger(__name__)

CODE_CHARSET = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
PAGE_SEGMENTATION_MODE = 6


def mean_confidence(raw_confidences) -> float:
    """Average the non-negative word confidences Tesseract reports."""

    scores = []
    for conf in raw_confidences:
        try:
            score = float(conf)
        except (TypeError, ValueError):
            continue
        if score >= 0:
            scores.append(score)
    return sum(scores) / len(scores) if scores else 0.0


class TesseractRecognizer:
    """TextRecognizerPort implementation backed by pytesseract."""

    def __init__(self, language: str = "eng") -> None:
        self._language = language
        self._config = f"--psm {PAGE_SEGMENTATION_MODE} -c tessedit_char_whitelist={CODE_CHARSET}"
        LOGGER.info("Tesseract %s ready (lang=%s)", pytesseract.get_tesseract_version(), language)

    def recognize(self, image_bytes: bytes) -> Tuple[str, float]:
        """Return recognized text and the mean word confidence (0-100)."""

        with Image.open(io.BytesIO(image_bytes)) as image:
            data = pytesseract.image_to_data(
                image,
                lang=self._language,
                config=self._config,
                output_type=pytesseract.Output.DICT,
            )
        words = [str(word).strip() for word in data.get("text", []) if str(word).strip()]
        return " ".join(words), mean_confidence(data.get("conf", []))
