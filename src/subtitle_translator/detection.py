"""Source language detection for SRT documents."""

from __future__ import annotations

import re
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from langdetect import DetectorFactory, detect_langs
from langdetect.lang_detect_exception import LangDetectException

logger = logging.getLogger(__name__)

# Deterministic results for the same input
DetectorFactory.seed = 0

ID_LINE = re.compile(r'^\d+$', re.MULTILINE)
TIME_CODE_LINE = re.compile(
    r'^\d{2}:\d{2}:\d{2},\d{3}\s-->\s\d{2}:\d{2}:\d{2},\d{3}$', re.MULTILINE
)
LINE_BREAKS = re.compile(r'[\r\n]+')

# Enough text for a stable guess; longer documents are truncated
SAMPLE_CHARS = 5000


@dataclass
class LanguageDetection:
    """Detected language, or the reason none was found."""

    success: bool
    language: Optional[str] = None
    confidence: float = 0.0
    message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "language": self.language,
            "confidence": self.confidence,
            "message": self.message,
        }


def extract_text(content: str) -> str:
    """Subtitle text with ids, time codes and line breaks removed."""
    normalized = content.replace('\r\n', '\n').replace('\r', '\n')
    text = TIME_CODE_LINE.sub("", ID_LINE.sub("", normalized))
    return LINE_BREAKS.sub(" ", text).strip()


def detect_language(content: Optional[str]) -> LanguageDetection:
    """
    Guess the language of an SRT document.

    Returns:
        LanguageDetection with an ISO 639-1 code and its probability, or
        success=False when the text gives nothing to go on
    """
    text = extract_text(content or "")
    if not text:
        return LanguageDetection(False, message="Could not detect language")

    try:
        candidates = detect_langs(text[:SAMPLE_CHARS])
    except LangDetectException as e:
        logger.warning(f"Language detection failed: {e}")
        return LanguageDetection(False, message="Could not detect language")

    if not candidates:
        return LanguageDetection(False, message="Could not detect language")

    best = candidates[0]
    logger.debug(f"Detected language {best.lang} ({best.prob:.2f})")
    return LanguageDetection(True, language=best.lang, confidence=best.prob)
