"""Heuristic confidence scoring for translated subtitle text."""

from __future__ import annotations

import re
from typing import Iterable, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .models import SubtitleBlock


# Patterns that hint at a poor translation
REPEATED_WORDS = re.compile(r'\b(\w+)\s+\1\b', re.IGNORECASE)
EXCESSIVE_PUNCTUATION = re.compile(r'[!?]{3,}')
UNTRANSLATED_WORDS = re.compile(r'\b[A-Z]{2,}\b')

# Markup-like characters that usually leak from broken tags
SUSPICIOUS_CHARACTERS = frozenset('[]{}<>\\^~|')

# Slightly above 1.0 so a single minor penalty still scores "high"
BASE_SCORE = 1.05
LENGTH_RATIO_THRESHOLD = 0.3
MAX_PENALTY = 0.5

UNKNOWN_SCORE = 0.5
HIGH_THRESHOLD = 0.8
MEDIUM_THRESHOLD = 0.5


def calculate_confidence(original: Optional[str], translated: Optional[str]) -> float:
    """
    Score a translation against its source using text heuristics.

    Args:
        original: Source text
        translated: Translated text

    Returns:
        Score between 0.0 and 1.0, or 0.5 when either side is missing
    """
    if original is None or translated is None:
        return UNKNOWN_SCORE

    score = BASE_SCORE
    score -= _length_ratio_penalty(original, translated)
    score -= _count_penalty(len(REPEATED_WORDS.findall(translated)), 0.07)
    score -= _count_penalty(len(EXCESSIVE_PUNCTUATION.findall(translated)), 0.1)
    score -= _count_penalty(sum(1 for c in translated if c in SUSPICIOUS_CHARACTERS), 0.05)
    score -= _count_penalty(len(UNTRANSLATED_WORDS.findall(translated)), 0.03)

    return max(0.0, min(1.0, score))


def _length_ratio_penalty(original: str, translated: str) -> float:
    if not original:
        return 0.0 if not translated else MAX_PENALTY

    if not translated:
        return MAX_PENALTY + 0.1

    ratio = abs(1.0 - len(translated) / len(original))
    if ratio > LENGTH_RATIO_THRESHOLD:
        return min(MAX_PENALTY, (ratio - LENGTH_RATIO_THRESHOLD) * 2.0)
    return 0.0


def _count_penalty(count: int, weight: float) -> float:
    return min(MAX_PENALTY, count * weight)


def confidence_level(score: float) -> str:
    """Classify a score as "high", "medium" or "low"."""
    if score >= HIGH_THRESHOLD:
        return "high"
    if score >= MEDIUM_THRESHOLD:
        return "medium"
    return "low"


def average_confidence(blocks: Iterable["SubtitleBlock"]) -> float:
    """Mean confidence of the given blocks; 1.0 when there are none."""
    scores = [b.confidence_score for b in blocks]
    if not scores:
        return 1.0
    return sum(scores) / len(scores)
