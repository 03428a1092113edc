"""Top-level composition: validation, history lookup, translation and storage."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .confidence import average_confidence, confidence_level
from .config import TranslatorConfig
from .detection import LanguageDetection, detect_language
from .exceptions import InvalidSubtitleError
from .history import (
    HistoryPage,
    HistoryStore,
    InMemoryHistoryStore,
    JsonHistoryStore,
    TranslationRecord,
    content_hash,
)
from .models import BlockConfidence, SubtitleBlock
from .parser import find_long_lines, generate_srt, is_valid_srt, parse_srt
from .progress import Phase, ProgressState, ProgressTracker
from .providers import (
    DeepLProvider,
    OpenAIProvider,
    TranslationProvider,
    create_openai_client,
)
from .rate_limit import RateLimiter
from .translator import translate_with_progress

logger = logging.getLogger(__name__)


@dataclass
class TranslationOutcome:
    """Result of translating one SRT document."""

    translated_content: str
    confidence: List[BlockConfidence]
    average_confidence: float
    confidence_level: str
    blocks: List[SubtitleBlock] = field(default_factory=list)
    cached: bool = False
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "translatedContent": self.translated_content,
            "confidenceData": [c.to_dict() for c in self.confidence],
            "averageConfidence": self.average_confidence,
            "confidenceLevel": self.confidence_level,
            "cached": self.cached,
            "warnings": list(self.warnings),
        }


def create_provider(config: TranslatorConfig) -> TranslationProvider:
    """Build the provider client selected by the configuration."""
    limiter = RateLimiter(min_interval=config.request_interval)

    if config.provider == "openai":
        client = create_openai_client(config.api_key, config.api_url, config.timeout)
        return OpenAIProvider(client, config.model_name, limiter, config.max_retries)

    return DeepLProvider(
        config.api_key,
        config.api_url,
        rate_limiter=limiter,
        max_retries=config.max_retries,
        timeout=config.timeout,
    )


def _count_chars(blocks: List[SubtitleBlock]) -> int:
    return sum(b.char_count for b in blocks)


class TranslationService:
    """
    Entry point for callers such as an HTTP API or the CLI.

    Owns the progress tracker and the history store for its lifetime.
    """

    def __init__(
        self,
        provider: TranslationProvider,
        tracker: Optional[ProgressTracker] = None,
        history: Optional[HistoryStore] = None,
        config: Optional[TranslatorConfig] = None,
        start_sweeper: bool = False,
    ):
        self.config = config or TranslatorConfig()
        self.provider = provider
        self.tracker = tracker or ProgressTracker(ttl_seconds=self.config.session_ttl)
        if history is None:
            if self.config.history_dir is not None:
                history = JsonHistoryStore(self.config.history_dir)
            else:
                history = InMemoryHistoryStore()
        self.history = history

        if start_sweeper:
            self.tracker.start_sweeper(self.config.sweep_interval)

    def start_session(self, content: str) -> str:
        """
        Validate a document and open a progress session for it.

        Raises:
            InvalidSubtitleError: content is not valid SRT
        """
        if not is_valid_srt(content):
            raise InvalidSubtitleError()
        return self.tracker.start_tracking(_count_chars(parse_srt(content)))

    def get_progress(self, session_id: str) -> Optional[ProgressState]:
        return self.tracker.get_progress(session_id)

    def remove_session(self, session_id: str) -> None:
        self.tracker.remove_tracking(session_id)

    def detect_language(self, content: str) -> LanguageDetection:
        """Guess the source language of an SRT document."""
        return detect_language(content)

    def list_history(self, page: int = 0, size: int = 10) -> HistoryPage:
        return self.history.list(page, size)

    def get_history(self, record_id: str) -> Optional[TranslationRecord]:
        return self.history.get(record_id)

    def delete_history(self, record_id: str) -> bool:
        return self.history.delete(record_id)

    async def _from_history(
        self,
        content: str,
        source: str,
        target: str,
        session_id: str
    ) -> Optional[TranslationOutcome]:
        # Store I/O runs off the event loop
        record = await asyncio.to_thread(
            self.history.find_existing, content_hash(content), source, target
        )
        if record is None:
            return None

        logger.info("Found existing translation in history. Returning cached result.")
        total = self.tracker.get_progress(session_id)
        self.tracker.update_progress(
            session_id, Phase.FINALIZING, "Translation found in history",
            total.total_chars if total else 0,
        )

        confidence: List[BlockConfidence] = []
        try:
            confidence = [BlockConfidence.from_dict(item) for item in json.loads(record.confidence_data or "[]")]
        except (ValueError, TypeError, KeyError) as e:
            logger.warning(f"Error parsing stored confidence data: {e}")

        self.tracker.complete_tracking(session_id, True, "Cached translation retrieved")
        return TranslationOutcome(
            translated_content=record.translated_content,
            confidence=confidence,
            average_confidence=record.average_confidence,
            confidence_level=record.confidence_level,
            blocks=parse_srt(record.translated_content),
            cached=True,
        )

    async def translate_document(
        self,
        content: str,
        target_lang: str,
        source_lang: Optional[str] = "auto",
        session_id: Optional[str] = None,
        file_name: Optional[str] = None,
    ) -> TranslationOutcome:
        """
        Translate an SRT document end to end.

        Args:
            content: Raw SRT content
            target_lang: Target language code
            source_lang: Source language code or "auto"
            session_id: Progress session from ``start_session``; one is
                created when omitted
            file_name: Name stored with the history record

        Returns:
            TranslationOutcome

        Raises:
            TranslationError: invalid input or provider failure; the session
                is marked as failed first
        """
        source_key = source_lang or "auto"

        if not is_valid_srt(content):
            if session_id is not None:
                self.tracker.complete_tracking(session_id, False, "Invalid SRT format")
            raise InvalidSubtitleError()

        blocks = parse_srt(content)
        if session_id is None or session_id not in self.tracker:
            session_id = self.tracker.start_tracking(_count_chars(blocks))

        try:
            cached = await self._from_history(content, source_key, target_lang, session_id)
            if cached is not None:
                return cached

            warnings = [v.describe() for v in find_long_lines(blocks, self.config.max_chars_per_line)]
            if warnings:
                logger.warning(
                    f"{len(warnings)} line(s) exceed {self.config.max_chars_per_line} characters per line"
                )

            translated = await translate_with_progress(
                blocks, target_lang, source_lang, session_id, self.tracker, self.provider,
                group_size=self.config.group_size,
                options=self.config.options,
                complete_session=False,
                timeout=self.config.request_timeout,
            )

            translated_content = generate_srt(translated)
            confidence = [BlockConfidence.from_block(b) for b in translated]
            average = average_confidence(translated)
            level = confidence_level(average)

            await asyncio.to_thread(
                self.history.save,
                file_name or "subtitle.srt",
                content,
                source_key,
                target_lang,
                translated_content,
                json.dumps([c.to_dict() for c in confidence]),
                average,
                level,
            )
        except Exception as e:
            # The orchestrator already closes the session on its own failures
            self.tracker.complete_tracking(session_id, False, str(e))
            raise

        self.tracker.complete_tracking(session_id, True, "Translation completed")
        logger.info(f"Translated {len(translated)} blocks, average confidence {average:.2f} ({level})")

        return TranslationOutcome(
            translated_content=translated_content,
            confidence=confidence,
            average_confidence=average,
            confidence_level=level,
            blocks=translated,
            warnings=warnings,
        )

    async def close(self) -> None:
        """Stop background work and release the provider client."""
        self.tracker.stop_sweeper()
        aclose = getattr(self.provider, "aclose", None)
        if aclose is not None:
            await aclose()
