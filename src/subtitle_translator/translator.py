"""Batch translation of subtitle blocks through a marker-preserving provider call."""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional, Sequence

from .confidence import calculate_confidence
from .exceptions import InvalidSubtitleError, TranslationTimeoutError
from .markers import decode_group, encode_group
from .models import SubtitleBlock
from .progress import Phase, ProgressTracker
from .providers import TranslationOptions, TranslationProvider
from .rate_limit import pacing_scope

logger = logging.getLogger(__name__)

DEFAULT_GROUP_SIZE = 5


def chunk_blocks(blocks: Sequence[SubtitleBlock], group_size: int) -> List[List[SubtitleBlock]]:
    """Split blocks into contiguous groups of at most group_size."""
    if group_size < 1:
        raise ValueError(f"group_size must be positive, got {group_size}")
    return [list(blocks[i:i + group_size]) for i in range(0, len(blocks), group_size)]


def _check_unique_ids(blocks: Sequence[SubtitleBlock]) -> None:
    seen = set()
    for block in blocks:
        if block.id in seen:
            raise InvalidSubtitleError(f"Duplicate subtitle id {block.id}")
        seen.add(block.id)


async def _translate_groups(
    blocks: Sequence[SubtitleBlock],
    target_lang: str,
    source_lang: Optional[str],
    provider: TranslationProvider,
    group_size: int,
    options: Optional[TranslationOptions],
    session_id: Optional[str],
    tracker: Optional[ProgressTracker],
) -> List[SubtitleBlock]:
    tracking = tracker is not None and session_id is not None

    def report(phase: Phase, message: str, chars: int) -> None:
        if tracking:
            tracker.update_progress(session_id, phase, message, chars)

    total_chars = sum(b.char_count for b in blocks)
    if tracking:
        tracker.set_total_chars(session_id, total_chars)
    report(Phase.PREPARING, "Preparing content for translation...", 0)

    # Originals captured up front; confidence is scored against these
    originals: Dict[int, str] = {b.id: b.text for b in blocks}

    groups = chunk_blocks(blocks, group_size)
    translated: List[SubtitleBlock] = []
    translated_chars = 0

    logger.info(f"Translating {len(blocks)} blocks in {len(groups)} group(s) to {target_lang}")

    for index, group in enumerate(groups, 1):
        report(Phase.TRANSLATING, f"Translating group {index} of {len(groups)}...", translated_chars)

        payload = encode_group(group)
        response = await provider.translate(payload, target_lang, source_lang, options)
        by_id = {b.id: b for b in group}

        for decoded in decode_group(response, group):
            source = by_id[decoded.id]
            # A block with only blank lines is scored as an empty translation
            text = "\n".join(decoded.lines) if any(line.strip() for line in decoded.lines) else ""
            score = calculate_confidence(originals[decoded.id], text)
            translated.append(source.copy(lines=decoded.lines, confidence_score=score))

        translated_chars += sum(b.char_count for b in group)
        report(Phase.TRANSLATING, f"Translated group {index} of {len(groups)}", translated_chars)
        logger.debug(f"Group {index}/{len(groups)} done ({translated_chars}/{total_chars} chars)")

    # Providers do not guarantee block order inside a response
    translated.sort(key=lambda b: b.id)

    report(Phase.FINALIZING, "Finalizing translation...", total_chars)
    return translated


async def translate_blocks(
    blocks: Sequence[SubtitleBlock],
    target_lang: str,
    source_lang: Optional[str],
    provider: TranslationProvider,
    *,
    group_size: int = DEFAULT_GROUP_SIZE,
    options: Optional[TranslationOptions] = None,
    session_id: Optional[str] = None,
    tracker: Optional[ProgressTracker] = None,
    complete_session: bool = True,
    timeout: Optional[float] = None,
) -> List[SubtitleBlock]:
    """
    Translate subtitle blocks group by group, keeping ids, time codes and line structure.

    Groups are sent one after another. When a tracker and session id are
    given, progress is reported after every group and the session is closed
    as completed (unless ``complete_session`` is False) or as failed.

    Args:
        blocks: Blocks in document order
        target_lang: Target language code
        source_lang: Source language code; None or "auto" for detection
        provider: Translation provider client
        group_size: Blocks per provider call
        options: Provider options
        session_id: Progress session to report to
        tracker: Progress tracker owning the session
        complete_session: Mark the session completed on success
        timeout: Seconds allowed for the whole request

    Returns:
        New translated blocks sorted by id, each with a confidence score

    Raises:
        InvalidSubtitleError: two blocks share an id
        TranslationError: provider failures and timeouts; no partial result
    """
    tracking = tracker is not None and session_id is not None

    try:
        _check_unique_ids(blocks)
        work = _translate_groups(
            blocks, target_lang, source_lang, provider,
            group_size, options, session_id, tracker,
        )
        # Request pacing is per translation request, not shared across sessions
        with pacing_scope():
            if timeout is not None:
                try:
                    result = await asyncio.wait_for(work, timeout)
                except asyncio.TimeoutError as e:
                    raise TranslationTimeoutError(timeout) from e
            else:
                result = await work
    except asyncio.CancelledError:
        if tracking:
            tracker.complete_tracking(session_id, False, "Translation cancelled")
        raise
    except Exception as e:
        logger.error(f"Translation failed: {e}")
        if tracking:
            tracker.complete_tracking(session_id, False, str(e))
        raise

    if tracking and complete_session:
        tracker.complete_tracking(session_id, True, "Translation completed")

    return result


async def translate_with_progress(
    blocks: Sequence[SubtitleBlock],
    target_lang: str,
    source_lang: Optional[str],
    session_id: str,
    tracker: ProgressTracker,
    provider: TranslationProvider,
    **kwargs,
) -> List[SubtitleBlock]:
    """Translate blocks while reporting to an existing progress session."""
    return await translate_blocks(
        blocks, target_lang, source_lang, provider,
        session_id=session_id, tracker=tracker, **kwargs,
    )
