"""
Marker protocol for sending subtitle groups through a text-only provider.

Each block is wrapped in ``<SUBT:id>`` markers and each of its lines in
``<LINE:n>`` markers, so block and line boundaries can be recovered from the
translated text even when the provider reflows or drops parts of it.
"""

from __future__ import annotations

import re
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence

from .models import SubtitleBlock

logger = logging.getLogger(__name__)

GROUP_SEPARATOR = "<SUBT_DIV>"

BLOCK_OPEN = re.compile(r'<SUBT:(\d+)>')
LINE_SEGMENT = re.compile(r'<LINE:\d+>(.*?)</LINE:\d+>', re.DOTALL)
ANY_MARKER = re.compile(r'</?(?:SUBT|LINE):\d+>|' + re.escape(GROUP_SEPARATOR))

# Providers with formatting preservation wrap untouched spans as <x id="N">text</x>
PROTECTED_TAG = re.compile(r'<x id="\d+">([^<]+)</x>')


@dataclass
class DecodedBlock:
    """Lines recovered for one block id."""
    id: int
    lines: List[str] = field(default_factory=list)


def _block_open(block_id: int) -> str:
    return f"<SUBT:{block_id}>"


def _block_close(block_id: int) -> str:
    return f"</SUBT:{block_id}>"


def encode_group(group: Sequence[SubtitleBlock]) -> str:
    """
    Encode a group of blocks into a single marked payload.

    Args:
        group: Blocks in the order they should be sent

    Returns:
        Payload string
    """
    parts: List[str] = []

    for block in group:
        lines = [_block_open(block.id)]
        for number, line in enumerate(block.lines, 1):
            lines.append(f"<LINE:{number}>{line}</LINE:{number}>")
        lines.append(_block_close(block.id))
        parts.append("\n".join(lines))

    return f"\n{GROUP_SEPARATOR}\n".join(parts)


def restore_protected_tags(text: str) -> str:
    """Replace provider protective wrappers with the literal text they hold."""
    if not text:
        return text
    return PROTECTED_TAG.sub(lambda m: m.group(1), text)


def _lines_from_markers(body: str, original: SubtitleBlock) -> List[str]:
    return [
        restore_protected_tags(segment.replace("\n", " ").strip())
        for segment in LINE_SEGMENT.findall(body)
    ]


def _lines_from_content(body: str, original: SubtitleBlock) -> List[str]:
    text = restore_protected_tags(ANY_MARKER.sub("\n", body))
    return [line.strip() for line in text.split("\n") if line.strip()]


def _empty_lines(body: str, original: SubtitleBlock) -> List[str]:
    return [""] * len(original.lines)


# Tried in order; the first strategy returning any line wins
LINE_STRATEGIES: List[Callable[[str, SubtitleBlock], List[str]]] = [
    _lines_from_markers,
    _lines_from_content,
    _empty_lines,
]


def _split_bodies(chunk: str) -> List[tuple[int, str]]:
    """Cut a chunk into (id, body) pairs, one per opening block marker."""
    opens = list(BLOCK_OPEN.finditer(chunk))
    bodies: List[tuple[int, str]] = []

    for pos, match in enumerate(opens):
        block_id = int(match.group(1))
        end = opens[pos + 1].start() if pos + 1 < len(opens) else len(chunk)
        body = chunk[match.end():end]
        close_at = body.find(_block_close(block_id))
        if close_at != -1:
            body = body[:close_at]
        bodies.append((block_id, body))

    return bodies


def decode_group(response_text: Optional[str], original_group: Sequence[SubtitleBlock]) -> List[DecodedBlock]:
    """
    Recover per-block lines from a translated payload.

    Never raises: blocks that cannot be recovered come back with empty lines,
    one per original line. Every block of ``original_group`` is present in
    the result, which follows response order and is not sorted by id.

    Args:
        response_text: Text returned by the provider
        original_group: The blocks that were encoded

    Returns:
        One DecodedBlock per original block
    """
    originals: Dict[int, SubtitleBlock] = {b.id: b for b in original_group}
    decoded: Dict[int, DecodedBlock] = {}

    for chunk in (response_text or "").split(GROUP_SEPARATOR):
        for block_id, body in _split_bodies(chunk):
            original = originals.get(block_id)
            if original is None:
                logger.debug(f"Ignoring unknown block id {block_id} in response")
                continue
            if block_id in decoded:
                continue

            for strategy in LINE_STRATEGIES:
                lines = strategy(body, original)
                if lines:
                    break

            if strategy is not _lines_from_markers:
                logger.debug(f"Block {block_id} decoded with fallback {strategy.__name__}")
            decoded[block_id] = DecodedBlock(block_id, lines)

    missing = [b for b in original_group if b.id not in decoded]
    if missing:
        logger.warning(f"{len(missing)} block(s) missing from provider response: {[b.id for b in missing]}")
    for block in missing:
        decoded[block.id] = DecodedBlock(block.id, _empty_lines("", block))

    return list(decoded.values())
