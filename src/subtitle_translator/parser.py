"""SRT parsing, generation and file utilities."""

from __future__ import annotations

import re
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Sequence, Optional

from .models import SubtitleBlock

logger = logging.getLogger(__name__)

TIME_CODE_PATTERN = re.compile(r"\d{2}:\d{2}:\d{2},\d{3}\s-->\s\d{2}:\d{2}:\d{2},\d{3}")

MAX_FILE_SIZE = 50 * 1024 * 1024  # 50MB

# Common subtitle readability limit
DEFAULT_MAX_CHARS_PER_LINE = 40


def _split_blocks(content: str) -> List[str]:
    normalized = content.replace('\r\n', '\n').replace('\r', '\n')
    return normalized.split('\n\n')


def parse_srt(content: str) -> List[SubtitleBlock]:
    """
    Parse SRT content into SubtitleBlock objects.

    Blocks with fewer than three lines or a non-numeric id are skipped.

    Args:
        content: Raw SRT content

    Returns:
        Blocks in source order
    """
    if not content or not content.strip():
        return []

    blocks: List[SubtitleBlock] = []

    for raw in _split_blocks(content):
        if not raw.strip():
            continue

        lines = raw.strip('\n').split('\n')
        if len(lines) < 3:
            continue

        try:
            block_id = int(lines[0].strip())
        except ValueError:
            continue

        text_lines = [line for line in lines[2:] if line.strip()]
        blocks.append(SubtitleBlock(block_id, lines[1].strip(), text_lines))

    if not blocks:
        logger.warning("No valid SRT blocks found in content")

    return blocks


def generate_srt(blocks: Sequence[SubtitleBlock]) -> str:
    """Render blocks back to SRT text, one blank line between blocks."""
    return "\n".join(block.to_srt() for block in blocks)


def is_valid_srt(content: Optional[str]) -> bool:
    """
    Check that every block has a unique integer id, a time code and at least
    one text line.

    A whitespace-only text line counts, since that is how a block with no
    visible text is written out.
    """
    if content is None or not content.strip():
        return False

    seen_ids = set()
    for raw in _split_blocks(content):
        if not raw.strip():
            continue

        lines = raw.strip('\n').split('\n')
        if len(lines) < 3:
            return False

        block_id = lines[0].strip()
        if not block_id.isdigit():
            return False

        if int(block_id) in seen_ids:
            logger.warning(f"Duplicate subtitle id {block_id}")
            return False
        seen_ids.add(int(block_id))

        if not TIME_CODE_PATTERN.fullmatch(lines[1].strip()):
            return False

    return True


def validate_srt_file(path: Path) -> Optional[str]:
    """
    Validate SRT file before processing.

    Args:
        path: Path to SRT file

    Returns:
        Error message if invalid, None if valid
    """
    if not path.exists():
        return f"File not found: {path}"

    if not path.is_file():
        return f"Not a file: {path}"

    suffix = path.suffix.lower()
    if suffix != '.srt':
        return f"Invalid file extension: {suffix} (expected .srt)"

    size = path.stat().st_size
    if size == 0:
        return "File is empty"
    if size > MAX_FILE_SIZE:
        return f"File too large: {size / 1024 / 1024:.1f}MB (max 50MB)"

    return None


def load_srt(path: Path) -> str:
    """Read an SRT file, dropping a UTF-8 BOM if present."""
    return path.read_text(encoding="utf-8-sig")


def save_srt(blocks: Sequence[SubtitleBlock], path: Path) -> None:
    """
    Save blocks to an SRT file.

    Args:
        blocks: Blocks to save
        path: Output file path
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(generate_srt(blocks), encoding="utf-8")
    logger.info(f"Saved {len(blocks)} blocks to {path}")


@dataclass
class LineLengthViolation:
    """A subtitle line longer than the allowed width."""
    block_id: int
    line_number: int
    line: str
    length: int

    def describe(self) -> str:
        return f"Subtitle #{self.block_id}, line {self.line_number} ({self.length} chars): {self.line}"


def find_long_lines(
    blocks: Sequence[SubtitleBlock],
    max_chars: int = DEFAULT_MAX_CHARS_PER_LINE
) -> List[LineLengthViolation]:
    """Report every line exceeding max_chars characters."""
    violations: List[LineLengthViolation] = []
    for block in blocks:
        for number, line in enumerate(block.lines, 1):
            if len(line) > max_chars:
                violations.append(LineLengthViolation(block.id, number, line, len(line)))
    return violations
