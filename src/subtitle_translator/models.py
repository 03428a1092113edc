"""Data models for SRT subtitle blocks."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List

from .confidence import confidence_level


@dataclass
class SubtitleBlock:
    """A single timed caption block of an SRT document."""

    id: int
    time_code: str
    lines: List[str] = field(default_factory=list)
    confidence_score: float = 1.0

    @property
    def text(self) -> str:
        """Lines joined the way they are rendered."""
        return "\n".join(self.lines)

    @property
    def char_count(self) -> int:
        return len(self.text)

    @property
    def confidence_level(self) -> str:
        return confidence_level(self.confidence_score)

    def to_srt(self) -> str:
        """
        Convert block to SRT format string (without the separating blank line).

        Blank lines are left out since they would end the block early. A block
        with no visible text gets a single-space line so it still parses.
        """
        body = "".join(f"{line}\n" for line in self.lines if line.strip())
        if not body:
            body = " \n"
        return f"{self.id}\n{self.time_code}\n{body}"

    def copy(self, **changes) -> "SubtitleBlock":
        """Create a copy with optional field changes."""
        return SubtitleBlock(
            id=changes.get('id', self.id),
            time_code=changes.get('time_code', self.time_code),
            lines=list(changes.get('lines', self.lines)),
            confidence_score=changes.get('confidence_score', self.confidence_score),
        )


@dataclass
class BlockConfidence:
    """Confidence summary for one translated block."""

    id: int
    confidence_score: float
    confidence_level: str

    @classmethod
    def from_block(cls, block: SubtitleBlock) -> "BlockConfidence":
        return cls(block.id, block.confidence_score, block.confidence_level)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "confidenceScore": self.confidence_score,
            "confidenceLevel": self.confidence_level,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BlockConfidence":
        score = float(data.get("confidenceScore", 0.0))
        return cls(
            id=int(data["id"]),
            confidence_score=score,
            confidence_level=data.get("confidenceLevel") or confidence_level(score),
        )
