"""Translation history keyed by content hash and language pair."""

from __future__ import annotations

import hashlib
import json
import logging
import re
import math
import threading
import uuid
from dataclasses import dataclass, asdict, field
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)


def content_hash(content: str) -> str:
    """MD5 hex digest of the UTF-8 encoded content."""
    return hashlib.md5(content.encode("utf-8")).hexdigest()


@dataclass
class TranslationRecord:
    """A stored translation."""

    file_name: str
    content_hash: str
    original_content: str
    source_language: str
    target_language: str
    translated_content: str
    confidence_data: str            # JSON list of per-block confidence
    average_confidence: float
    confidence_level: str
    file_size: int
    created_at: str
    last_accessed_at: str
    access_count: int = 1
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def key(self) -> Tuple[str, str, str]:
        return (self.content_hash, self.source_language, self.target_language)

    def touch(self) -> None:
        """Record one more access."""
        self.last_accessed_at = datetime.now().isoformat()
        self.access_count += 1


@dataclass
class HistoryPage:
    """One page of history, most recently accessed first."""

    records: List[TranslationRecord]
    current_page: int
    total_items: int
    total_pages: int

    def to_dict(self) -> Dict[str, object]:
        return {
            "translations": [asdict(r) for r in self.records],
            "currentPage": self.current_page,
            "totalItems": self.total_items,
            "totalPages": self.total_pages,
        }


class HistoryStore:
    """
    Base class for history backends.

    Subclasses implement ``_get`` and ``_put``; lookup and upsert rules live here.
    """

    def __init__(self):
        self._lock = threading.Lock()

    def _get(self, key: Tuple[str, str, str]) -> Optional[TranslationRecord]:
        raise NotImplementedError

    def _put(self, key: Tuple[str, str, str], record: TranslationRecord) -> None:
        raise NotImplementedError

    def _all(self) -> List[TranslationRecord]:
        raise NotImplementedError

    def _remove(self, key: Tuple[str, str, str]) -> None:
        raise NotImplementedError

    def find_existing(
        self,
        content_hash: str,
        source_language: str,
        target_language: str
    ) -> Optional[TranslationRecord]:
        """
        Look up a stored translation and count the access.

        Returns:
            The record, or None when this content was never translated to
            this language pair
        """
        key = (content_hash, source_language, target_language)
        with self._lock:
            record = self._get(key)
            if record is not None:
                record.touch()
                self._put(key, record)
        return record

    def save(
        self,
        file_name: str,
        original_content: str,
        source_language: str,
        target_language: str,
        translated_content: str,
        confidence_data: str,
        average_confidence: float,
        confidence_level: str,
    ) -> TranslationRecord:
        """Store a translation, replacing the result of an earlier one for the same key."""
        digest = content_hash(original_content)
        key = (digest, source_language, target_language)

        with self._lock:
            record = self._get(key)
            if record is not None:
                record.translated_content = translated_content
                record.confidence_data = confidence_data
                record.average_confidence = average_confidence
                record.confidence_level = confidence_level
                record.touch()
            else:
                now = datetime.now().isoformat()
                record = TranslationRecord(
                    file_name=file_name,
                    content_hash=digest,
                    original_content=original_content,
                    source_language=source_language,
                    target_language=target_language,
                    translated_content=translated_content,
                    confidence_data=confidence_data,
                    average_confidence=average_confidence,
                    confidence_level=confidence_level,
                    file_size=len(original_content.encode("utf-8")),
                    created_at=now,
                    last_accessed_at=now,
                )
            self._put(key, record)

        logger.debug(f"Saved translation {digest} ({source_language} -> {target_language})")
        return record

    def list(self, page: int = 0, size: int = 10) -> HistoryPage:
        """
        Page through stored translations, most recently accessed first.

        Args:
            page: 0-based page number
            size: Records per page
        """
        if page < 0 or size < 1:
            raise ValueError(f"Invalid page {page} / size {size}")

        with self._lock:
            records = sorted(self._all(), key=lambda r: r.last_accessed_at, reverse=True)

        start = page * size
        return HistoryPage(
            records=records[start:start + size],
            current_page=page,
            total_items=len(records),
            total_pages=math.ceil(len(records) / size),
        )

    def get(self, record_id: str) -> Optional[TranslationRecord]:
        """Look up a record by id without counting an access."""
        with self._lock:
            for record in self._all():
                if record.id == record_id:
                    return record
        return None

    def delete(self, record_id: str) -> bool:
        """
        Remove a record by id.

        Returns:
            False when no record has this id
        """
        with self._lock:
            for record in self._all():
                if record.id == record_id:
                    self._remove(record.key)
                    logger.info(f"Deleted translation {record_id}")
                    return True
        return False


class InMemoryHistoryStore(HistoryStore):
    """Process-local history, lost on restart."""

    def __init__(self):
        super().__init__()
        self._records: Dict[Tuple[str, str, str], TranslationRecord] = {}

    def __len__(self) -> int:
        return len(self._records)

    def _get(self, key):
        return self._records.get(key)

    def _put(self, key, record):
        self._records[key] = record

    def _all(self):
        return list(self._records.values())

    def _remove(self, key):
        self._records.pop(key, None)


_UNSAFE = re.compile(r'[^A-Za-z0-9_-]')


class JsonHistoryStore(HistoryStore):
    """One JSON file per (content hash, source, target) under a directory."""

    def __init__(self, directory: Path):
        super().__init__()
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def path_for(self, key: Tuple[str, str, str]) -> Path:
        digest, source, target = key
        name = "_".join(_UNSAFE.sub("-", part or "auto") for part in (digest, source, target))
        return self.directory / f"{name}.json"

    def _get(self, key):
        path = self.path_for(key)
        if not path.exists():
            return None
        return self._load(path)

    def _load(self, path: Path) -> Optional[TranslationRecord]:
        try:
            with path.open('r', encoding='utf-8') as f:
                data = json.load(f)
            return TranslationRecord(**data)
        except (OSError, ValueError, TypeError) as e:
            logger.warning(f"Failed to load history record {path}: {e}")
            return None

    def _put(self, key, record):
        path = self.path_for(key)
        with path.open('w', encoding='utf-8') as f:
            json.dump(asdict(record), f, ensure_ascii=False, indent=2)

    def _all(self):
        records = (self._load(path) for path in sorted(self.directory.glob("*.json")))
        return [r for r in records if r is not None]

    def _remove(self, key):
        self.path_for(key).unlink(missing_ok=True)
