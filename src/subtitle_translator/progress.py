"""Live progress tracking for translation sessions."""

from __future__ import annotations

import logging
import threading
import time
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)

# Rate samples below this percentage are too noisy for an ETA
ESTIMATE_MIN_PERCENT = 5.0
RATE_SMOOTHING = 0.7


class Phase(str, Enum):
    """Translation session phases."""
    STARTING = "starting"
    PREPARING = "preparing"
    TRANSLATING = "translating"
    FINALIZING = "finalizing"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (Phase.COMPLETED, Phase.ERROR)


@dataclass
class ProgressState:
    """Progress snapshot of one session."""

    phase: Phase
    message: str
    total_chars: int = 0
    translated_chars: int = 0
    progress_percent: float = 0.0
    estimated_total_time_ms: int = 0
    remaining_time_ms: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Shape served to polling clients."""
        return {
            "phase": self.phase.value,
            "message": self.message,
            "totalChars": self.total_chars,
            "translatedChars": self.translated_chars,
            "progress": self.progress_percent,
            "estimatedTotalTimeMs": self.estimated_total_time_ms,
            "remainingTimeMs": self.remaining_time_ms,
        }


@dataclass
class _Session:
    state: ProgressState
    started_at: float
    touched_at: float
    rate: Optional[float] = None
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)


def _percent(translated: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return max(0.0, min(100.0, translated / total * 100))


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class ProgressTracker:
    """
    Registry of translation sessions keyed by session id.

    Every session has its own lock, so updates to one session never wait on
    another. Sessions that reached ``completed`` or ``error`` ignore further
    updates. With ``ttl_seconds`` set, sessions idle for longer are dropped
    whenever a new session starts, by ``evict_expired`` or by the background
    sweeper.
    """

    def __init__(
        self,
        clock: Optional[Callable[[], float]] = None,
        ttl_seconds: Optional[float] = None,
    ):
        # clock returns milliseconds
        self._clock = clock or _monotonic_ms
        self._ttl_ms = ttl_seconds * 1000.0 if ttl_seconds else None
        self._sessions: Dict[str, _Session] = {}
        self._sweeper: Optional[threading.Thread] = None
        self._stop_sweeper = threading.Event()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def start_tracking(self, total_chars: int = 0) -> str:
        """
        Create a session in the ``starting`` phase.

        With a TTL set, idle sessions are evicted first.

        Returns:
            New session id
        """
        if self._ttl_ms is not None:
            self.evict_expired()

        session_id = str(uuid.uuid4())
        now = self._clock()
        total = max(0, total_chars)
        self._sessions[session_id] = _Session(
            state=ProgressState(Phase.STARTING, "Starting translation...", total),
            started_at=now,
            touched_at=now,
        )
        logger.debug(f"Tracking session {session_id} ({total} chars)")
        return session_id

    def set_total_chars(self, session_id: str, total_chars: int) -> None:
        """Correct the total once the real document size is known."""
        session = self._sessions.get(session_id)
        if session is None:
            logger.warning(f"Session ID not found for set_total_chars: {session_id}")
            return

        with session.lock:
            state = session.state
            if state.phase.is_terminal:
                logger.debug(f"Ignoring set_total_chars on finished session {session_id}")
                return
            total = max(0, total_chars)
            translated = min(state.translated_chars, total) if total else state.translated_chars
            session.state = replace(
                state,
                total_chars=total,
                translated_chars=translated,
                progress_percent=_percent(translated, total),
            )
            session.touched_at = self._clock()

    def update_progress(
        self,
        session_id: str,
        phase: Phase | str,
        message: str,
        translated_chars: int
    ) -> None:
        """
        Record progress and refresh the time estimates.

        The translation rate is smoothed as ``0.7 * previous + 0.3 * current``
        (chars per ms) and only sampled past 5% progress.
        """
        session = self._sessions.get(session_id)
        if session is None:
            return

        phase = Phase(phase)
        with session.lock:
            state = session.state
            if state.phase.is_terminal:
                logger.debug(f"Ignoring {phase.value} update on finished session {session_id}")
                return

            now = self._clock()
            total = state.total_chars
            translated = max(0, translated_chars)
            if total > 0:
                translated = min(translated, total)
            percent = _percent(translated, total)
            elapsed = now - session.started_at

            estimated_total = 0
            remaining = 0
            if percent > ESTIMATE_MIN_PERCENT and translated > 0 and elapsed > 0:
                current_rate = translated / elapsed
                previous = session.rate if session.rate is not None else current_rate
                session.rate = previous * RATE_SMOOTHING + current_rate * (1 - RATE_SMOOTHING)
                if session.rate > 0:
                    estimated_total = int(total / session.rate)
                    remaining = int((total - translated) / session.rate)

            session.state = ProgressState(
                phase=phase,
                message=message,
                total_chars=total,
                translated_chars=translated,
                progress_percent=percent,
                estimated_total_time_ms=estimated_total,
                remaining_time_ms=remaining,
            )
            session.touched_at = now

    def complete_tracking(self, session_id: str, success: bool, message: Optional[str] = None) -> None:
        """Move a session to ``completed`` or ``error``; only the first call counts."""
        session = self._sessions.get(session_id)
        if session is None:
            return

        with session.lock:
            state = session.state
            if state.phase.is_terminal:
                logger.debug(f"Session {session_id} already finished as {state.phase.value}")
                return

            if success:
                session.state = ProgressState(
                    Phase.COMPLETED,
                    "Translation completed!",
                    total_chars=state.total_chars,
                    translated_chars=state.total_chars,
                    progress_percent=100.0,
                    estimated_total_time_ms=state.estimated_total_time_ms,
                )
            else:
                session.state = replace(
                    state,
                    phase=Phase.ERROR,
                    message=f"Error: {message or 'Unknown error'}",
                    remaining_time_ms=0,
                )
            session.touched_at = self._clock()

    def get_progress(self, session_id: str) -> Optional[ProgressState]:
        """Return a copy of the session state, or None if unknown."""
        session = self._sessions.get(session_id)
        if session is None:
            return None
        with session.lock:
            return replace(session.state)

    def remove_tracking(self, session_id: str) -> None:
        """Forget a session."""
        self._sessions.pop(session_id, None)

    def evict_expired(self) -> int:
        """
        Drop sessions idle for longer than the TTL.

        Returns:
            Number of sessions removed
        """
        if self._ttl_ms is None:
            return 0

        cutoff = self._clock() - self._ttl_ms
        expired = [sid for sid, s in list(self._sessions.items()) if s.touched_at < cutoff]
        for session_id in expired:
            self._sessions.pop(session_id, None)

        if expired:
            logger.info(f"Evicted {len(expired)} idle progress session(s)")
        return len(expired)

    def start_sweeper(self, interval_seconds: float = 60.0) -> None:
        """Run ``evict_expired`` every interval on a daemon thread."""
        if self._sweeper is not None and self._sweeper.is_alive():
            return

        self._stop_sweeper.clear()

        def sweep() -> None:
            while not self._stop_sweeper.wait(interval_seconds):
                self.evict_expired()

        self._sweeper = threading.Thread(target=sweep, name="progress-sweeper", daemon=True)
        self._sweeper.start()

    def stop_sweeper(self) -> None:
        self._stop_sweeper.set()
        if self._sweeper is not None:
            self._sweeper.join(timeout=5)
            self._sweeper = None
