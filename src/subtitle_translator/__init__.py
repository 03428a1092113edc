"""
Subtitle Translator - structure-preserving SRT translation pipeline.

Features:
- Marker-wrapped batches that survive machine translation
- DeepL and OpenAI-compatible providers with rate limiting and retries
- Heuristic confidence scoring per subtitle block
- Live progress sessions with time estimates
- Translation history keyed by content hash
- Source language detection
"""

__version__ = "1.0.0"

from .models import SubtitleBlock, BlockConfidence
from .parser import parse_srt, generate_srt, is_valid_srt, save_srt, load_srt, validate_srt_file
from .confidence import calculate_confidence, confidence_level, average_confidence
from .markers import encode_group, decode_group, DecodedBlock
from .progress import Phase, ProgressState, ProgressTracker
from .translator import chunk_blocks, translate_blocks, translate_with_progress
from .providers import TranslationOptions, DeepLProvider, OpenAIProvider
from .rate_limit import RateLimiter
from .detection import LanguageDetection, detect_language
from .history import content_hash, TranslationRecord, InMemoryHistoryStore, JsonHistoryStore, HistoryPage
from .config import TranslatorConfig
from .service import TranslationService, TranslationOutcome
from .exceptions import (
    TranslationError,
    InvalidSubtitleError,
    ProviderError,
    ProviderAuthError,
    ProviderRateLimitError,
    ProviderResponseError,
    ProviderConnectionError,
    TranslationTimeoutError,
)

__all__ = [
    # Models
    "SubtitleBlock",
    "BlockConfidence",
    "DecodedBlock",
    "ProgressState",
    "Phase",
    "TranslationRecord",
    "TranslationOutcome",
    "TranslationOptions",
    "TranslatorConfig",
    # Parsing
    "parse_srt",
    "generate_srt",
    "is_valid_srt",
    "save_srt",
    "load_srt",
    "validate_srt_file",
    # Confidence
    "calculate_confidence",
    "confidence_level",
    "average_confidence",
    # Markers
    "encode_group",
    "decode_group",
    # Translation
    "chunk_blocks",
    "translate_blocks",
    "translate_with_progress",
    "ProgressTracker",
    "TranslationService",
    # Providers
    "DeepLProvider",
    "OpenAIProvider",
    "RateLimiter",
    # Detection
    "LanguageDetection",
    "detect_language",
    # History
    "content_hash",
    "HistoryPage",
    "InMemoryHistoryStore",
    "JsonHistoryStore",
    # Errors
    "TranslationError",
    "InvalidSubtitleError",
    "ProviderError",
    "ProviderAuthError",
    "ProviderRateLimitError",
    "ProviderResponseError",
    "ProviderConnectionError",
    "TranslationTimeoutError",
]
