"""Configuration and constants."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional
from pathlib import Path

from dotenv import load_dotenv

from .providers import DEFAULT_DEEPL_URL, TranslationOptions

# Load environment variables once
load_dotenv()

SUPPORTED_PROVIDERS = ("deepl", "openai")

FORMALITY_LEVELS = ("default", "more", "less", "prefer_more", "prefer_less")


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    return int(_env_float(name, default))


@dataclass
class TranslatorConfig:
    """Configuration for the subtitle translation pipeline."""

    # Provider settings
    provider: str = "deepl"
    api_key: Optional[str] = None
    api_url: Optional[str] = None
    model_name: str = "gpt-4o-mini"
    timeout: float = 30.0
    max_retries: int = 3

    # Pipeline settings (env defaults: group size 5, 1s between requests)
    group_size: Optional[int] = None
    request_interval: Optional[float] = None
    request_timeout: Optional[float] = None
    options: TranslationOptions = field(default_factory=TranslationOptions)

    # Subtitle format check
    max_chars_per_line: int = 40

    # Progress session housekeeping
    session_ttl: float = 3600.0
    sweep_interval: float = 60.0

    # History
    history_dir: Optional[Path] = None

    # Output settings
    output_prefix: str = "translated_"

    def __post_init__(self):
        """Fill unset values from the environment."""
        if self.api_key is None:
            env_name = "OPENAI_API_KEY" if self.provider == "openai" else "DEEPL_API_KEY"
            self.api_key = os.environ.get(env_name)
        if self.api_url is None:
            if self.provider == "openai":
                self.api_url = os.environ.get("OPENAI_BASE_URL")
            else:
                self.api_url = os.environ.get("DEEPL_API_URL", DEFAULT_DEEPL_URL)
        if self.group_size is None:
            self.group_size = _env_int("SUBTITLE_GROUP_SIZE", 5)
        if self.request_interval is None:
            self.request_interval = _env_float("SUBTITLE_REQUEST_INTERVAL", 1.0)
        if self.history_dir is None and os.environ.get("SUBTITLE_HISTORY_DIR"):
            self.history_dir = Path(os.environ["SUBTITLE_HISTORY_DIR"])

    @classmethod
    def from_args(cls, args) -> "TranslatorConfig":
        """Create config from argparse namespace."""
        options = TranslationOptions(
            formality=getattr(args, 'formality', "default"),
            tag_handling=not getattr(args, 'no_tag_handling', False),
            glossary_id=getattr(args, 'glossary_id', None),
            preserve_formatting=not getattr(args, 'no_preserve_formatting', False),
            split_sentences=not getattr(args, 'no_split_sentences', False),
        )
        history_dir = getattr(args, 'history_dir', None)

        return cls(
            provider=getattr(args, 'provider', "deepl"),
            api_key=getattr(args, 'api_key', None),
            api_url=getattr(args, 'api_url', None),
            model_name=getattr(args, 'model_name', "gpt-4o-mini"),
            group_size=getattr(args, 'group_size', None),
            request_interval=getattr(args, 'interval', None),
            request_timeout=getattr(args, 'timeout', None),
            options=options,
            max_chars_per_line=getattr(args, 'max_chars_per_line', 40),
            history_dir=Path(history_dir) if history_dir else None,
        )

    def validate(self) -> Optional[str]:
        """
        Validate configuration.

        Returns:
            Error message if invalid, None if valid
        """
        if self.provider not in SUPPORTED_PROVIDERS:
            return f"Unknown provider: {self.provider} (expected one of {', '.join(SUPPORTED_PROVIDERS)})"

        if not self.api_key:
            env_name = "OPENAI_API_KEY" if self.provider == "openai" else "DEEPL_API_KEY"
            return f"API key is required. Set {env_name} or use --api-key"

        if self.group_size < 1 or self.group_size > 50:
            return f"Group size must be 1-50, got {self.group_size}"

        if self.request_interval < 0:
            return f"Request interval must not be negative, got {self.request_interval}"

        if self.options.formality not in FORMALITY_LEVELS:
            return f"Invalid formality: {self.options.formality}"

        if self.request_timeout is not None and self.request_timeout <= 0:
            return f"Timeout must be positive, got {self.request_timeout}"

        return None

