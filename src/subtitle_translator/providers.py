"""Translation provider clients (DeepL REST API and OpenAI-compatible LLMs)."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol

import httpx
from openai import (
    AsyncOpenAI,
    APIConnectionError,
    APIStatusError,
    AuthenticationError,
    PermissionDeniedError,
    RateLimitError,
)

from .exceptions import (
    ProviderAuthError,
    ProviderConnectionError,
    ProviderError,
    ProviderRateLimitError,
    ProviderResponseError,
    TranslationError,
    status_error,
)
from .rate_limit import RateLimiter

logger = logging.getLogger(__name__)

DEFAULT_DEEPL_URL = "https://api-free.deepl.com/v2"


@dataclass
class TranslationOptions:
    """Provider options passed through with every request."""

    formality: str = "default"  # default, more, less, prefer_more, prefer_less
    tag_handling: bool = True
    glossary_id: Optional[str] = None
    preserve_formatting: bool = True
    split_sentences: bool = True


class TranslationProvider(Protocol):
    async def translate(
        self,
        text: str,
        target_lang: str,
        source_lang: Optional[str] = None,
        options: Optional[TranslationOptions] = None,
    ) -> str:
        ...


class ErrorType(Enum):
    """Provider failure categories."""
    RATE_LIMIT = "rate_limit"      # 429 - retryable
    CONNECTION = "connection"      # network - retryable
    SERVER = "server"              # 5xx - retryable
    AUTH = "auth"                  # 401/403 - not retryable
    PROTOCOL = "protocol"          # bad payload - not retryable
    UNKNOWN = "unknown"


def classify_error(error: Exception) -> tuple[ErrorType, bool]:
    """
    Classify a provider error and decide whether it is worth retrying.

    Returns:
        (error type, retryable)
    """
    if isinstance(error, ProviderRateLimitError):
        return ErrorType.RATE_LIMIT, True
    if isinstance(error, ProviderConnectionError):
        return ErrorType.CONNECTION, True
    if isinstance(error, ProviderAuthError):
        return ErrorType.AUTH, False
    if isinstance(error, ProviderResponseError):
        return ErrorType.PROTOCOL, False
    if isinstance(error, ProviderError):
        if error.status_code is not None and error.status_code >= 500:
            return ErrorType.SERVER, True
        return ErrorType.UNKNOWN, False
    return ErrorType.UNKNOWN, False


def is_auto(source_lang: Optional[str]) -> bool:
    return source_lang is None or source_lang.lower() == "auto"


async def call_with_retries(
    send: Callable[[], Awaitable[str]],
    rate_limiter: RateLimiter,
    max_retries: int,
    provider: str,
) -> str:
    """
    Run ``send`` behind the rate limiter, retrying retryable failures.

    Raises:
        TranslationError: the last error once retries are exhausted or the
            error is not retryable
    """
    attempt = 0
    while True:
        await rate_limiter.acquire()
        try:
            return await send()
        except TranslationError as e:
            error_type, retryable = classify_error(e)
            if not retryable or attempt >= max_retries:
                logger.error(f"{provider} request failed ({error_type.value}): {e}")
                raise

            retry_after = getattr(e, "retry_after", None)
            delay = rate_limiter.backoff_delay(attempt, error_type == ErrorType.RATE_LIMIT, retry_after)
            logger.warning(
                f"Retryable {provider} error ({error_type.value}): {e}. "
                f"Retry {attempt + 1}/{max_retries} in {delay:g}s..."
            )
            await rate_limiter.backoff(attempt, error_type == ErrorType.RATE_LIMIT, retry_after)
            attempt += 1


def _retry_after(response: httpx.Response) -> Optional[float]:
    value = response.headers.get("Retry-After")
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


class DeepLProvider:
    """
    DeepL REST API client.

    Args:
        api_key: DeepL authentication key
        api_url: API base URL (free and pro plans differ)
        rate_limiter: Pacing and backoff policy shared by all requests
        max_retries: Retries for 429, 5xx and connection failures
        timeout: Request timeout in seconds
        transport: Optional httpx transport, mainly for tests
    """

    name = "DeepL"

    def __init__(
        self,
        api_key: str,
        api_url: str = DEFAULT_DEEPL_URL,
        rate_limiter: Optional[RateLimiter] = None,
        max_retries: int = 3,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_url = api_url.rstrip("/")
        self.rate_limiter = rate_limiter or RateLimiter()
        self.max_retries = max_retries
        self._client = httpx.AsyncClient(
            headers={"Authorization": f"DeepL-Auth-Key {api_key}"},
            timeout=httpx.Timeout(timeout, connect=10.0),
            transport=transport,
        )
        if api_key and len(api_key) > 8:
            logger.info(f"Using DeepL API key: {api_key[:4]}...{api_key[-4:]}")
        else:
            logger.warning("DeepL API key missing or invalid")

    async def __aenter__(self) -> "DeepLProvider":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    @staticmethod
    def build_form(
        text: str,
        target_lang: str,
        source_lang: Optional[str],
        options: TranslationOptions
    ) -> Dict[str, str]:
        """Form fields for ``POST /translate``."""
        form = {"text": text, "target_lang": target_lang}

        if not is_auto(source_lang):
            form["source_lang"] = source_lang
        if options.formality and options.formality != "default":
            form["formality"] = options.formality
        if options.tag_handling:
            form["tag_handling"] = "xml"
        if options.glossary_id:
            form["glossary_id"] = options.glossary_id
        if options.preserve_formatting:
            form["preserve_formatting"] = "1"
        form["split_sentences"] = "1" if options.split_sentences else "0"

        return form

    async def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        try:
            response = await self._client.request(method, f"{self.api_url}{path}", **kwargs)
        except httpx.TransportError as e:
            if isinstance(e, httpx.ConnectError):
                raise ProviderConnectionError(
                    "Connection error with the translation service. Please check your internet connection."
                ) from e
            raise ProviderConnectionError() from e

        if not response.is_success:
            raise status_error(response.status_code, response.reason_phrase, _retry_after(response))

        try:
            body = response.json()
        except ValueError:
            body = None
        if not isinstance(body, dict):
            raise ProviderResponseError("Empty response from DeepL server", response.status_code)
        return body

    async def translate(
        self,
        text: str,
        target_lang: str,
        source_lang: Optional[str] = None,
        options: Optional[TranslationOptions] = None,
    ) -> str:
        """
        Translate text with DeepL.

        Returns:
            Translated text

        Raises:
            TranslationError: on any provider failure
        """
        form = self.build_form(text, target_lang, source_lang, options or TranslationOptions())

        async def send() -> str:
            body = await self._request("POST", "/translate", data=form)
            translations = body.get("translations")
            if not translations or not isinstance(translations, list):
                raise ProviderResponseError()
            translated = translations[0].get("text") if isinstance(translations[0], dict) else None
            if translated is None:
                raise ProviderResponseError()
            return translated

        logger.debug(f"Sending {len(text)} chars to DeepL ({source_lang or 'auto'} -> {target_lang})")
        return await call_with_retries(send, self.rate_limiter, self.max_retries, self.name)

    async def list_glossaries(self) -> List[Dict[str, Any]]:
        """
        Glossaries available to the account.

        Returns:
            Glossary dicts (glossary_id, name, source_lang, target_lang, ...);
            empty list if the provider call fails
        """
        try:
            body = await self._request("GET", "/glossaries")
        except TranslationError as e:
            logger.error(f"Error fetching DeepL glossaries: {e}")
            return []
        glossaries = body.get("glossaries")
        return glossaries if isinstance(glossaries, list) else []


def _build_llm_prompt(target_lang: str, source_lang: Optional[str], options: TranslationOptions) -> str:
    source = "the detected source language" if is_auto(source_lang) else source_lang
    tone = ""
    if options.formality in ("more", "prefer_more"):
        tone = "\n5. Use a formal register"
    elif options.formality in ("less", "prefer_less"):
        tone = "\n5. Use an informal register"

    return f"""You are a professional subtitle translator. Translate from {source} to {target_lang}.

## Rules:
1. Keep every <SUBT:n>, </SUBT:n>, <LINE:n>, </LINE:n> and <SUBT_DIV> marker exactly as it is
2. Translate only the text between <LINE:n> and </LINE:n>
3. Keep the same number of lines and blocks
4. Output the marked text only, no explanation{tone}"""


class OpenAIProvider:
    """
    Chat-completions provider for OpenAI-compatible APIs.

    Args:
        client: AsyncOpenAI client (see ``create_openai_client``)
        model: Model name
        rate_limiter: Pacing and backoff policy
        max_retries: Retries for 429, 5xx and connection failures
        temperature: Sampling temperature
    """

    name = "OpenAI"

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str,
        rate_limiter: Optional[RateLimiter] = None,
        max_retries: int = 3,
        temperature: float = 0.3,
    ):
        self.client = client
        self.model = model
        self.rate_limiter = rate_limiter or RateLimiter()
        self.max_retries = max_retries
        self.temperature = temperature

    async def __aenter__(self) -> "OpenAIProvider":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.close()

    async def translate(
        self,
        text: str,
        target_lang: str,
        source_lang: Optional[str] = None,
        options: Optional[TranslationOptions] = None,
    ) -> str:
        messages = [
            {"role": "system", "content": _build_llm_prompt(target_lang, source_lang, options or TranslationOptions())},
            {"role": "user", "content": text},
        ]

        async def send() -> str:
            try:
                response = await self.client.chat.completions.create(
                    model=self.model,
                    messages=messages,
                    temperature=self.temperature,
                )
            except RateLimitError as e:
                raise status_error(429) from e
            except (AuthenticationError, PermissionDeniedError) as e:
                raise status_error(e.status_code) from e
            except APIConnectionError as e:
                raise ProviderConnectionError() from e
            except APIStatusError as e:
                raise status_error(e.status_code, str(e.message)) from e

            content = response.choices[0].message.content if response.choices else None
            if not content:
                raise ProviderResponseError()
            return content.strip()

        return await call_with_retries(send, self.rate_limiter, self.max_retries, self.name)


def create_openai_client(
    api_key: str,
    base_url: Optional[str] = None,
    timeout: float = 60.0
) -> AsyncOpenAI:
    """
    Create an AsyncOpenAI client.

    SDK retries are disabled; retries go through the provider's RateLimiter.
    """
    return AsyncOpenAI(
        api_key=api_key,
        base_url=base_url,
        timeout=timeout,
        max_retries=0,
    )
