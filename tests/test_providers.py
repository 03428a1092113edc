"""Tests for provider clients."""

import asyncio
from types import SimpleNamespace
from urllib.parse import parse_qs

import httpx
import pytest
from openai import AuthenticationError, RateLimitError

from subtitle_translator.exceptions import (
    ProviderAuthError,
    ProviderConnectionError,
    ProviderError,
    ProviderRateLimitError,
    ProviderResponseError,
)
from subtitle_translator.providers import (
    DeepLProvider,
    ErrorType,
    OpenAIProvider,
    TranslationOptions,
    classify_error,
)
from subtitle_translator.rate_limit import RateLimiter


async def no_sleep(seconds):
    return None


def fast_limiter():
    return RateLimiter(min_interval=0, sleep=no_sleep)


def make_deepl(handler, max_retries=0):
    return DeepLProvider(
        "test-key-123456",
        "https://deepl.test/v2",
        rate_limiter=fast_limiter(),
        max_retries=max_retries,
        transport=httpx.MockTransport(handler),
    )


def run_translate(provider, *args, **kwargs):
    async def go():
        try:
            return await provider.translate(*args, **kwargs)
        finally:
            await provider.aclose()
    return asyncio.run(go())


class TestBuildForm:

    def test_defaults(self):
        form = DeepLProvider.build_form("Hi", "ES", None, TranslationOptions())
        assert form == {
            "text": "Hi",
            "target_lang": "ES",
            "tag_handling": "xml",
            "preserve_formatting": "1",
            "split_sentences": "1",
        }

    def test_auto_source_omitted(self):
        form = DeepLProvider.build_form("Hi", "ES", "auto", TranslationOptions())
        assert "source_lang" not in form

    def test_all_options(self):
        options = TranslationOptions(
            formality="more",
            tag_handling=False,
            glossary_id="g-1",
            preserve_formatting=False,
            split_sentences=False,
        )
        form = DeepLProvider.build_form("Hi", "DE", "EN", options)
        assert form == {
            "text": "Hi",
            "target_lang": "DE",
            "source_lang": "EN",
            "formality": "more",
            "glossary_id": "g-1",
            "split_sentences": "0",
        }


class TestDeepLTranslate:

    def test_success(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["form"] = parse_qs(request.content.decode())
            return httpx.Response(200, json={"translations": [{"text": "Hola"}]})

        result = run_translate(make_deepl(handler), "Hello", "ES", "EN")

        assert result == "Hola"
        assert seen["url"] == "https://deepl.test/v2/translate"
        assert seen["auth"] == "DeepL-Auth-Key test-key-123456"
        assert seen["form"]["text"] == ["Hello"]
        assert seen["form"]["source_lang"] == ["EN"]

    @pytest.mark.parametrize("status,exc,text", [
        (401, ProviderAuthError, "Invalid API key"),
        (403, ProviderAuthError, "Access denied"),
        (429, ProviderRateLimitError, "Usage limit exceeded"),
        (456, ProviderError, "Error in the translation service"),
    ])
    def test_status_errors(self, status, exc, text):
        provider = make_deepl(lambda request: httpx.Response(status))
        with pytest.raises(exc) as info:
            run_translate(provider, "Hello", "ES")
        assert text in str(info.value)
        assert info.value.status_code == status

    def test_empty_translations(self):
        provider = make_deepl(lambda request: httpx.Response(200, json={"translations": []}))
        with pytest.raises(ProviderResponseError, match="No translations received"):
            run_translate(provider, "Hello", "ES")

    def test_missing_body(self):
        provider = make_deepl(lambda request: httpx.Response(200, content=b""))
        with pytest.raises(ProviderResponseError):
            run_translate(provider, "Hello", "ES")

    def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(ProviderConnectionError):
            run_translate(make_deepl(handler), "Hello", "ES")

    def test_retries_rate_limit_then_succeeds(self):
        calls = []

        def handler(request):
            calls.append(1)
            if len(calls) < 3:
                return httpx.Response(429, headers={"Retry-After": "0"})
            return httpx.Response(200, json={"translations": [{"text": "Hola"}]})

        assert run_translate(make_deepl(handler, max_retries=3), "Hello", "ES") == "Hola"
        assert len(calls) == 3

    def test_auth_error_not_retried(self):
        calls = []

        def handler(request):
            calls.append(1)
            return httpx.Response(401)

        with pytest.raises(ProviderAuthError):
            run_translate(make_deepl(handler, max_retries=3), "Hello", "ES")
        assert len(calls) == 1

    def test_gives_up_after_max_retries(self):
        calls = []

        def handler(request):
            calls.append(1)
            return httpx.Response(503)

        with pytest.raises(ProviderError):
            run_translate(make_deepl(handler, max_retries=2), "Hello", "ES")
        assert len(calls) == 3


class TestListGlossaries:

    def test_returns_glossaries(self):
        glossaries = [{"glossary_id": "g-1", "name": "Names"}]
        provider = make_deepl(lambda request: httpx.Response(200, json={"glossaries": glossaries}))

        async def go():
            try:
                return await provider.list_glossaries()
            finally:
                await provider.aclose()

        assert asyncio.run(go()) == glossaries

    def test_error_returns_empty(self):
        provider = make_deepl(lambda request: httpx.Response(403))

        async def go():
            try:
                return await provider.list_glossaries()
            finally:
                await provider.aclose()

        assert asyncio.run(go()) == []


class TestClassifyError:

    def test_categories(self):
        assert classify_error(ProviderRateLimitError("x")) == (ErrorType.RATE_LIMIT, True)
        assert classify_error(ProviderConnectionError()) == (ErrorType.CONNECTION, True)
        assert classify_error(ProviderAuthError("x", 401)) == (ErrorType.AUTH, False)
        assert classify_error(ProviderResponseError()) == (ErrorType.PROTOCOL, False)
        assert classify_error(ProviderError("x", 502)) == (ErrorType.SERVER, True)
        assert classify_error(ProviderError("x", 400)) == (ErrorType.UNKNOWN, False)
        assert classify_error(ValueError("x")) == (ErrorType.UNKNOWN, False)


class FakeCompletions:

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        message = SimpleNamespace(content=outcome)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class FakeOpenAIClient:

    def __init__(self, outcomes):
        self.chat = SimpleNamespace(completions=FakeCompletions(outcomes))

    async def close(self):
        pass


def openai_status_error(cls, status):
    request = httpx.Request("POST", "https://api.test/v1/chat/completions")
    response = httpx.Response(status, request=request)
    return cls("failed", response=response, body=None)


class TestOpenAIProvider:

    def test_success(self):
        client = FakeOpenAIClient(["  <SUBT:1>\n<LINE:1>Hola</LINE:1>\n</SUBT:1>  "])
        provider = OpenAIProvider(client, "test-model", fast_limiter(), max_retries=0)

        result = run_translate(provider, "<SUBT:1>\n<LINE:1>Hi</LINE:1>\n</SUBT:1>", "ES", "EN")

        assert result.startswith("<SUBT:1>")
        call = client.chat.completions.calls[0]
        assert call["model"] == "test-model"
        assert "ES" in call["messages"][0]["content"]
        assert call["messages"][1]["content"].startswith("<SUBT:1>")

    def test_formality_in_prompt(self):
        client = FakeOpenAIClient(["ok"])
        provider = OpenAIProvider(client, "m", fast_limiter(), max_retries=0)
        run_translate(provider, "Hi", "DE", None, TranslationOptions(formality="more"))
        assert "formal" in client.chat.completions.calls[0]["messages"][0]["content"]

    def test_empty_content(self):
        provider = OpenAIProvider(FakeOpenAIClient([""]), "m", fast_limiter(), max_retries=0)
        with pytest.raises(ProviderResponseError):
            run_translate(provider, "Hi", "ES")

    def test_auth_error(self):
        client = FakeOpenAIClient([openai_status_error(AuthenticationError, 401)])
        provider = OpenAIProvider(client, "m", fast_limiter(), max_retries=3)
        with pytest.raises(ProviderAuthError, match="Invalid API key"):
            run_translate(provider, "Hi", "ES")

    def test_rate_limit_retried(self):
        client = FakeOpenAIClient([openai_status_error(RateLimitError, 429), "Hola"])
        provider = OpenAIProvider(client, "m", fast_limiter(), max_retries=1)
        assert run_translate(provider, "Hi", "ES") == "Hola"
        assert len(client.chat.completions.calls) == 2
