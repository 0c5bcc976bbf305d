"""Unit tests for the HTTP-backed providers."""

import asyncio
import json

import aiohttp
import pytest

from aigateway.exceptions import ProviderError
from aigateway.providers import GeminiProvider, GroqProvider, OpenAIProvider


class FakeResponse:
    """Minimal stand-in for ``aiohttp.ClientResponse``."""

    def __init__(self, status=200, body=None, text=None):
        self.status = status
        self._text = text if text is not None else json.dumps(body)

    async def text(self):
        return self._text

    async def json(self, content_type=None):
        return json.loads(self._text)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    """Records posts and replays a canned response or error."""

    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []
        self.closed = False

    def post(self, url, headers=None, json=None, timeout=None):
        self.calls.append({"url": url, "headers": headers, "json": json, "timeout": timeout})
        if self.error is not None:
            raise self.error
        return self.response

    async def close(self):
        self.closed = True


def with_session(provider, session):
    provider._session = session
    return provider


def gemini(**config):
    return GeminiProvider({"api_key": "AIzaSyTestKey123", **config})


# ============================================================================
# Gemini
# ============================================================================


class TestGeminiProvider:
    """Test the primary Gemini client."""

    def test_requires_api_key(self):
        with pytest.raises(ValueError):
            GeminiProvider({})

    def test_defaults(self):
        provider = gemini()
        assert provider.model == "gemini-2.0-flash-exp"
        assert provider.key_label == "AIzaSyTe..."
        assert provider.is_available() is True

    @pytest.mark.asyncio
    async def test_extracts_candidate_text(self):
        body = {
            "candidates": [{
                "content": {"parts": [{"text": "Patch "}, {"text": "OpenSSL"}]},
                "finishReason": "STOP",
            }],
            "usageMetadata": {"totalTokenCount": 12},
        }
        session = FakeSession(FakeResponse(200, body))
        provider = with_session(gemini(), session)

        response = await provider.generate_content("What should I patch?")

        assert response.content == "Patch OpenSSL"
        assert response.provider == "Gemini"
        assert response.metadata["finish_reason"] == "STOP"

    @pytest.mark.asyncio
    async def test_key_sent_in_header_not_url(self):
        session = FakeSession(FakeResponse(200, {"candidates": []}))
        provider = with_session(gemini(model="gemini-test"), session)

        await provider.generate_content("ping")

        call = session.calls[0]
        assert call["url"].endswith("/models/gemini-test:generateContent")
        assert "AIzaSyTestKey123" not in call["url"]
        assert call["headers"]["x-goog-api-key"] == "AIzaSyTestKey123"
        assert call["json"]["contents"][0]["parts"][0]["text"] == "ping"

    @pytest.mark.asyncio
    async def test_no_candidates_returns_empty_content(self):
        session = FakeSession(FakeResponse(200, {"candidates": []}))
        provider = with_session(gemini(), session)

        response = await provider.generate_content("ping")

        assert response.content == ""

    @pytest.mark.asyncio
    async def test_blocked_prompt_raises(self):
        session = FakeSession(FakeResponse(200, {"promptFeedback": {"blockReason": "SAFETY"}}))
        provider = with_session(gemini(), session)

        with pytest.raises(ProviderError, match="SAFETY"):
            await provider.generate_content("ping")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [
        {"candidates": ["oops"]},
        {"candidates": "oops"},
        {"candidates": [{"content": "oops"}]},
        {"candidates": [{"content": {"parts": "oops"}}]},
    ])
    async def test_malformed_candidates_raise_provider_error(self, body):
        session = FakeSession(FakeResponse(200, body))
        provider = with_session(gemini(), session)

        with pytest.raises(ProviderError, match="Malformed response body"):
            await provider.generate_content("ping")

    @pytest.mark.asyncio
    async def test_rate_limit_status_is_preserved(self):
        body = {"error": {"code": 429, "message": "Resource has been exhausted"}}
        session = FakeSession(FakeResponse(429, body))
        provider = with_session(gemini(), session)

        with pytest.raises(ProviderError) as exc_info:
            await provider.generate_content("ping")

        assert exc_info.value.status_code == 429
        assert "Resource has been exhausted" in str(exc_info.value)


# ============================================================================
# HTTP plumbing
# ============================================================================


class TestHTTPErrors:
    """Test transport error mapping."""

    @pytest.mark.asyncio
    async def test_connection_error(self):
        session = FakeSession(error=aiohttp.ClientConnectionError("refused"))
        provider = with_session(gemini(), session)

        with pytest.raises(ProviderError, match="Connection error"):
            await provider.generate_content("ping")

    @pytest.mark.asyncio
    async def test_timeout(self):
        session = FakeSession(error=asyncio.TimeoutError())
        provider = with_session(gemini(timeout_seconds=5), session)

        with pytest.raises(ProviderError, match="timed out after 5s"):
            await provider.generate_content("ping")

    @pytest.mark.asyncio
    async def test_malformed_body(self):
        session = FakeSession(FakeResponse(200, text="<html>oops</html>"))
        provider = with_session(gemini(), session)

        with pytest.raises(ProviderError, match="Malformed"):
            await provider.generate_content("ping")

    @pytest.mark.asyncio
    async def test_non_json_error_body(self):
        session = FakeSession(FakeResponse(502, text="Bad Gateway"))
        provider = with_session(gemini(), session)

        with pytest.raises(ProviderError) as exc_info:
            await provider.generate_content("ping")

        assert exc_info.value.status_code == 502
        assert "Bad Gateway" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_cleanup_closes_session(self):
        session = FakeSession()
        provider = with_session(gemini(), session)

        await provider.cleanup()

        assert session.closed is True
        assert provider._session is None


# ============================================================================
# OpenAI-compatible fallbacks
# ============================================================================


class TestOpenAICompatibleProviders:
    """Test Groq and OpenAI clients."""

    def test_defaults(self):
        groq = GroqProvider({"api_key": "gsk_test"})
        openai = OpenAIProvider({"api_key": "sk-test"})

        assert groq.model == "llama3-8b-8192"
        assert groq.base_url == "https://api.groq.com/openai/v1"
        assert openai.model == "gpt-3.5-turbo"
        assert openai.base_url == "https://api.openai.com/v1"

    def test_unavailable_without_key(self):
        assert GroqProvider({"api_key": None}).is_available() is False

    @pytest.mark.asyncio
    async def test_missing_key_raises(self):
        with pytest.raises(ProviderError, match="not configured"):
            await GroqProvider({"api_key": None}).generate_content("ping")

    @pytest.mark.asyncio
    async def test_request_shape_and_stripped_content(self):
        body = {"choices": [{"message": {"content": "  rotate the keys \n"}}]}
        session = FakeSession(FakeResponse(200, body))
        provider = with_session(GroqProvider({"api_key": "gsk_test"}), session)

        response = await provider.generate_content("ping")

        assert response.content == "rotate the keys"
        call = session.calls[0]
        assert call["url"] == "https://api.groq.com/openai/v1/chat/completions"
        assert call["headers"]["Authorization"] == "Bearer gsk_test"
        assert call["json"]["model"] == "llama3-8b-8192"
        assert call["json"]["messages"] == [{"role": "user", "content": "ping"}]
        assert call["json"]["max_tokens"] == 1000
        assert call["json"]["temperature"] == 0.7

    @pytest.mark.asyncio
    async def test_missing_content_raises(self):
        session = FakeSession(FakeResponse(200, {"choices": []}))
        provider = with_session(OpenAIProvider({"api_key": "sk-test"}), session)

        with pytest.raises(ProviderError, match="No response content from OpenAI"):
            await provider.generate_content("ping")

    @pytest.mark.asyncio
    async def test_upstream_error_message(self):
        body = {"error": {"message": "Invalid API key"}}
        session = FakeSession(FakeResponse(401, body))
        provider = with_session(OpenAIProvider({"api_key": "sk-test"}), session)

        with pytest.raises(ProviderError) as exc_info:
            await provider.generate_content("ping")

        assert exc_info.value.provider == "OpenAI"
        assert exc_info.value.status_code == 401
        assert "Invalid API key" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_get_session_is_reused(self, monkeypatch):
        created = []

        class _Session(FakeSession):
            def __init__(self, *args, **kwargs):
                super().__init__()
                created.append(self)

        monkeypatch.setattr("aigateway.providers.http_base.aiohttp.ClientSession", _Session)
        provider = OpenAIProvider({"api_key": "sk-test"})

        first = await provider._get_session()
        second = await provider._get_session()

        assert first is second
        assert len(created) == 1
