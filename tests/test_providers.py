"""Tests for vendor providers: status, wire formats and error classification.

HTTP is mocked by patching httpx.Client in the providers module; responses
are real httpx.Response objects.
"""

from __future__ import annotations

import time
from unittest.mock import patch

import httpx
import pytest
from prometheus_client import REGISTRY

from llm_rotator.gateway.cooldown import CooldownPolicy
from llm_rotator.gateway.errors import (
    ProviderError,
    ProviderFailureError,
    ProviderNotEnabledError,
    ProviderTimeoutError,
    RateLimitedError,
)
from llm_rotator.gateway.providers import (
    PROVIDER_REGISTRY,
    ChatCompletionProvider,
    CohereProvider,
    FireworksProvider,
    GeminiProvider,
    GroqProvider,
    HuggingFaceProvider,
    MistralProvider,
    OpenRouterProvider,
    get_provider,
)
from llm_rotator.gateway.types import ProviderStatus


def _calls(provider: str, outcome: str) -> float:
    return REGISTRY.get_sample_value("llm_provider_calls_total", {"provider": provider, "outcome": outcome}) or 0.0


def _posted(client):
    """(url, kwargs) of the single POST made through the mocked client."""
    assert client.post.call_count == 1
    args, kwargs = client.post.call_args
    return args[0], kwargs


# ==========================================================================
# Test: Registry
# ==========================================================================


class TestRegistry:
    """Test provider registry and vendor defaults."""

    def test_priority_order(self):
        assert list(PROVIDER_REGISTRY) == [
            "groq",
            "mistral",
            "openrouter",
            "huggingface",
            "fireworks",
            "cohere",
            "gemini",
        ]

    def test_get_provider(self):
        provider = get_provider("mistral", "key")
        assert isinstance(provider, MistralProvider)
        assert provider.api_key == "key"

    def test_get_provider_with_kwargs(self):
        provider = get_provider("groq", "key", model="llama-3.1-8b-instant", rpm_limit=5)
        assert provider.model == "llama-3.1-8b-instant"
        assert provider.rpm_limit == 5

    def test_unknown_provider(self):
        with pytest.raises(ValueError, match="No provider registered"):
            get_provider("unknown", "key")

    @pytest.mark.parametrize(
        "cls, model, rpm",
        [
            (GroqProvider, "llama-3.3-70b-versatile", 100),
            (MistralProvider, "mistral-small-latest", 60),
            (OpenRouterProvider, "qwen/qwen3-next-80b-a3b-instruct:free", 20),
            (HuggingFaceProvider, "Qwen/Qwen2.5-72B-Instruct", 60),
            (FireworksProvider, "accounts/fireworks/models/llama-v3p3-70b-instruct", 20),
            (CohereProvider, "command-r-plus", 20),
            (GeminiProvider, "gemini-2.0-flash", 3),
        ],
    )
    def test_vendor_defaults(self, cls, model, rpm):
        provider = cls(api_key="key")
        assert provider.model == model
        assert provider.rpm_limit == rpm

    def test_gemini_is_not_chat_completion(self):
        assert not issubclass(GeminiProvider, ChatCompletionProvider)
        assert issubclass(CohereProvider, ChatCompletionProvider)


# ==========================================================================
# Test: Local status (no network)
# ==========================================================================


class TestProviderStatus:
    """Test local status derivation (no network)."""

    @pytest.mark.parametrize("key", [None, "", "   "])
    def test_disabled_without_key(self, key):
        provider = GroqProvider(api_key=key)
        assert provider.is_enabled() is False
        assert provider.get_status() == ProviderStatus.DISABLED
        assert provider.is_available() is False

    def test_available(self):
        provider = GroqProvider(api_key="key")
        assert provider.get_status() == ProviderStatus.AVAILABLE
        assert provider.is_available() is True

    def test_cooldown_means_rate_limited(self):
        provider = GroqProvider(api_key="key")
        provider.set_cooldown(60)
        assert provider.get_status() == ProviderStatus.RATE_LIMITED
        assert provider.is_available() is False

    def test_rpm_ceiling_means_rate_limited(self):
        provider = GeminiProvider(api_key="key")
        provider.stats.record_call(True)
        provider.stats.record_call(True)
        assert provider.is_available() is True
        provider.stats.record_call(True)
        assert provider.get_status() == ProviderStatus.RATE_LIMITED

    def test_old_calls_do_not_count(self):
        provider = GeminiProvider(api_key="key")
        now = time.monotonic()
        for _ in range(3):
            provider.stats._recent_calls.append(now - 90)
        assert provider.is_available() is True

    def test_disabled_wins_over_cooldown(self):
        provider = GroqProvider(api_key="")
        provider.set_cooldown(60)
        assert provider.get_status() == ProviderStatus.DISABLED

    def test_status_info(self):
        provider = MistralProvider(api_key="key")
        provider.stats.record_call(True)
        provider.stats.record_call(False, "boom")
        info = provider.status_info()
        assert info.name == "mistral"
        assert info.model == "mistral-small-latest"
        assert info.status == "AVAILABLE"
        assert info.available is True
        assert info.calls_made == 2
        assert info.calls_failed == 1
        assert info.success_rate == 50.0
        assert info.calls_last_minute == 2
        assert info.rpm_limit == 60
        assert info.to_dict()["status"] == "AVAILABLE"

    def test_status_queries_are_read_only(self):
        provider = CohereProvider(api_key="key")
        provider.stats.record_call(True)
        first = provider.status_info()
        second = provider.status_info()
        assert first == second
        assert provider.stats.calls_made == 1

    def test_status_info_built_from_one_snapshot(self):
        provider = GroqProvider(api_key="key")
        snapshot = {
            "on_cooldown": False,
            "calls_last_minute": 100,
            "success_rate": 75.0,
            "calls_made": 4,
            "calls_succeeded": 3,
            "calls_failed": 1,
        }

        with patch.object(provider.stats, "snapshot", return_value=snapshot) as mock_snapshot, patch.object(
            provider.stats, "calls_in_last_minute", side_effect=AssertionError("read outside snapshot")
        ), patch.object(provider.stats, "is_on_cooldown", side_effect=AssertionError("read outside snapshot")):
            info = provider.status_info()

        mock_snapshot.assert_called_once_with()
        assert info.status == "RATE_LIMITED"
        assert info.available is False
        assert info.calls_last_minute == 100
        assert info.success_rate == 75.0
        assert (info.calls_made, info.calls_succeeded, info.calls_failed) == (4, 3, 1)

    def test_status_info_reports_cooldown_from_snapshot(self):
        provider = MistralProvider(api_key="key")
        provider.set_cooldown(60)
        info = provider.status_info()
        assert info.status == "RATE_LIMITED"
        assert info.available is False
        assert info.calls_last_minute == 0


# ==========================================================================
# Test: Wire formats
# ==========================================================================


class TestWireFormats:
    """Test per-vendor URL, headers, body and parsing (mocked HTTP)."""

    def test_groq(self, http_client, chat_response):
        http_client.post.return_value = chat_response("groq says hi")
        provider = GroqProvider(api_key="gsk-test")

        assert provider.generate("Hello", timeout_seconds=12) == "groq says hi"

        url, kwargs = _posted(http_client)
        assert url == "https://api.groq.com/openai/v1/chat/completions"
        assert kwargs["headers"]["Authorization"] == "Bearer gsk-test"
        assert kwargs["headers"]["Content-Type"] == "application/json"
        assert kwargs["json"] == {
            "model": "llama-3.3-70b-versatile",
            "messages": [{"role": "user", "content": "Hello"}],
            "temperature": 0.7,
            "max_tokens": 2048,
        }
        http_client.mock_client_cls.assert_called_once_with(timeout=12)

    def test_mistral(self, http_client, chat_response):
        http_client.post.return_value = chat_response("bonjour")
        provider = MistralProvider(api_key="m-key")

        assert provider.generate("Hello") == "bonjour"

        url, kwargs = _posted(http_client)
        assert url == "https://api.mistral.ai/v1/chat/completions"
        assert kwargs["headers"]["Authorization"] == "Bearer m-key"
        assert kwargs["json"]["model"] == "mistral-small-latest"
        assert kwargs["json"]["max_tokens"] == 2048

    def test_openrouter_attribution_headers(self, http_client, chat_response):
        http_client.post.return_value = chat_response()
        provider = OpenRouterProvider(api_key="or-key", referer="https://example.org", title="My App")

        provider.generate("Hello")

        url, kwargs = _posted(http_client)
        assert url == "https://openrouter.ai/api/v1/chat/completions"
        assert kwargs["headers"]["Authorization"] == "Bearer or-key"
        assert kwargs["headers"]["HTTP-Referer"] == "https://example.org"
        assert kwargs["headers"]["X-Title"] == "My App"
        assert kwargs["json"]["model"] == "qwen/qwen3-next-80b-a3b-instruct:free"

    def test_huggingface_model_in_path(self, http_client, chat_response):
        http_client.post.return_value = chat_response()
        provider = HuggingFaceProvider(api_key="hf_key")

        provider.generate("Hello")

        url, kwargs = _posted(http_client)
        assert url == (
            "https://router.huggingface.co/hf-inference/models/Qwen/Qwen2.5-72B-Instruct/v1/chat/completions"
        )
        assert kwargs["json"]["max_tokens"] == 2048
        assert kwargs["json"]["temperature"] == 0.7

    def test_huggingface_model_override_changes_url(self):
        provider = HuggingFaceProvider(api_key="hf_key", model="meta-llama/Llama-3.1-8B-Instruct")
        assert "/models/meta-llama/Llama-3.1-8B-Instruct/v1/" in provider.base_url

    def test_fireworks_body(self, http_client, chat_response):
        http_client.post.return_value = chat_response()
        provider = FireworksProvider(api_key="fw-key")

        provider.generate("Hello")

        url, kwargs = _posted(http_client)
        assert url == "https://api.fireworks.ai/inference/v1/chat/completions"
        assert kwargs["json"] == {
            "model": "accounts/fireworks/models/llama-v3p3-70b-instruct",
            "messages": [{"role": "user", "content": "Hello"}],
            "max_tokens": 4096,
        }

    def test_cohere(self, http_client, make_response):
        http_client.post.return_value = make_response(
            200,
            json_data={"id": "x", "message": {"role": "assistant", "content": [{"type": "text", "text": "hey"}]}},
        )
        provider = CohereProvider(api_key="co-key")

        assert provider.generate("Hello") == "hey"

        url, kwargs = _posted(http_client)
        assert url == "https://api.cohere.ai/v2/chat"
        assert kwargs["headers"]["Authorization"] == "Bearer co-key"
        assert kwargs["json"] == {
            "model": "command-r-plus",
            "messages": [{"role": "user", "content": "Hello"}],
        }

    def test_gemini(self, http_client, make_response):
        http_client.post.return_value = make_response(
            200,
            json_data={"candidates": [{"content": {"parts": [{"text": "gemini text"}]}, "finishReason": "STOP"}]},
        )
        provider = GeminiProvider(api_key="AIza-secret")

        assert provider.generate("Hello") == "gemini text"

        url, kwargs = _posted(http_client)
        assert url == "https://generativelanguage.googleapis.com/v1beta/models/gemini-2.0-flash:generateContent"
        assert kwargs["params"] == {"key": "AIza-secret"}
        assert "Authorization" not in kwargs["headers"]
        assert kwargs["json"] == {
            "contents": [{"parts": [{"text": "Hello"}]}],
            "generationConfig": {"temperature": 0.7, "maxOutputTokens": 4096},
        }

    def test_model_override(self, http_client, chat_response):
        http_client.post.return_value = chat_response()
        provider = GroqProvider(api_key="key", model="llama-3.1-8b-instant")

        provider.generate("Hello")

        _, kwargs = _posted(http_client)
        assert kwargs["json"]["model"] == "llama-3.1-8b-instant"

    def test_success_updates_stats_and_metrics(self, http_client, chat_response):
        http_client.post.return_value = chat_response("ok")
        provider = GroqProvider(api_key="key")
        before = _calls("groq", "success")

        provider.generate("Hello")

        assert provider.stats.calls_made == 1
        assert provider.stats.calls_succeeded == 1
        assert provider.stats.calls_in_last_minute() == 1
        assert _calls("groq", "success") == before + 1


# ==========================================================================
# Test: Error classification
# ==========================================================================


class TestErrorClassification:
    """Test failure classification, stats and cooldowns."""

    def test_not_enabled_never_touches_network(self, http_client):
        provider = MistralProvider(api_key="")

        with pytest.raises(ProviderNotEnabledError) as exc_info:
            provider.generate("Hello")

        assert exc_info.value.provider_name == "mistral"
        assert exc_info.value.rate_limited is False
        assert exc_info.value.timeout is False
        http_client.mock_client_cls.assert_not_called()
        assert provider.stats.calls_made == 0

    def test_rate_limited(self, http_client, make_response):
        http_client.post.return_value = make_response(429, json_data={"error": {"message": "slow down"}})
        provider = GroqProvider(api_key="key")

        with pytest.raises(RateLimitedError) as exc_info:
            provider.generate("Hello")

        err = exc_info.value
        assert err.rate_limited is True
        assert err.timeout is False
        assert err.provider_name == "groq"
        assert err.cooldown_seconds == 60.0
        assert provider.get_status() == ProviderStatus.RATE_LIMITED
        assert provider.stats.calls_failed == 1
        assert provider.stats.last_error == "HTTP 429: slow down"

    def test_rate_limited_honours_retry_after(self, http_client, make_response):
        http_client.post.return_value = make_response(429, text="", headers={"Retry-After": "5"})
        provider = MistralProvider(api_key="key")

        with pytest.raises(RateLimitedError) as exc_info:
            provider.generate("Hello")

        assert exc_info.value.retry_after == 5.0
        assert exc_info.value.cooldown_seconds == 5.0
        assert 4.0 < provider.stats.cooldown_remaining() <= 5.0

    def test_gemini_rate_limit_cooldown_is_longer(self, http_client, make_response):
        http_client.post.return_value = make_response(429, json_data={"error": {"message": "quota"}})
        provider = GeminiProvider(api_key="key")

        with pytest.raises(RateLimitedError) as exc_info:
            provider.generate("Hello")

        assert exc_info.value.cooldown_seconds == 120.0
        assert provider.stats.cooldown_remaining() > 119.0

    def test_gemini_floor_beats_short_retry_after(self, http_client, make_response):
        http_client.post.return_value = make_response(429, text="", headers={"Retry-After": "5"})
        provider = GeminiProvider(api_key="key")

        with pytest.raises(RateLimitedError) as exc_info:
            provider.generate("Hello")

        assert exc_info.value.retry_after == 5.0
        assert exc_info.value.cooldown_seconds == 120.0
        assert provider.stats.cooldown_remaining() > 119.0

    def test_gemini_honours_longer_retry_after(self, http_client, make_response):
        http_client.post.return_value = make_response(429, text="", headers={"Retry-After": "200"})
        provider = GeminiProvider(api_key="key")

        with pytest.raises(RateLimitedError) as exc_info:
            provider.generate("Hello")

        assert exc_info.value.cooldown_seconds == 200.0

    def test_server_error_sets_short_cooldown(self, http_client, make_response):
        http_client.post.return_value = make_response(503, text="upstream overloaded")
        provider = GroqProvider(api_key="key")

        with pytest.raises(ProviderFailureError) as exc_info:
            provider.generate("Hello")

        err = exc_info.value
        assert err.rate_limited is False
        assert err.timeout is False
        assert err.status_code == 503
        assert err.message == "HTTP 503: upstream overloaded"
        assert 29.0 < provider.stats.cooldown_remaining() <= 30.0
        assert provider.get_status() == ProviderStatus.RATE_LIMITED

    def test_server_error_cooldown_from_policy(self, http_client, make_response):
        http_client.post.return_value = make_response(500, text="")
        provider = GroqProvider(api_key="key", cooldown_policy=CooldownPolicy(server_error_seconds=7))

        with pytest.raises(ProviderFailureError):
            provider.generate("Hello")

        assert 6.0 < provider.stats.cooldown_remaining() <= 7.0

    def test_client_error_no_cooldown(self, http_client, make_response):
        http_client.post.return_value = make_response(401, json_data={"error": "invalid api key"})
        provider = CohereProvider(api_key="key")

        with pytest.raises(ProviderFailureError) as exc_info:
            provider.generate("Hello")

        assert exc_info.value.status_code == 401
        assert "invalid api key" in exc_info.value.message
        assert provider.stats.is_on_cooldown() is False
        assert provider.stats.last_error == exc_info.value.message

    def test_timeout(self, http_client):
        http_client.post.side_effect = httpx.ReadTimeout("timed out")
        provider = GroqProvider(api_key="key")
        before = _calls("groq", "timeout")

        with pytest.raises(ProviderTimeoutError) as exc_info:
            provider.generate("Hello", timeout_seconds=5)

        err = exc_info.value
        assert err.timeout is True
        assert err.rate_limited is False
        assert err.timeout_seconds == 5
        assert provider.stats.is_on_cooldown() is False
        assert provider.stats.last_error == "Timeout"
        assert _calls("groq", "timeout") == before + 1

    def test_connect_error_is_generic(self, http_client):
        http_client.post.side_effect = httpx.ConnectError("connection refused")
        provider = MistralProvider(api_key="key")

        with pytest.raises(ProviderFailureError) as exc_info:
            provider.generate("Hello")

        assert exc_info.value.timeout is False
        assert "ConnectError" in exc_info.value.message
        assert provider.stats.is_on_cooldown() is False

    def test_invalid_json(self, http_client, make_response):
        http_client.post.return_value = make_response(200, text="<html>not json</html>")
        provider = GroqProvider(api_key="key")

        with pytest.raises(ProviderFailureError, match="Invalid JSON"):
            provider.generate("Hello")

        assert provider.stats.calls_failed == 1

    def test_malformed_envelope(self, http_client, make_response):
        http_client.post.return_value = make_response(200, json_data={"choices": []})
        provider = FireworksProvider(api_key="key")

        with pytest.raises(ProviderFailureError, match="Invalid response format"):
            provider.generate("Hello")

        assert provider.stats.is_on_cooldown() is False

    def test_empty_text_is_not_success(self, http_client, chat_response):
        http_client.post.return_value = chat_response("")
        provider = GroqProvider(api_key="key")

        with pytest.raises(ProviderFailureError):
            provider.generate("Hello")

        assert provider.stats.calls_succeeded == 0

    def test_gemini_errors_never_leak_key(self, http_client):
        http_client.post.side_effect = httpx.ConnectError(
            "failed to reach https://generativelanguage.googleapis.com/...?key=AIza-secret"
        )
        provider = GeminiProvider(api_key="AIza-secret")

        with pytest.raises(ProviderFailureError) as exc_info:
            provider.generate("Hello")

        assert "AIza-secret" not in exc_info.value.message
        assert "AIza-secret" not in (provider.stats.last_error or "")
        assert exc_info.value.__cause__ is None

    def test_gemini_blocked_response(self, http_client, make_response):
        http_client.post.return_value = make_response(200, json_data={"candidates": [{"finishReason": "SAFETY"}]})
        provider = GeminiProvider(api_key="key")

        with pytest.raises(ProviderFailureError, match="SAFETY"):
            provider.generate("Hello")

    def test_all_failures_are_provider_errors(self, http_client, make_response):
        http_client.post.return_value = make_response(418, text="teapot")
        provider = GroqProvider(api_key="key")

        with pytest.raises(ProviderError):
            provider.generate("Hello")
