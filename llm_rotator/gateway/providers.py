"""Vendor Providers — protocol-level handling for each free-tier LLM vendor.

Every provider answers the same contract (identity, RPM ceiling, status,
stats, cooldown, generate). Most vendors speak OpenAI-style chat completions
and only override pieces of the shared HTTP skeleton:

  - Groq, Mistral: standard chat completions, bearer auth
  - OpenRouter: extra attribution headers
  - HuggingFace: model baked into the endpoint path
  - Fireworks: larger max_tokens, no temperature
  - Cohere: v2 chat, {"message": {"content": [{"text"}]}} envelope
  - Gemini: native generateContent, API key as a URL query parameter,
    so it implements generate() on its own
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

import httpx

from llm_rotator.core.metrics import PROVIDER_CALL_DURATION, PROVIDER_CALLS, PROVIDER_COOLDOWNS
from llm_rotator.gateway.cooldown import DEFAULT_COOLDOWN_POLICY, CooldownPolicy, parse_retry_after
from llm_rotator.gateway.errors import (
    ProviderError,
    ProviderFailureError,
    ProviderNotEnabledError,
    ProviderTimeoutError,
    RateLimitedError,
)
from llm_rotator.gateway.normalizer import (
    MalformedResponseError,
    extract_chat_text,
    extract_cohere_text,
    extract_gemini_text,
)
from llm_rotator.gateway.stats import ProviderStats
from llm_rotator.gateway.types import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
    GEMINI_RATE_LIMIT_COOLDOWN,
    CallOutcome,
    ProviderStatus,
    ProviderStatusInfo,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0

# Max characters of a vendor error body kept in diagnostics
_ERROR_DETAIL_LIMIT = 200


def _error_detail(resp: httpx.Response) -> str:
    """Short human-readable reason for an HTTP error response."""
    try:
        data = resp.json()
    except ValueError:
        data = None
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])[:_ERROR_DETAIL_LIMIT]
        if isinstance(error, str) and error:
            return error[:_ERROR_DETAIL_LIMIT]
        if data.get("message"):
            return str(data["message"])[:_ERROR_DETAIL_LIMIT]
    text = resp.text.strip()
    if text:
        return text[:_ERROR_DETAIL_LIMIT]
    return resp.reason_phrase or "error"


# ---------------------------------------------------------------------------
# Provider contract
# ---------------------------------------------------------------------------


class Provider(ABC):
    """Contract every backend implements.

    Everything except generate() is answered locally, without a network call.
    Outcome helpers (_succeeded, _rate_limited, ...) keep stats, cooldowns,
    metrics and logs consistent across implementations.
    """

    name: str
    default_model: str
    default_rpm_limit: int
    # Vendor minimum for 429 cooldowns, None = policy decides alone
    rate_limit_cooldown: float | None = None

    def __init__(
        self,
        api_key: str | None,
        model: str | None = None,
        rpm_limit: int | None = None,
        cooldown_policy: CooldownPolicy | None = None,
    ):
        self.api_key = api_key
        self.model = model or self.default_model
        self.rpm_limit = rpm_limit if rpm_limit is not None else self.default_rpm_limit
        self.base_url = self._resolve_base_url()
        self.stats = ProviderStats()

        policy = cooldown_policy or DEFAULT_COOLDOWN_POLICY
        if self.rate_limit_cooldown is not None:
            policy = policy.with_rate_limit_floor(self.rate_limit_cooldown)
        self.cooldown_policy = policy

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, model={self.model!r}, rpm_limit={self.rpm_limit})"

    @abstractmethod
    def _resolve_base_url(self) -> str:
        """Endpoint for this provider's model (never contains credentials)."""
        ...

    @abstractmethod
    def generate(self, prompt: str, timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS) -> str:
        """Send one prompt and return the generated text.

        Raises:
            ProviderNotEnabledError: no credential, nothing was sent
            RateLimitedError: vendor answered 429 (provider put on cooldown)
            ProviderTimeoutError: no response within timeout_seconds
            ProviderFailureError: any other HTTP, network or parsing failure
        """
        ...

    # -- local, non-network contract -------------------------------------

    def is_enabled(self) -> bool:
        return bool(self.api_key and self.api_key.strip())

    def get_status(self) -> ProviderStatus:
        """Derived on every call from config and stats; never cached."""
        if not self.is_enabled():
            return ProviderStatus.DISABLED
        if self.stats.is_on_cooldown():
            return ProviderStatus.RATE_LIMITED
        if self.stats.calls_in_last_minute() >= self.rpm_limit:
            return ProviderStatus.RATE_LIMITED
        return ProviderStatus.AVAILABLE

    def _status_from_snapshot(self, snapshot: dict) -> ProviderStatus:
        if not self.is_enabled():
            return ProviderStatus.DISABLED
        if snapshot["on_cooldown"] or snapshot["calls_last_minute"] >= self.rpm_limit:
            return ProviderStatus.RATE_LIMITED
        return ProviderStatus.AVAILABLE

    def is_available(self) -> bool:
        return self.get_status() is ProviderStatus.AVAILABLE

    def set_cooldown(self, seconds: float) -> None:
        self.stats.set_cooldown(seconds)

    def status_info(self) -> ProviderStatusInfo:
        """One consistent record built from a single stats snapshot."""
        snapshot = self.stats.snapshot()
        status = self._status_from_snapshot(snapshot)
        return ProviderStatusInfo(
            name=self.name,
            model=self.model,
            status=status.value,
            available=status is ProviderStatus.AVAILABLE,
            calls_made=snapshot["calls_made"],
            calls_succeeded=snapshot["calls_succeeded"],
            calls_failed=snapshot["calls_failed"],
            success_rate=snapshot["success_rate"],
            calls_last_minute=snapshot["calls_last_minute"],
            rpm_limit=self.rpm_limit,
        )

    # -- outcome helpers ---------------------------------------------------

    def _count(self, outcome: CallOutcome) -> None:
        PROVIDER_CALLS.labels(provider=self.name, outcome=outcome.value).inc()

    def _observe(self, started: float) -> None:
        PROVIDER_CALL_DURATION.labels(provider=self.name).observe(time.monotonic() - started)

    def _not_enabled(self) -> ProviderNotEnabledError:
        self._count(CallOutcome.NOT_ENABLED)
        return ProviderNotEnabledError(self.name)

    def _succeeded(self, text: str, started: float) -> str:
        self._observe(started)
        self.stats.record_call(True)
        self._count(CallOutcome.SUCCESS)
        logger.debug("[%s] Generated %d chars", self.name, len(text), extra={"provider": self.name})
        return text

    def _rate_limited(self, resp: httpx.Response, started: float) -> RateLimitedError:
        self._observe(started)
        self.stats.record_call(False, f"HTTP 429: {_error_detail(resp)}")
        self._count(CallOutcome.RATE_LIMITED)

        retry_after = parse_retry_after(resp.headers.get("Retry-After"))
        cooldown = self.cooldown_policy.rate_limit_cooldown(retry_after)
        self.set_cooldown(cooldown)
        PROVIDER_COOLDOWNS.labels(provider=self.name, reason="rate_limited").inc()

        logger.warning(
            "[%s] Rate limited, cooling down for %.0fs (Retry-After=%s)",
            self.name,
            cooldown,
            retry_after,
            extra={"provider": self.name},
        )
        return RateLimitedError(self.name, cooldown_seconds=cooldown, retry_after=retry_after)

    def _timed_out(self, timeout_seconds: float, started: float) -> ProviderTimeoutError:
        self._observe(started)
        self.stats.record_call(False, "Timeout")
        self._count(CallOutcome.TIMEOUT)
        logger.warning("[%s] Timeout after %ss", self.name, timeout_seconds, extra={"provider": self.name})
        return ProviderTimeoutError(self.name, timeout_seconds)

    def _failed(self, message: str, started: float, status_code: int | None = None) -> ProviderFailureError:
        self._observe(started)
        self.stats.record_call(False, message)
        self._count(CallOutcome.ERROR)

        if status_code is not None and status_code >= 500:
            cooldown = self.cooldown_policy.server_error_cooldown()
            self.set_cooldown(cooldown)
            PROVIDER_COOLDOWNS.labels(provider=self.name, reason="server_error").inc()
            logger.warning(
                "[%s] %s, cooling down for %.0fs", self.name, message, cooldown, extra={"provider": self.name}
            )
        else:
            logger.warning("[%s] %s", self.name, message, extra={"provider": self.name})

        return ProviderFailureError(self.name, message, status_code=status_code)

    def _process_response(
        self,
        resp: httpx.Response,
        started: float,
        parse: Callable[[Any], str],
    ) -> str:
        """Classify an HTTP response and return its text, or raise."""
        if resp.status_code == 429:
            raise self._rate_limited(resp, started)

        if resp.status_code >= 400:
            message = f"HTTP {resp.status_code}: {_error_detail(resp)}"
            raise self._failed(message, started, status_code=resp.status_code)

        try:
            data = resp.json()
        except ValueError:
            raise self._failed(f"Invalid JSON response from {self.name}", started) from None

        try:
            text = parse(data)
        except MalformedResponseError as e:
            raise self._failed(f"Invalid response format from {self.name}: {e}", started) from e

        return self._succeeded(text, started)


# ---------------------------------------------------------------------------
# Shared HTTP skeleton for OpenAI-style chat completion vendors
# ---------------------------------------------------------------------------


class ChatCompletionProvider(Provider):
    """Bearer-authenticated chat completions over one HTTP POST.

    Subclasses override only build_headers(), build_request_body() and
    parse_response().
    """

    api_url: str

    def __init__(
        self,
        api_key: str | None,
        model: str | None = None,
        rpm_limit: int | None = None,
        cooldown_policy: CooldownPolicy | None = None,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ):
        super().__init__(api_key, model=model, rpm_limit=rpm_limit, cooldown_policy=cooldown_policy)
        self.temperature = temperature
        self.max_tokens = max_tokens

    def _resolve_base_url(self) -> str:
        return self.api_url

    def build_headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

    def build_request_body(self, prompt: str) -> dict[str, Any]:
        return {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }

    def parse_response(self, data: Any) -> str:
        return extract_chat_text(data)

    def generate(self, prompt: str, timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS) -> str:
        if not self.is_enabled():
            raise self._not_enabled()

        started = time.monotonic()
        try:
            with httpx.Client(timeout=timeout_seconds) as client:
                resp = client.post(
                    self.base_url,
                    json=self.build_request_body(prompt),
                    headers=self.build_headers(),
                )
        except httpx.TimeoutException:
            raise self._timed_out(timeout_seconds, started) from None
        except httpx.HTTPError as e:
            raise self._failed(f"{type(e).__name__}: {e}", started) from e

        return self._process_response(resp, started, self.parse_response)


# ---------------------------------------------------------------------------
# Groq — fastest inference, most generous free tier
# ---------------------------------------------------------------------------


class GroqProvider(ChatCompletionProvider):
    """Groq Llama models. Free tier: 100+ RPM."""

    name = "groq"
    default_model = "llama-3.3-70b-versatile"
    default_rpm_limit = 100
    api_url = "https://api.groq.com/openai/v1/chat/completions"


# ---------------------------------------------------------------------------
# Mistral
# ---------------------------------------------------------------------------


class MistralProvider(ChatCompletionProvider):
    """Mistral AI. Free tier: 1B tokens/month."""

    name = "mistral"
    default_model = "mistral-small-latest"
    default_rpm_limit = 60
    api_url = "https://api.mistral.ai/v1/chat/completions"


# ---------------------------------------------------------------------------
# OpenRouter — many free models behind one key
# ---------------------------------------------------------------------------


class OpenRouterProvider(ChatCompletionProvider):
    """OpenRouter with app attribution headers.

    Free tier varies by model, typically 50-200 requests/day for :free models.
    """

    name = "openrouter"
    default_model = "qwen/qwen3-next-80b-a3b-instruct:free"
    default_rpm_limit = 20
    api_url = "https://openrouter.ai/api/v1/chat/completions"

    def __init__(
        self,
        api_key: str | None,
        model: str | None = None,
        referer: str = "https://llm-rotator.local",
        title: str = "LLM Rotator",
        **kwargs,
    ):
        super().__init__(api_key, model=model, **kwargs)
        self.referer = referer
        self.title = title

    def build_headers(self) -> dict[str, str]:
        headers = super().build_headers()
        headers["HTTP-Referer"] = self.referer
        headers["X-Title"] = self.title
        return headers


# ---------------------------------------------------------------------------
# HuggingFace Inference router
# ---------------------------------------------------------------------------


class HuggingFaceProvider(ChatCompletionProvider):
    """HuggingFace router, OpenAI-compatible endpoint per model.

    Free tier: ~300 requests/hour.
    """

    name = "huggingface"
    default_model = "Qwen/Qwen2.5-72B-Instruct"
    default_rpm_limit = 60
    api_url_template = "https://router.huggingface.co/hf-inference/models/{model}/v1/chat/completions"

    def _resolve_base_url(self) -> str:
        return self.api_url_template.format(model=self.model)


# ---------------------------------------------------------------------------
# Fireworks
# ---------------------------------------------------------------------------


class FireworksProvider(ChatCompletionProvider):
    """Fireworks AI, latest Llama. Limited free tier, useful as backup."""

    name = "fireworks"
    default_model = "accounts/fireworks/models/llama-v3p3-70b-instruct"
    default_rpm_limit = 20
    api_url = "https://api.fireworks.ai/inference/v1/chat/completions"

    def __init__(self, api_key: str | None, model: str | None = None, max_tokens: int = 4096, **kwargs):
        super().__init__(api_key, model=model, max_tokens=max_tokens, **kwargs)

    def build_request_body(self, prompt: str) -> dict[str, Any]:
        return {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": self.max_tokens,
        }


# ---------------------------------------------------------------------------
# Cohere v2 chat
# ---------------------------------------------------------------------------


class CohereProvider(ChatCompletionProvider):
    """Cohere Command models. Free tier: 1000 requests/month."""

    name = "cohere"
    default_model = "command-r-plus"
    default_rpm_limit = 20  # ~30/day, stay conservative
    api_url = "https://api.cohere.ai/v2/chat"

    def build_request_body(self, prompt: str) -> dict[str, Any]:
        return {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
        }

    def parse_response(self, data: Any) -> str:
        return extract_cohere_text(data)


# ---------------------------------------------------------------------------
# Gemini (Google AI, native format)
# ---------------------------------------------------------------------------


class GeminiProvider(Provider):
    """Google Gemini generateContent — last-resort backup.

    Free tier: 15 RPM / 1500 RPD, strictly enforced. The API key travels as
    the ``key`` query parameter, so the bearer skeleton does not apply.
    A 429 always cools Gemini down for at least 120s, whatever Retry-After says.
    """

    name = "gemini"
    default_model = "gemini-2.0-flash"
    default_rpm_limit = 3
    rate_limit_cooldown = GEMINI_RATE_LIMIT_COOLDOWN
    api_url_template = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

    def __init__(
        self,
        api_key: str | None,
        model: str | None = None,
        rpm_limit: int | None = None,
        cooldown_policy: CooldownPolicy | None = None,
        temperature: float = DEFAULT_TEMPERATURE,
        max_output_tokens: int = 4096,
    ):
        super().__init__(api_key, model=model, rpm_limit=rpm_limit, cooldown_policy=cooldown_policy)
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens

    def _resolve_base_url(self) -> str:
        return self.api_url_template.format(model=self.model)

    def build_request_body(self, prompt: str) -> dict[str, Any]:
        return {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": self.temperature,
                "maxOutputTokens": self.max_output_tokens,
            },
        }

    def generate(self, prompt: str, timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS) -> str:
        if not self.is_enabled():
            raise self._not_enabled()

        started = time.monotonic()
        try:
            with httpx.Client(timeout=timeout_seconds) as client:
                resp = client.post(
                    self.base_url,
                    params={"key": self.api_key},
                    json=self.build_request_body(prompt),
                    headers={"Content-Type": "application/json"},
                )
        except httpx.TimeoutException:
            raise self._timed_out(timeout_seconds, started) from None
        except httpx.HTTPError as e:
            # httpx messages may embed the request URL, which carries the key
            raise self._failed(f"{type(e).__name__} calling Gemini", started) from None

        return self._process_response(resp, started, extract_gemini_text)


# ---------------------------------------------------------------------------
# Provider registry (rotation priority order)
# ---------------------------------------------------------------------------

PROVIDER_REGISTRY: dict[str, type[Provider]] = {
    GroqProvider.name: GroqProvider,
    MistralProvider.name: MistralProvider,
    OpenRouterProvider.name: OpenRouterProvider,
    HuggingFaceProvider.name: HuggingFaceProvider,
    FireworksProvider.name: FireworksProvider,
    CohereProvider.name: CohereProvider,
    GeminiProvider.name: GeminiProvider,
}


def get_provider(name: str, api_key: str | None, **kwargs) -> Provider:
    """Factory: build the provider registered under ``name``."""
    cls = PROVIDER_REGISTRY.get(name)
    if cls is None:
        raise ValueError(f"No provider registered for vendor: {name}")
    return cls(api_key=api_key, **kwargs)


__all__ = [
    "ChatCompletionProvider",
    "CohereProvider",
    "FireworksProvider",
    "GeminiProvider",
    "GroqProvider",
    "HuggingFaceProvider",
    "MistralProvider",
    "OpenRouterProvider",
    "PROVIDER_REGISTRY",
    "Provider",
    "ProviderError",
    "get_provider",
]
