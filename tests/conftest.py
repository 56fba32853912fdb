from unittest.mock import MagicMock, patch

import httpx
import pytest

from llm_rotator.core.config import VENDOR_PRIORITY, Settings


def _make_httpx_response(
    status_code: int,
    json_data: dict | None = None,
    text: str = "",
    headers: dict | None = None,
) -> httpx.Response:
    """Create a real httpx.Response with a request attached."""
    request = httpx.Request("POST", "https://example.com")
    if json_data is not None:
        return httpx.Response(status_code, json=json_data, headers=headers, request=request)
    return httpx.Response(status_code, text=text, headers=headers, request=request)


def _chat_response(text: str = "Hello world") -> httpx.Response:
    return _make_httpx_response(
        200,
        json_data={"choices": [{"message": {"role": "assistant", "content": text}, "finish_reason": "stop"}]},
    )


@pytest.fixture
def make_response():
    """Factory for real httpx.Response objects: make_response(status, json_data=..., text=..., headers=...)."""
    return _make_httpx_response


@pytest.fixture
def chat_response():
    """Factory for a successful OpenAI-style chat completion response."""
    return _chat_response


@pytest.fixture
def http_client():
    """Patch httpx.Client in the providers module; yields the client used inside ``with``."""
    with patch("llm_rotator.gateway.providers.httpx.Client") as mock_client_cls:
        client = MagicMock()
        mock_client_cls.return_value.__enter__.return_value = client
        mock_client_cls.return_value.__exit__.return_value = False
        client.mock_client_cls = mock_client_cls
        yield client


@pytest.fixture
def make_settings():
    """Settings isolated from the process environment and any .env file."""

    def _make(**overrides) -> Settings:
        values = {f"{vendor}_api_key": "" for vendor in VENDOR_PRIORITY}
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return _make
