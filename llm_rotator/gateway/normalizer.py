"""Response Normalizer — unwraps vendor response envelopes into plain text.

Supported envelopes:
  - OpenAI-style:  {"choices": [{"message": {"content": "..."}}]}
  - Cohere v2:     {"message": {"content": [{"text": "..."}]}}
  - Gemini native: {"candidates": [{"content": {"parts": [{"text": "..."}]}}]}

A missing shape or empty text raises MalformedResponseError; callers never
see an empty string presented as a successful generation.
"""

from __future__ import annotations

from typing import Any


class MalformedResponseError(ValueError):
    """The response JSON does not have the shape the vendor promises."""


def _first(items: Any, what: str) -> Any:
    if not isinstance(items, list) or not items:
        raise MalformedResponseError(f"missing or empty '{what}'")
    return items[0]


def _text(value: Any, what: str) -> str:
    if not isinstance(value, str):
        raise MalformedResponseError(f"'{what}' is not a string")
    if not value.strip():
        raise MalformedResponseError(f"'{what}' is empty")
    return value


def extract_chat_text(data: Any) -> str:
    """choices[0].message.content"""
    if not isinstance(data, dict):
        raise MalformedResponseError("response is not a JSON object")
    choice = _first(data.get("choices"), "choices")
    message = choice.get("message") if isinstance(choice, dict) else None
    if not isinstance(message, dict):
        raise MalformedResponseError("missing 'choices[0].message'")
    return _text(message.get("content"), "choices[0].message.content")


def extract_cohere_text(data: Any) -> str:
    """message.content[0].text"""
    if not isinstance(data, dict):
        raise MalformedResponseError("response is not a JSON object")
    message = data.get("message")
    if not isinstance(message, dict):
        raise MalformedResponseError("missing 'message'")
    part = _first(message.get("content"), "message.content")
    if not isinstance(part, dict):
        raise MalformedResponseError("'message.content[0]' is not an object")
    return _text(part.get("text"), "message.content[0].text")


def extract_gemini_text(data: Any) -> str:
    """candidates[0].content.parts[0].text"""
    if not isinstance(data, dict):
        raise MalformedResponseError("response is not a JSON object")
    candidate = _first(data.get("candidates"), "candidates")
    content = candidate.get("content") if isinstance(candidate, dict) else None
    if not isinstance(content, dict):
        # Blocked candidates (finishReason SAFETY) come back without content
        reason = candidate.get("finishReason", "") if isinstance(candidate, dict) else ""
        suffix = f" (finishReason={reason})" if reason else ""
        raise MalformedResponseError(f"missing 'candidates[0].content'{suffix}")
    part = _first(content.get("parts"), "candidates[0].content.parts")
    if not isinstance(part, dict):
        raise MalformedResponseError("'candidates[0].content.parts[0]' is not an object")
    return _text(part.get("text"), "candidates[0].content.parts[0].text")
