# studygram/services/completion_client.py
"""
Thin wrapper around the OpenAI chat-completions API.

- The SDK client is synchronous; calls run in a worker thread so the event
  loop stays free.
- No retries here: callers decide how to classify failures
  (see `is_credential_error`).
- Responses are parsed into a `CompletionResult`; callers never
  poke at SDK objects directly.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import openai
from openai import OpenAI

from studygram.config.settings import Settings

logger = logging.getLogger(__name__)


class CompletionNotConfigured(RuntimeError):
    """Raised when a completion is requested but no API key was configured."""

    def __init__(self) -> None:
        super().__init__("OpenAI API key not configured")


@dataclass
class CompletionResult:
    content: Optional[str]
    usage: Dict[str, int] = field(default_factory=dict)
    model: Optional[str] = None


def _mask_key(k: Optional[str]) -> str:
    if not k:
        return "(none)"
    if len(k) <= 8:
        return "****"
    return f"{k[:4]}...{k[-4:]}"


def _usage_value(usage: Any, name: str) -> int:
    if usage is None:
        return 0
    value = usage.get(name) if isinstance(usage, dict) else getattr(usage, name, None)
    return int(value or 0)


def parse_completion(resp: Any) -> CompletionResult:
    """Extract first-choice text and token counts from an SDK object or dict."""
    content = None
    if isinstance(resp, dict):
        choices = resp.get("choices") or []
        if choices:
            content = (choices[0].get("message") or {}).get("content")
        usage = resp.get("usage")
        model = resp.get("model")
    else:
        choices = getattr(resp, "choices", None) or []
        if choices:
            message = getattr(choices[0], "message", None)
            content = getattr(message, "content", None)
        usage = getattr(resp, "usage", None)
        model = getattr(resp, "model", None)

    return CompletionResult(
        content=content,
        usage={
            "prompt_tokens": _usage_value(usage, "prompt_tokens"),
            "completion_tokens": _usage_value(usage, "completion_tokens"),
            "total_tokens": _usage_value(usage, "total_tokens"),
        },
        model=model,
    )


def is_credential_error(exc: BaseException) -> bool:
    """
    True when `exc` means the API key is missing or rejected.

    Structured checks come first; the substring match on "API key" is a
    fragile last resort for errors raised without a typed exception.
    """
    if isinstance(exc, (CompletionNotConfigured, openai.AuthenticationError)):
        return True
    return "API key" in str(exc)


class CompletionClient:

    def __init__(self, settings: Settings, client: Optional[Any] = None):
        self.model = settings.openai_model
        self._client = client
        if self._client is None and settings.openai_api_key:
            try:
                self._client = OpenAI(
                    api_key=settings.openai_api_key,
                    timeout=settings.openai_timeout,
                )
                logger.info(
                    "✅ OpenAI client created (model=%s key=%s)",
                    self.model,
                    _mask_key(settings.openai_api_key),
                )
            except Exception as exc:
                logger.exception("❌ Failed creating OpenAI client: %s", exc)
                self._client = None
        elif self._client is None:
            logger.info("ℹ️ OpenAI client not configured.")

    @property
    def configured(self) -> bool:
        return self._client is not None

    async def complete(
        self, messages: List[Dict[str, str]], **params: Any
    ) -> CompletionResult:
        """
        Run one chat completion with `messages` and sampling `params`.

        Raises CompletionNotConfigured when there is no client, otherwise lets
        SDK exceptions propagate unchanged.
        """
        if self._client is None:
            raise CompletionNotConfigured()

        logger.debug(
            "chat completion model=%s messages=%d params=%s",
            self.model,
            len(messages),
            sorted(params),
        )

        def _create():
            return self._client.chat.completions.create(
                model=self.model, messages=messages, **params
            )

        resp = await asyncio.to_thread(_create)
        result = parse_completion(resp)
        logger.info(
            "chat completion done model=%s total_tokens=%s",
            result.model or self.model,
            result.usage.get("total_tokens"),
        )
        return result
