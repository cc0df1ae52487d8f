# app/services/llm_client.py
"""Client for the external text-completion endpoint (Gemini generateContent).

The HTTP call is blocking ``requests``; async callers go through
``agenerate`` which runs it in a worker thread, the same way blocking data
fetches are handled elsewhere in the service.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any

import requests

logger = logging.getLogger(__name__)


class LLMError(Exception):
    """Any failure talking to the completion endpoint."""

    category = "network_error"


class LLMHTTPError(LLMError):
    category = "http_error"

    def __init__(self, status_code: int, body: str = ""):
        self.status_code = status_code
        self.body = body
        super().__init__(f"completion endpoint returned HTTP {status_code}: {body[:200]}")


class LLMRateLimitError(LLMHTTPError):
    category = "rate_limited"


class LLMPaymentRequiredError(LLMHTTPError):
    category = "payment_required"


class LLMResponseError(LLMError):
    """The endpoint answered 2xx but the payload carries no usable text."""

    category = "bad_response"


def _raise_for_status(resp: requests.Response) -> None:
    code = resp.status_code
    if 200 <= code < 300:
        return
    body = resp.text or ""
    if code == 429:
        raise LLMRateLimitError(code, body)
    if code == 402:
        raise LLMPaymentRequiredError(code, body)
    raise LLMHTTPError(code, body)


class GeminiClient:
    def __init__(
        self,
        api_key: str,
        model: str = "gemini-1.5-flash",
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout: float = 30.0,
        temperature: float = 0.7,
        max_output_tokens: int = 8192,
        session: requests.Session | None = None,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens
        self._owns_session = session is None
        self.session = session or requests.Session()

    def close(self) -> None:
        if self._owns_session:
            self.session.close()

    @property
    def url(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    def _payload(self, prompt: str) -> dict[str, Any]:
        return {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": self.temperature,
                "topK": 40,
                "topP": 0.95,
                "maxOutputTokens": self.max_output_tokens,
            },
        }

    def generate(self, prompt: str) -> str:
        try:
            resp = self.session.post(
                self.url,
                params={"key": self.api_key},
                json=self._payload(prompt),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise LLMError(f"completion request failed: {exc}") from exc

        _raise_for_status(resp)

        try:
            data = resp.json()
        except ValueError as exc:
            raise LLMResponseError("completion response is not JSON") from exc

        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError) as exc:
            raise LLMResponseError("completion response has no candidate text") from exc
        if not isinstance(text, str) or not text.strip():
            raise LLMResponseError("completion response text is empty")

        logger.debug("completion text (%d chars)", len(text))
        return text

    async def agenerate(self, prompt: str) -> str:
        return await asyncio.to_thread(self.generate, prompt)
