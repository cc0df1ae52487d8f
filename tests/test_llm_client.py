"""Tests for the completion endpoint client."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
import requests

from app.services.llm_client import (
    GeminiClient,
    LLMError,
    LLMHTTPError,
    LLMPaymentRequiredError,
    LLMRateLimitError,
    LLMResponseError,
)


def _response(status_code: int = 200, payload=None, text: str = "") -> MagicMock:
    resp = MagicMock()
    resp.status_code = status_code
    resp.text = text
    if isinstance(payload, Exception):
        resp.json.side_effect = payload
    else:
        resp.json.return_value = payload
    return resp


def _client(resp=None, exc=None) -> tuple[GeminiClient, MagicMock]:
    session = MagicMock()
    if exc is not None:
        session.post.side_effect = exc
    else:
        session.post.return_value = resp
    return GeminiClient(api_key="secret", timeout=5, session=session), session


class TestGeminiClient:
    def test_returns_candidate_text(self):
        payload = {"candidates": [{"content": {"parts": [{"text": "[]"}]}}]}
        client, session = _client(_response(payload=payload))

        assert client.generate("hello") == "[]"

        args, kwargs = session.post.call_args
        assert args[0].endswith("/models/gemini-1.5-flash:generateContent")
        assert kwargs["params"] == {"key": "secret"}
        assert kwargs["timeout"] == 5
        assert kwargs["json"]["contents"][0]["parts"][0]["text"] == "hello"
        assert kwargs["json"]["generationConfig"]["maxOutputTokens"] == 8192

    def test_rate_limit(self):
        client, _ = _client(_response(429, text="quota exceeded"))
        with pytest.raises(LLMRateLimitError) as info:
            client.generate("x")
        assert info.value.category == "rate_limited"

    def test_payment_required(self):
        client, _ = _client(_response(402, text="billing"))
        with pytest.raises(LLMPaymentRequiredError) as info:
            client.generate("x")
        assert info.value.category == "payment_required"

    def test_other_http_error(self):
        client, _ = _client(_response(500, text="boom"))
        with pytest.raises(LLMHTTPError) as info:
            client.generate("x")
        assert info.value.status_code == 500
        assert not isinstance(info.value, (LLMRateLimitError, LLMPaymentRequiredError))

    def test_network_error(self):
        client, _ = _client(exc=requests.ConnectionError("down"))
        with pytest.raises(LLMError) as info:
            client.generate("x")
        assert info.value.category == "network_error"

    @pytest.mark.parametrize(
        "payload",
        [
            {},
            {"candidates": []},
            {"candidates": [{"content": {"parts": [{"text": "   "}]}}]},
            ValueError("not json"),
        ],
    )
    def test_unusable_payload(self, payload):
        client, _ = _client(_response(payload=payload))
        with pytest.raises(LLMResponseError):
            client.generate("x")

    @pytest.mark.asyncio
    async def test_agenerate_runs_in_thread(self):
        payload = {"candidates": [{"content": {"parts": [{"text": "ok"}]}}]}
        client, _ = _client(_response(payload=payload))
        assert await client.agenerate("x") == "ok"

    def test_close_releases_owned_session(self):
        with patch("app.services.llm_client.requests.Session") as session_cls:
            client = GeminiClient(api_key="secret")
            client.close()
        session_cls.return_value.close.assert_called_once_with()

    def test_close_leaves_injected_session_open(self):
        client, session = _client(_response(payload={}))
        client.close()
        session.close.assert_not_called()
