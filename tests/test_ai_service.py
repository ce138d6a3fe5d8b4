import asyncio
import json

import httpx
import pytest

from perfreport.errors import RateLimitError, TextServiceError
from perfreport.services.ai_service import (
    ESTIMATION_PROMPT,
    GeminiTextService,
    estimation_messages,
    ticket_messages,
)


def service_with(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GeminiTextService("test-key", "gemini-1.5-flash", temperature=0.7, top_p=1.0, client=client)


def gemini_reply(text):
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def test_request_shape_and_reply():
    seen = {}

    def handler(request: httpx.Request):
        seen["url"] = str(request.url)
        seen["key"] = request.headers["x-goog-api-key"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=gemini_reply(" 16 \n"))

    svc = service_with(handler)
    out = asyncio.run(svc.complete(estimation_messages("Ticket title: Reduce JS")))

    assert out == "16"
    assert seen["url"].endswith("/models/gemini-1.5-flash:generateContent")
    assert seen["key"] == "test-key"
    body = seen["body"]
    assert body["systemInstruction"]["parts"][0]["text"] == ESTIMATION_PROMPT
    assert body["contents"] == [{"role": "user", "parts": [{"text": "Ticket title: Reduce JS"}]}]
    assert body["generationConfig"] == {"temperature": 0.7, "topP": 1.0}


def test_ticket_messages_carry_serialized_finding():
    messages = ticket_messages('{"id": "unused-css-rules"}')
    assert [m.role for m in messages] == ["system", "user"]
    assert messages[1].content == '{"id": "unused-css-rules"}'


def test_429_is_rate_limit():
    svc = service_with(lambda request: httpx.Response(429, json={"error": {"code": 429}}))
    with pytest.raises(RateLimitError):
        asyncio.run(svc.complete(estimation_messages("t")))


def test_server_error_is_text_service_error():
    svc = service_with(lambda request: httpx.Response(503, text="unavailable"))
    with pytest.raises(TextServiceError) as info:
        asyncio.run(svc.complete(estimation_messages("t")))
    assert not isinstance(info.value, RateLimitError)
    assert info.value.status_code == 503


def test_empty_completion_is_an_error():
    svc = service_with(lambda request: httpx.Response(200, json={"candidates": []}))
    with pytest.raises(TextServiceError):
        asyncio.run(svc.complete(estimation_messages("t")))


def test_network_error_is_text_service_error():
    def handler(request):
        raise httpx.ConnectError("boom", request=request)

    svc = service_with(handler)
    with pytest.raises(TextServiceError):
        asyncio.run(svc.complete(estimation_messages("t")))
