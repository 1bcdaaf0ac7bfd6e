from __future__ import annotations

import json

import httpx
import pytest

from coachflow.db.enums import ContentKind
from coachflow.services.content_producer import (
    ContentProducerError,
    ContentPrompt,
    OpenAIContentProducer,
    get_content_producer,
)
from coachflow.services.http_service import request_with_retries

PROMPT = ContentPrompt(
    kind=ContentKind.DIET_PLAN,
    client_name="Test Client",
    service_type="hundred_days",
    context={"stage": "action_plan_sent"},
)


def _completion(content: str, model: str = "gpt-4o-mini-2024-07-18") -> dict:
    return {"model": model, "choices": [{"message": {"content": content}}]}


async def test_generate_returns_structured_payload():
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=_completion(json.dumps({"meals": ["oats"]})))

    producer = OpenAIContentProducer(
        api_key="sk-test", base_url="https://llm.test/v1/", transport=httpx.MockTransport(handler)
    )

    generated = await producer.generate(PROMPT)

    assert generated.kind == ContentKind.DIET_PLAN
    assert generated.payload == {"meals": ["oats"]}
    assert generated.model == "gpt-4o-mini-2024-07-18"
    assert seen["auth"] == "Bearer sk-test"
    assert seen["body"]["response_format"] == {"type": "json_object"}
    assert "diet plan" in seen["body"]["messages"][0]["content"]


async def test_client_error_raises():
    producer = OpenAIContentProducer(
        api_key="sk-test",
        transport=httpx.MockTransport(lambda request: httpx.Response(400, json={"error": "bad"})),
    )

    with pytest.raises(ContentProducerError, match="400"):
        await producer.generate(PROMPT)


@pytest.mark.parametrize("content", ["not json", json.dumps(["a", "list"])])
async def test_unusable_content_raises(content):
    producer = OpenAIContentProducer(
        api_key="sk-test",
        transport=httpx.MockTransport(lambda request: httpx.Response(200, json=_completion(content))),
    )

    with pytest.raises(ContentProducerError):
        await producer.generate(PROMPT)


async def test_request_with_retries_retries_retryable_status():
    responses = iter([httpx.Response(503), httpx.Response(200, json={"ok": True})])
    calls = {"count": 0}

    async def request_fn() -> httpx.Response:
        calls["count"] += 1
        return next(responses)

    response = await request_with_retries(request_fn, base_delay=0)

    assert response.status_code == 200
    assert calls["count"] == 2


async def test_request_with_retries_returns_last_response():
    async def request_fn() -> httpx.Response:
        return httpx.Response(502)

    response = await request_with_retries(request_fn, max_attempts=2, base_delay=0)

    assert response.status_code == 502


async def test_request_with_retries_reraises_transport_error():
    async def request_fn() -> httpx.Response:
        raise httpx.ConnectError("refused")

    with pytest.raises(httpx.ConnectError):
        await request_with_retries(request_fn, max_attempts=2, base_delay=0)


def test_get_content_producer_respects_settings(monkeypatch):
    from coachflow.core.config import settings

    monkeypatch.setattr(settings, "CONTENT_API_KEY", "")
    assert get_content_producer() is None

    monkeypatch.setattr(settings, "CONTENT_API_KEY", "sk-live")
    producer = get_content_producer()
    assert isinstance(producer, OpenAIContentProducer)
    assert producer.model == settings.CONTENT_MODEL
