"""AI content producer - drafts action plans, diet plans and grocery lists.

Invoked only by stage handlers, always as a best-effort step with a timeout.
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import httpx

from coachflow.core.config import settings
from coachflow.db.enums import ContentKind
from coachflow.services.http_service import request_with_retries

logger = logging.getLogger(__name__)


class ContentProducerError(Exception):
    """The provider returned an error or an unusable response."""


@dataclass
class ContentPrompt:
    """Structured prompt for a content draft."""

    kind: ContentKind
    client_name: str
    service_type: str
    context: dict[str, Any]

    def to_messages(self) -> list[dict[str, str]]:
        system = (
            "You are a registered dietitian's assistant. Draft a "
            f"{self.kind.value.replace('_', ' ')} for a coaching client. "
            "Respond with a single JSON object only."
        )
        user = json.dumps(
            {
                "client_name": self.client_name,
                "service_type": self.service_type,
                "context": self.context,
            }
        )
        return [
            {"role": "system", "content": system},
            {"role": "user", "content": user},
        ]


@dataclass
class GeneratedContent:
    """Structured draft returned by the provider."""

    kind: ContentKind
    payload: dict[str, Any]
    model: str


class ContentProducer(ABC):
    """Abstract content producer."""

    @abstractmethod
    async def generate(self, prompt: ContentPrompt) -> GeneratedContent:
        """Produce a structured draft for the prompt."""


class OpenAIContentProducer(ContentProducer):
    """OpenAI-compatible chat completions in JSON mode."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        base_url: str = "https://api.openai.com/v1",
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def generate(self, prompt: ContentPrompt) -> GeneratedContent:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:

            async def _post() -> httpx.Response:
                return await client.post(
                    f"{self.base_url}/chat/completions",
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                    json={
                        "model": self.model,
                        "messages": prompt.to_messages(),
                        "temperature": 0.4,
                        "response_format": {"type": "json_object"},
                    },
                )

            response = await request_with_retries(_post)

        if response.status_code >= 400:
            raise ContentProducerError(
                f"Content provider returned {response.status_code} for {prompt.kind.value}"
            )

        try:
            data = response.json()
            content = data["choices"][0]["message"]["content"]
            payload = json.loads(content)
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise ContentProducerError(f"Unparseable {prompt.kind.value} response") from exc

        if not isinstance(payload, dict):
            raise ContentProducerError(f"Expected a JSON object for {prompt.kind.value}")

        return GeneratedContent(kind=prompt.kind, payload=payload, model=data.get("model", self.model))


def get_content_producer() -> ContentProducer | None:
    """Configured producer, or None when generation is disabled."""
    if not settings.content_producer_enabled:
        return None
    return OpenAIContentProducer(
        api_key=settings.CONTENT_API_KEY,
        model=settings.CONTENT_MODEL,
        base_url=settings.CONTENT_BASE_URL,
        timeout=settings.CONTENT_TIMEOUT_SECONDS,
    )
