"""Client for the external generative collaborator.

Any OpenAI-compatible ``/chat/completions`` endpoint works. One call per
request; failures surface as ``GenerationError`` and are never retried here.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Optional, Protocol

import httpx

from core.config import Settings
from core.errors import GenerationError
from core.services.prompt_assembler import GenerationRequest

logger = logging.getLogger(__name__)


class PlanGenerator(Protocol):
    def generate(self, request: GenerationRequest) -> str: ...


class ChatCompletionGenerator:
    """Chat-completions adapter in JSON-object response mode."""

    def __init__(
        self,
        api_url: str,
        api_key: str,
        model: str,
        timeout_seconds: float = 90.0,
        temperature: float = 0.7,
        max_tokens: int = 8000,
        client: Optional[httpx.Client] = None,
    ):
        self.api_url = api_url.rstrip("/")
        self.api_key = api_key
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._client = client or httpx.Client(timeout=timeout_seconds)

    @classmethod
    def from_settings(cls, settings: Settings, client: Optional[httpx.Client] = None) -> "ChatCompletionGenerator":
        return cls(
            api_url=settings.generator_api_url,
            api_key=settings.generator_api_key,
            model=settings.generator_model,
            timeout_seconds=settings.generator_timeout_seconds,
            temperature=settings.generator_temperature,
            max_tokens=settings.generator_max_tokens,
            client=client,
        )

    def _payload(self, request: GenerationRequest) -> dict[str, Any]:
        messages = []
        if request.system:
            messages.append({"role": "system", "content": request.system})
        messages.append({"role": "user", "content": request.prompt})
        return {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "response_format": {"type": "json_object"},
        }

    def generate(self, request: GenerationRequest) -> str:
        if not self.api_key:
            raise GenerationError("Generator API key is not configured")

        started = time.perf_counter()
        try:
            resp = self._client.post(
                f"{self.api_url}/chat/completions",
                json=self._payload(request),
                headers={"Authorization": f"Bearer {self.api_key}"},
            )
            resp.raise_for_status()
        except httpx.TimeoutException as exc:
            logger.warning("generator_timeout", extra={"model": self.model})
            raise GenerationError("Generator timed out") from exc
        except httpx.HTTPStatusError as exc:
            logger.warning("generator_http_error", extra={"status_code": exc.response.status_code})
            raise GenerationError(f"Generator returned HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            logger.warning("generator_transport_error", extra={"error": str(exc)})
            raise GenerationError(f"Generator request failed: {exc}") from exc

        try:
            content = resp.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise GenerationError("Generator response had no message content") from exc
        if not content:
            raise GenerationError("Generator returned an empty response")

        logger.info(
            "generator_completed",
            extra={
                "model": self.model,
                "duration_ms": round((time.perf_counter() - started) * 1000, 1),
                "response_chars": len(content),
            },
        )
        return content

    def close(self) -> None:
        self._client.close()
