import json
import logging
import re

import httpx
from pydantic import ValidationError as PydanticValidationError

from app.core.config import settings
from app.core.errors import (
    AuthenticationError,
    CompletionTimeoutError,
    ConfigurationError,
    MalformedOutputError,
    ProviderError,
    RateLimitError,
)
from app.schemas.recipe import GeneratedRecipe

logger = logging.getLogger("brewwizard.gateway")

_FENCE_RE = re.compile(r"^\s*```(?:json)?\s*(.*?)\s*```\s*$", flags=re.DOTALL | re.IGNORECASE)


def strip_code_fence(text: str) -> str:
    match = _FENCE_RE.match(text)
    if match:
        return match.group(1)
    return text.strip()


def parse_draft(raw: str | None) -> GeneratedRecipe:
    """Parse raw completion text into a recipe draft.

    Accepts a bare JSON object or one wrapped in a markdown code fence.
    Anything else raises ``MalformedOutputError`` carrying the raw text.
    """
    if raw is None or not raw.strip():
        raise MalformedOutputError("Completion response was empty", raw_content=raw)

    json_text = strip_code_fence(raw)
    try:
        parsed = json.loads(json_text)
    except json.JSONDecodeError as exc:
        raise MalformedOutputError("Completion response was not valid JSON", raw_content=raw) from exc

    if not isinstance(parsed, dict):
        raise MalformedOutputError("Completion response was not a JSON object", raw_content=raw)

    try:
        return GeneratedRecipe.model_validate(parsed)
    except PydanticValidationError as exc:
        raise MalformedOutputError("Completion response did not match the recipe shape", raw_content=raw) from exc


class CompletionGateway:
    """Single-shot client for an OpenAI-compatible chat completions endpoint."""

    def __init__(
        self,
        base_url: str | None,
        api_key: str | None,
        model: str | None,
        temperature: float = 0.7,
        max_output_tokens: int = 3500,
        timeout_seconds: float = 60,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or "").rstrip("/")
        self.api_key = api_key
        self.model = model
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    @classmethod
    def from_settings(cls) -> "CompletionGateway":
        return cls(
            base_url=settings.ai_llm_base_url,
            api_key=settings.ai_llm_api_key,
            model=settings.ai_llm_model,
            temperature=settings.ai_llm_temperature,
            max_output_tokens=settings.ai_llm_max_output_tokens,
            timeout_seconds=settings.ai_llm_timeout_seconds,
        )

    def _check_configuration(self) -> None:
        if not self.api_key:
            raise ConfigurationError("Completion API key is not configured")
        if not self.model:
            raise ConfigurationError("Completion model is not configured")
        if not self.base_url:
            raise ConfigurationError("Completion base URL is not configured")

    async def complete(self, system_text: str, user_text: str) -> str:
        self._check_configuration()

        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_text},
                {"role": "user", "content": user_text},
            ],
            "temperature": self.temperature,
            "max_tokens": self.max_output_tokens,
            "response_format": {"type": "json_object"},
        }
        url = f"{self.base_url}/v1/chat/completions"

        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
                response = await client.post(url, headers=headers, json=payload)
        except httpx.TimeoutException as exc:
            raise CompletionTimeoutError(f"Completion request timed out: {exc}") from exc
        except httpx.HTTPError as exc:
            raise ProviderError(f"Completion request failed: {exc}") from exc

        if response.status_code in (401, 403):
            raise AuthenticationError(f"Completion provider rejected the credential ({response.status_code})")
        if response.status_code == 429:
            raise RateLimitError("Completion provider rate limit reached")
        if response.is_error:
            raise ProviderError(f"Completion provider returned HTTP {response.status_code}")

        try:
            body = response.json()
            content = body["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise ProviderError("Completion response missing choices/message content") from exc

        if content is None:
            raise MalformedOutputError("Completion response was empty", raw_content=None)
        if not isinstance(content, str):
            raise ProviderError("Completion response missing message content")

        logger.debug(
            json.dumps(
                {
                    "event": "completion_received",
                    "model": self.model,
                    "chars": len(content),
                }
            )
        )
        return content
