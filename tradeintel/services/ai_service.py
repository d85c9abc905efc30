"""Provider-agnostic LLM service: chat completions, embeddings, cost estimation."""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

import jsonschema

from tradeintel.config import Settings
from tradeintel.exceptions import LLMError
from tradeintel.metrics import llm_tokens_total

logger = logging.getLogger(__name__)

# USD per one million tokens: (input, output)
_MODEL_RATES: dict[str, tuple[Decimal, Decimal]] = {
    "gpt-4o-mini": (Decimal("0.15"), Decimal("0.60")),
}
_DEFAULT_RATES = (Decimal("2.50"), Decimal("10.00"))
_PER_MILLION = Decimal("1000000")


def estimate_cost(model: str, input_tokens: int, output_tokens: int) -> Decimal:
    """Estimate the USD cost of a call from the per-model token rate table."""
    input_rate, output_rate = _MODEL_RATES.get(model, _DEFAULT_RATES)
    cost = (Decimal(input_tokens) * input_rate + Decimal(output_tokens) * output_rate) / _PER_MILLION
    return cost.quantize(Decimal("0.000001"))


@dataclass(frozen=True)
class UsageRecord:
    """Token and cost accounting for one or more LLM calls."""

    model: str
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def cost_usd(self) -> Decimal:
        return estimate_cost(self.model, self.input_tokens, self.output_tokens)

    def __add__(self, other: "UsageRecord") -> "UsageRecord":
        return UsageRecord(
            model=self.model,
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
        )


@dataclass(frozen=True)
class ChatCompletion:
    content: str
    usage: UsageRecord


class AIProvider(ABC):
    """Abstract base class for AI providers."""

    @abstractmethod
    async def chat(self, messages: list[dict[str, str]], model: str, temperature: float) -> ChatCompletion:
        """Send role-tagged messages and return the completion with token counts."""
        ...

    @abstractmethod
    async def embed(self, text: str, model: str) -> list[float]:
        """Return an embedding vector for the given text."""
        ...


class OpenAIProvider(AIProvider):
    """OpenAI-compatible API provider."""

    def __init__(self, api_key: str, timeout: float) -> None:
        import openai

        self._client = openai.AsyncOpenAI(api_key=api_key, timeout=timeout)

    async def chat(self, messages: list[dict[str, str]], model: str, temperature: float) -> ChatCompletion:
        response = await self._client.chat.completions.create(
            model=model,
            messages=messages,
            temperature=temperature,
        )
        usage = response.usage
        return ChatCompletion(
            content=response.choices[0].message.content or "",
            usage=UsageRecord(
                model=model,
                input_tokens=usage.prompt_tokens if usage else 0,
                output_tokens=usage.completion_tokens if usage else 0,
            ),
        )

    async def embed(self, text: str, model: str) -> list[float]:
        response = await self._client.embeddings.create(model=model, input=text)
        return list(response.data[0].embedding)


class AnthropicProvider(AIProvider):
    """Anthropic API provider."""

    def __init__(self, api_key: str, timeout: float) -> None:
        import anthropic

        self._client = anthropic.AsyncAnthropic(api_key=api_key, timeout=timeout)

    async def chat(self, messages: list[dict[str, str]], model: str, temperature: float) -> ChatCompletion:
        # Anthropic takes the system prompt separately from the turn list
        system = "\n\n".join(m["content"] for m in messages if m["role"] == "system")
        turns = [m for m in messages if m["role"] != "system"]
        kwargs: dict[str, Any] = {}
        if system:
            kwargs["system"] = system
        response = await self._client.messages.create(
            model=model,
            max_tokens=2048,
            temperature=temperature,
            messages=turns,
            **kwargs,
        )
        return ChatCompletion(
            content=response.content[0].text,
            usage=UsageRecord(
                model=model,
                input_tokens=response.usage.input_tokens,
                output_tokens=response.usage.output_tokens,
            ),
        )

    async def embed(self, text: str, model: str) -> list[float]:
        raise NotImplementedError("Anthropic does not provide an embeddings endpoint")


def _validate_json(data: Any, schema: dict[str, Any]) -> bool:
    """Validate parsed JSON against schema."""
    try:
        jsonschema.validate(instance=data, schema=schema)
        return True
    except jsonschema.ValidationError as e:
        logger.warning("AI output validation failed: %s", e.message)
        return False


def strip_code_fence(text: str) -> str:
    """Remove a surrounding markdown code fence (```json ... ```) if present."""
    text = text.strip()
    if text.startswith("```"):
        first_newline = text.find("\n")
        text = text[first_newline + 1:] if first_newline > 0 else text[3:]
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    return text.strip()


def _parse_json_safe(text: str) -> dict[str, Any] | None:
    """Parse a JSON object from AI response, handling markdown code blocks."""
    try:
        data = json.loads(strip_code_fence(text))
    except json.JSONDecodeError:
        logger.error("Failed to parse AI response as JSON")
        return None
    if not isinstance(data, dict):
        logger.error("AI response JSON is not an object")
        return None
    return data


class AIService:
    """Provider-agnostic AI service."""

    def __init__(self, settings: Settings, provider: AIProvider | None = None) -> None:
        self._settings = settings
        if provider is not None:
            self._provider = provider
        elif settings.ai_provider == "openai":
            self._provider = OpenAIProvider(
                api_key=settings.openai_api_key.get_secret_value(),
                timeout=settings.llm_timeout_seconds,
            )
        elif settings.ai_provider == "anthropic":
            self._provider = AnthropicProvider(
                api_key=settings.anthropic_api_key.get_secret_value(),
                timeout=settings.llm_timeout_seconds,
            )
        else:
            raise ValueError(f"Unknown AI provider: {settings.ai_provider}")

    async def chat_completion(
        self,
        messages: list[dict[str, str]],
        temperature: float,
        model: str | None = None,
    ) -> ChatCompletion:
        """Run a chat completion; provider failures surface as LLMError."""
        model = model or self._settings.chat_model
        try:
            completion = await self._provider.chat(messages, model=model, temperature=temperature)
        except Exception as e:
            logger.error("LLM call failed (model=%s): %s", model, e)
            raise LLMError(f"LLM call failed: {type(e).__name__}") from e

        llm_tokens_total.labels(model=model, direction="input").inc(completion.usage.input_tokens)
        llm_tokens_total.labels(model=model, direction="output").inc(completion.usage.output_tokens)
        logger.info(
            "LLM call: model=%s input_tokens=%d output_tokens=%d cost=$%s",
            model,
            completion.usage.input_tokens,
            completion.usage.output_tokens,
            completion.usage.cost_usd,
        )
        return completion

    async def embed(self, text: str) -> list[float]:
        """Embed text with the configured embedding model."""
        try:
            return await self._provider.embed(text, model=self._settings.embedding_model)
        except Exception as e:
            raise LLMError(f"Embedding failed: {type(e).__name__}") from e


_ai_service: AIService | None = None


def get_ai_service(settings: Settings) -> AIService:
    global _ai_service
    if _ai_service is None:
        _ai_service = AIService(settings)
    return _ai_service
