"""OpenRouter reasoning client over the OpenAI-compatible SDK."""
from __future__ import annotations

import time
from typing import Any, Protocol

from openai import AsyncOpenAI, OpenAIError

from webscout.config import settings
from webscout.errors import LLMError
from webscout.services.logger import log_llm_call

SYSTEM_PROMPT = "You are a careful research assistant. Follow the output format you are asked for exactly."


class ReasoningClient(Protocol):
    async def complete(self, prompt: str, *, temperature: float = 0.3, max_tokens: int = 1000) -> str: ...


def get_model() -> str:
    """Get the active OpenRouter model id."""
    if settings.openrouter_model:
        return settings.openrouter_model
    return settings.default_model


def _temperature_for_model(model: str, requested: float) -> float:
    # Some OpenAI GPT-5-compatible gateways only accept temperature=1.
    if "gpt-5" in (model or "").lower():
        return 1
    return requested


class OpenRouterReasoner:
    def __init__(
        self,
        *,
        openai_client: Any = None,
        model: str | None = None,
        caller: str = "workflow",
    ):
        self._client = openai_client
        self.model = model or get_model()
        self.caller = caller

    def _get_client(self) -> Any:
        if self._client is None:
            base_url = settings.openrouter_base_url.strip() or "https://openrouter.ai/api/v1"
            self._client = AsyncOpenAI(
                api_key=settings.openrouter_api_key,
                base_url=base_url,
                timeout=settings.llm_timeout_seconds,
            )
        return self._client

    async def complete(self, prompt: str, *, temperature: float = 0.3, max_tokens: int = 1000) -> str:
        started = time.monotonic()
        try:
            response = await self._get_client().chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                max_tokens=max_tokens,
                temperature=_temperature_for_model(self.model, temperature),
            )
        except OpenAIError as exc:
            log_llm_call(
                model=self.model,
                caller=self.caller,
                duration_ms=int((time.monotonic() - started) * 1000),
                status="error",
                error=str(exc),
            )
            raise LLMError(f"Reasoning call failed: {exc}", model=self.model) from exc

        usage = getattr(response, "usage", None)
        log_llm_call(
            model=self.model,
            caller=self.caller,
            input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
            output_tokens=getattr(usage, "completion_tokens", 0) or 0,
            duration_ms=int((time.monotonic() - started) * 1000),
        )
        choices = getattr(response, "choices", None) or []
        text = getattr(choices[0].message, "content", None) if choices else None
        if not text or not text.strip():
            raise LLMError("Reasoning call returned no text", model=self.model)
        return text.strip()
