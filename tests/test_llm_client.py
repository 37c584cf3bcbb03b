from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock

import openai
import pytest

from webscout.errors import LLMError
from webscout.llm_client import OpenRouterReasoner


def _client(create: AsyncMock) -> SimpleNamespace:
    return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))


def _response(text: str | None) -> SimpleNamespace:
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=text))],
        usage=SimpleNamespace(prompt_tokens=12, completion_tokens=5),
    )


@pytest.mark.asyncio
async def test_complete_returns_stripped_text_and_passes_parameters():
    create = AsyncMock(return_value=_response("  acme earnings  \n"))
    reasoner = OpenRouterReasoner(openai_client=_client(create), model="openai/gpt-4o-mini")

    text = await reasoner.complete("Write a query", temperature=0.2, max_tokens=50)

    assert text == "acme earnings"
    kwargs = create.await_args.kwargs
    assert kwargs["model"] == "openai/gpt-4o-mini"
    assert kwargs["temperature"] == 0.2
    assert kwargs["max_tokens"] == 50
    assert kwargs["messages"][-1] == {"role": "user", "content": "Write a query"}


@pytest.mark.asyncio
async def test_gpt5_models_force_temperature_one():
    create = AsyncMock(return_value=_response("ok"))
    reasoner = OpenRouterReasoner(openai_client=_client(create), model="openai/gpt-5-mini")

    await reasoner.complete("prompt", temperature=0.3)

    assert create.await_args.kwargs["temperature"] == 1


@pytest.mark.asyncio
async def test_sdk_errors_become_llm_errors():
    create = AsyncMock(side_effect=openai.OpenAIError("gateway down"))
    reasoner = OpenRouterReasoner(openai_client=_client(create), model="m")

    with pytest.raises(LLMError) as excinfo:
        await reasoner.complete("prompt")

    assert excinfo.value.model == "m"
    assert "gateway down" in str(excinfo.value)


@pytest.mark.asyncio
async def test_empty_completion_is_an_error():
    create = AsyncMock(return_value=_response("   "))
    reasoner = OpenRouterReasoner(openai_client=_client(create), model="m")

    with pytest.raises(LLMError):
        await reasoner.complete("prompt")
