import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from conftest import make_message, scoring_payload
from nexus.config import Settings
from nexus.features.triage.domain import ConfigError, ModelError
from nexus.features.triage.services.context import build_context
from nexus.infrastructure.observability.logging import setup_logging
from nexus.services.llm import GeminiBackend, OpenAIBackend, create_backend


def _settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


def _completion(content: str, total_tokens: int):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        usage=SimpleNamespace(total_tokens=total_tokens),
    )


def _openai_client(create_mock):
    client = MagicMock()
    client.chat.completions.create = create_mock
    return client


@pytest.mark.asyncio
async def test_openai_usage_is_metered_per_token():
    create = AsyncMock(return_value=_completion('{"score": 1}', 2000))
    backend = OpenAIBackend(_settings(OPENAI_API_KEY="sk"), client=_openai_client(create))

    response = await backend.generate("prompt", wants_json=True, system_instruction="persona")

    assert response.text == '{"score": 1}'
    assert response.usage.tokens == 2000
    assert response.usage.cost == pytest.approx(0.002)
    kwargs = create.await_args.kwargs
    assert kwargs["response_format"] == {"type": "json_object"}
    assert kwargs["messages"][0] == {"role": "system", "content": "persona"}


@pytest.mark.asyncio
async def test_openai_plain_text_request_has_no_response_format():
    create = AsyncMock(return_value=_completion("hello", 10))
    backend = OpenAIBackend(_settings(OPENAI_API_KEY="sk"), client=_openai_client(create))

    await backend.generate("prompt", wants_json=False)

    assert "response_format" not in create.await_args.kwargs


@pytest.mark.asyncio
async def test_openai_empty_response_is_model_error():
    create = AsyncMock(return_value=_completion("", 5))
    backend = OpenAIBackend(_settings(OPENAI_API_KEY="sk"), client=_openai_client(create))

    with pytest.raises(ModelError):
        await backend.generate("prompt")


@pytest.mark.asyncio
async def test_openai_without_key_is_config_error():
    backend = OpenAIBackend(_settings(OPENAI_API_KEY=None))

    with pytest.raises(ConfigError):
        await backend.generate("prompt")


class _FakeStream:
    def __init__(self, chunks):
        self._chunks = list(chunks)

    def __aiter__(self):
        return self

    async def __anext__(self):
        if not self._chunks:
            raise StopAsyncIteration
        return SimpleNamespace(text=self._chunks.pop(0))


@pytest.mark.asyncio
async def test_gemini_streams_and_charges_fixed_estimate():
    built = {}

    def factory(model_name, system_instruction):
        built["model"] = model_name
        built["system_instruction"] = system_instruction
        model = MagicMock()
        model.generate_content_async = AsyncMock(return_value=_FakeStream(['{"sco', 're": 5}']))
        return model

    backend = GeminiBackend(_settings(GEMINI_API_KEY="g"), model_factory=factory)

    response = await backend.generate("prompt", system_instruction="persona")

    assert response.text == '{"score": 5}'
    assert response.usage.tokens == 450
    assert response.usage.cost == pytest.approx(0.0005)
    assert built["system_instruction"] == "persona"


@pytest.mark.asyncio
async def test_gemini_without_key_is_config_error():
    backend = GeminiBackend(_settings(GEMINI_API_KEY=None))

    with pytest.raises(ConfigError):
        await backend.generate("prompt")


def test_factory_selects_backend_by_provider():
    assert isinstance(create_backend(_settings(AI_PROVIDER="openai")), OpenAIBackend)
    assert isinstance(create_backend(_settings(AI_PROVIDER="Gemini")), GeminiBackend)
    with pytest.raises(ConfigError):
        create_backend(_settings(AI_PROVIDER="llama"))


@pytest.mark.asyncio
async def test_metered_call_is_ledgered_through_analysis(test_settings, fake_gateway):
    setup_logging("INFO")
    payload = json.dumps(scoring_payload(score=90))
    create = AsyncMock(return_value=_completion(payload, 1500))
    backend = OpenAIBackend(test_settings, client=_openai_client(create))
    pipeline = build_context(test_settings, backend=backend, gateway=fake_gateway)

    entry = await pipeline.scoring.analyze(make_message())

    assert entry is not None
    assert entry.value_score == 90
    snapshot = pipeline.ledger.snapshot()
    assert snapshot.tokens == 1500
    assert snapshot.total_cost == pytest.approx(0.0015)
