"""
OpenAI chat-completion backend.
Token-metered: usage is the exact token count the API reports, priced per 1K tokens.
"""

import asyncio

import openai
from openai import AsyncOpenAI

from nexus.config import Settings
from nexus.features.triage.domain import ConfigError, ModelError
from nexus.infrastructure.observability.logging import get_logger, log_model_call
from nexus.services.llm.base import LLMResponse, LLMUsage

logger = get_logger(__name__)

MAX_RATE_LIMIT_RETRIES = 2


class OpenAIBackend:
    """
    Backend for the OpenAI chat-completions API.

    The persona travels inside the prompt; ``system_instruction`` is sent as
    a system message when provided.
    """

    provider = "openai"

    def __init__(self, config: Settings, client: AsyncOpenAI | None = None):
        self.model = config.OPENAI_MODEL
        self.cost_per_1k_tokens = config.OPENAI_COST_PER_1K_TOKENS
        self.timeout = config.LLM_TIMEOUT_SECONDS
        self._api_key = config.OPENAI_API_KEY
        self._client = client
        self._config_error_logged = False

    def _get_client(self) -> AsyncOpenAI:
        if self._client is not None:
            return self._client

        if not self._api_key:
            if not self._config_error_logged:
                logger.error("OPENAI_API_KEY not configured", provider=self.provider)
                self._config_error_logged = True
            raise ConfigError("OpenAI API Key missing")

        self._client = AsyncOpenAI(api_key=self._api_key, timeout=self.timeout)
        logger.info("OpenAI client initialized", model=self.model, timeout=self.timeout)
        return self._client

    def _price(self, total_tokens: int) -> float:
        return (total_tokens / 1000) * self.cost_per_1k_tokens

    async def generate(
        self, prompt: str, wants_json: bool = True, system_instruction: str | None = None
    ) -> LLMResponse:
        client = self._get_client()

        messages = []
        if system_instruction:
            messages.append({"role": "system", "content": system_instruction})
        messages.append({"role": "user", "content": prompt})

        request = {"model": self.model, "messages": messages}
        if wants_json:
            request["response_format"] = {"type": "json_object"}

        last_error: Exception | None = None
        for attempt in range(MAX_RATE_LIMIT_RETRIES + 1):
            try:
                response = await client.chat.completions.create(**request)
                break
            except openai.RateLimitError as e:
                last_error = e
                wait_time = min(2**attempt, 30)
                logger.warning(
                    "OpenAI rate limit hit, retrying",
                    attempt=attempt + 1,
                    wait_time=wait_time,
                    error=str(e),
                )
                if attempt < MAX_RATE_LIMIT_RETRIES:
                    await asyncio.sleep(wait_time)
            except openai.APITimeoutError as e:
                log_model_call(self.provider, "generate", 0, 0.0, ok=False)
                raise ModelError(
                    f"OpenAI error: request timed out after {self.timeout}s",
                    provider=self.provider,
                    api_error=str(e),
                ) from e
            except openai.APIError as e:
                log_model_call(self.provider, "generate", 0, 0.0, ok=False)
                raise ModelError(
                    f"OpenAI error: {e}", provider=self.provider, api_error=str(e)
                ) from e
        else:
            log_model_call(self.provider, "generate", 0, 0.0, ok=False)
            raise ModelError(
                f"OpenAI error: rate limited after {MAX_RATE_LIMIT_RETRIES + 1} attempts",
                provider=self.provider,
                api_error=str(last_error),
            ) from last_error

        if not response.choices or not response.choices[0].message.content:
            raise ModelError("Empty response from OpenAI API", provider=self.provider)

        total_tokens = response.usage.total_tokens if response.usage else 0
        usage = LLMUsage(tokens=total_tokens, cost=self._price(total_tokens))
        log_model_call(self.provider, "generate", usage.tokens, usage.cost)

        return LLMResponse(
            text=response.choices[0].message.content.strip(),
            usage=usage,
            provider=self.provider,
        )
