"""
Gemini streaming-generation backend.

The SDK does not give us a usable token count on streamed responses, so each
call is charged a fixed estimate (GEMINI_ESTIMATED_TOKENS / GEMINI_ESTIMATED_COST).
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions

from nexus.config import Settings
from nexus.features.triage.domain import ConfigError, ModelError
from nexus.infrastructure.observability.logging import get_logger, log_model_call
from nexus.services.llm.base import LLMResponse, LLMUsage

logger = get_logger(__name__)

ModelFactory = Callable[[str, str | None], Any]


class GeminiBackend:
    """Backend for Gemini via google-generativeai, streamed."""

    provider = "gemini"

    def __init__(self, config: Settings, model_factory: ModelFactory | None = None):
        self.model_name = config.GEMINI_MODEL
        self.timeout = config.LLM_TIMEOUT_SECONDS
        self.estimated_usage = LLMUsage(
            tokens=config.GEMINI_ESTIMATED_TOKENS, cost=config.GEMINI_ESTIMATED_COST
        )
        self._api_key = config.GEMINI_API_KEY
        self._model_factory = model_factory
        self._configured = model_factory is not None
        self._config_error_logged = False

    def _ensure_configured(self) -> None:
        if self._configured:
            return
        if not self._api_key:
            if not self._config_error_logged:
                logger.error("GEMINI_API_KEY not configured", provider=self.provider)
                self._config_error_logged = True
            raise ConfigError("Gemini API Key missing")

        genai.configure(api_key=self._api_key)
        self._configured = True
        logger.info("Gemini client configured", model=self.model_name)

    def _build_model(self, system_instruction: str | None):
        if self._model_factory is not None:
            return self._model_factory(self.model_name, system_instruction)
        return genai.GenerativeModel(self.model_name, system_instruction=system_instruction)

    async def _stream_text(self, model, prompt: str, wants_json: bool) -> str:
        generation_config = (
            genai.GenerationConfig(response_mime_type="application/json") if wants_json else None
        )
        response = await model.generate_content_async(
            prompt, generation_config=generation_config, stream=True
        )
        chunks: list[str] = []
        async for chunk in response:
            if chunk.text:
                chunks.append(chunk.text)
        return "".join(chunks)

    async def generate(
        self, prompt: str, wants_json: bool = True, system_instruction: str | None = None
    ) -> LLMResponse:
        self._ensure_configured()
        model = self._build_model(system_instruction)

        try:
            text = await asyncio.wait_for(
                self._stream_text(model, prompt, wants_json), timeout=self.timeout
            )
        except TimeoutError as e:
            log_model_call(self.provider, "generate", 0, 0.0, ok=False)
            raise ModelError(
                f"Gemini error: request timed out after {self.timeout}s", provider=self.provider
            ) from e
        except (google_exceptions.GoogleAPIError, ValueError) as e:
            # ValueError: blocked/empty candidates when reading chunk.text
            log_model_call(self.provider, "generate", 0, 0.0, ok=False)
            raise ModelError(
                f"Gemini error: {e}", provider=self.provider, api_error=str(e)
            ) from e

        log_model_call(
            self.provider, "generate", self.estimated_usage.tokens, self.estimated_usage.cost
        )
        return LLMResponse(text=text.strip(), usage=self.estimated_usage, provider=self.provider)
