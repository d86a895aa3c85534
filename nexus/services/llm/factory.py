"""Select the configured language-model backend."""

from nexus.config import Settings
from nexus.features.triage.domain import ConfigError
from nexus.infrastructure.observability.logging import get_logger
from nexus.services.llm.base import LLMBackend
from nexus.services.llm.gemini_backend import GeminiBackend
from nexus.services.llm.openai_backend import OpenAIBackend

logger = get_logger(__name__)

BACKENDS: dict[str, type] = {
    "openai": OpenAIBackend,
    "gemini": GeminiBackend,
}


def create_backend(config: Settings) -> LLMBackend:
    """Build the backend named by AI_PROVIDER."""
    provider = (config.AI_PROVIDER or "").strip().lower()
    if provider not in BACKENDS:
        raise ConfigError(
            f"Unknown AI provider '{config.AI_PROVIDER}'. "
            f"Available providers: {', '.join(sorted(BACKENDS))}"
        )

    logger.info("Model backend selected", provider=provider)
    return BACKENDS[provider](config)
