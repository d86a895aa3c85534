from pathlib import Path
from urllib.parse import urlparse

from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PATH = Path(__file__).resolve().parent.parent / ".env.local"


class Settings(BaseSettings):
    # Environment settings
    environment: str = "development"
    debug: bool = False
    LOG_LEVEL: str = "INFO"

    # Evolution API (messaging gateway) settings
    EVOLUTION_API_URL: str | None = None
    EVOLUTION_API_KEY: str | None = None
    EVOLUTION_INSTANCE_NAME: str = "Unified"
    EVOLUTION_INSTANCE_NAME_2: str | None = None
    GATEWAY_TIMEOUT_SECONDS: float = 20.0
    GATEWAY_MAX_RETRIES: int = 3

    # Model provider settings
    AI_PROVIDER: str = "openai"  # "openai" or "gemini"
    OPENAI_API_KEY: str | None = None
    OPENAI_MODEL: str = "gpt-5-mini"
    OPENAI_COST_PER_1K_TOKENS: float = 0.001
    GEMINI_API_KEY: str | None = None
    GEMINI_MODEL: str = "gemini-3-flash-preview"
    GEMINI_ESTIMATED_TOKENS: int = 450
    GEMINI_ESTIMATED_COST: float = 0.0005
    LLM_TIMEOUT_SECONDS: float = 45.0

    # Triage configuration
    TRIAGE_PERSONA: str = (
        "You are a strategic business assistant specializing in high-value real estate "
        "opportunities and professional networking. Identify leads and close deals with precision."
    )
    TRIAGE_SCORING_RULES: str = (
        "1. If message contains budget or investment amount, add +20 points\n"
        "2. If user asks about specific property/project, add +30 points\n"
        "3. If direct question to user, add +15 points\n"
        "4. If generic hello or social pleasantries, subtract -20 points\n"
        "5. If spam or unsolicited selling, score = 0"
    )
    TRIAGE_DRAFT_STYLE: str = (
        "Professional, concise (1-2 sentences), always end with helpful follow-up question."
    )
    TRIAGE_THRESHOLD: int = 75
    SCORING_SAMPLE_SIZE: int = 1

    # Enrichment cost controls
    ENRICHMENT_CONTEXT_MAX_CHARS: int = 4000
    ENRICHMENT_PACING_EVERY: int = 5
    ENRICHMENT_PACING_SECONDS: float = 1.5

    # Sync defaults
    HISTORY_FETCH_LIMIT: int = 20
    ACTIVITY_LOG_MAX_ENTRIES: int = 50

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def instances(self) -> list[str]:
        """Connected gateway instances, primary first."""
        names = [self.EVOLUTION_INSTANCE_NAME, self.EVOLUTION_INSTANCE_NAME_2]
        return [name for name in names if name]

    def gateway_host(self) -> str | None:
        """
        Extract the gateway host from EVOLUTION_API_URL, e.g.
        https://evo.example.com/ -> evo.example.com
        """
        if not self.EVOLUTION_API_URL:
            return None
        try:
            return urlparse(self.EVOLUTION_API_URL).hostname
        except Exception:
            return None


settings = Settings()
