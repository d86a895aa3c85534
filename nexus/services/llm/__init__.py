"""
Language-model backends.
"""

from .base import LLMBackend, LLMResponse, LLMUsage
from .factory import create_backend
from .gemini_backend import GeminiBackend
from .openai_backend import OpenAIBackend

__all__ = [
    "GeminiBackend",
    "LLMBackend",
    "LLMResponse",
    "LLMUsage",
    "OpenAIBackend",
    "create_backend",
]
