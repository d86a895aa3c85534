"""
Signal scoring package.

Scores inbound messages with the configured model backend and admits the
high-value ones to the triage queue.
"""

from .service import DEFAULT_PERSONA, MIN_PERSONA_LENGTH, ScoringService, resolve_persona

__all__ = ["DEFAULT_PERSONA", "MIN_PERSONA_LENGTH", "ScoringService", "resolve_persona"]
