"""Strict parsing helpers for structured model output."""

import json
import math
from typing import Any

from nexus.features.triage.domain import ParseError
from nexus.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


def parse_json_object(raw: str) -> dict[str, Any]:
    """
    Parse a model response that must be a single JSON object.

    Raises:
        ParseError: Not JSON, or JSON that is not an object
    """
    try:
        result = json.loads(raw)
    except (json.JSONDecodeError, TypeError) as e:
        logger.warning(
            "Failed to parse model response as JSON", error=str(e), raw_result=(raw or "")[:200]
        )
        raise ParseError("Model returned invalid JSON", raw=raw) from e

    if not isinstance(result, dict):
        raise ParseError(f"Model returned {type(result).__name__}, expected object", raw=raw)
    return result


def coerce_score(value: Any, field: str = "score") -> int:
    """Validate a 0-100 score, clamping out-of-range numbers."""
    if isinstance(value, bool) or not isinstance(value, (int, float)) or math.isnan(value):
        raise ParseError(f"Invalid {field}: {value!r}")
    return max(0, min(100, int(round(value))))


def optional_text(payload: dict[str, Any], key: str) -> str:
    value = payload.get(key)
    return value.strip() if isinstance(value, str) else ""
