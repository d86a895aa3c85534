"""
Contact enrichment package.

Cost-gated identity analysis for contacts, one call at a time.
"""

from .service import EnrichmentService

__all__ = ["EnrichmentService"]
