"""
HTTP surface for the triage feature.
"""

from .router import router as triage_router

__all__ = ["triage_router"]
