"""
Service layer for the triage feature.
"""

from .cost_ledger import CostLedger
from .triage_queue import TriageQueue

__all__ = ["CostLedger", "TriageQueue"]
