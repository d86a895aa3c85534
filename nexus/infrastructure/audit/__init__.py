"""
User-visible activity logging for the triage pipeline.

Every recovered error and pipeline outcome is mirrored here and to the
structured logs.
"""

from nexus.infrastructure.audit.activity_log import ActivityLog, ActivityLogEntry

__all__ = ["ActivityLog", "ActivityLogEntry"]
