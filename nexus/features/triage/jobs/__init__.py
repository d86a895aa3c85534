"""
Background jobs for the triage feature.
"""

from .batch_sync_job import run_batch_sync, sync_monitored_groups

__all__ = ["run_batch_sync", "sync_monitored_groups"]
