"""
Repository subpackage for the triage feature.
"""

from .identity_repository import IdentityRepository
from .message_repository import MessageRepository

__all__ = ["IdentityRepository", "MessageRepository"]
