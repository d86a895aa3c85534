"""
Messaging gateway clients.
"""

from .evolution_client import EvolutionGatewayClient

__all__ = ["EvolutionGatewayClient"]
