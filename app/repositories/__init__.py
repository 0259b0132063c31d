"""
Repository layer exports.
"""

from app.repositories.circuit_repository import CircuitRepository

__all__ = [
    "CircuitRepository",
]
