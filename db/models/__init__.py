"""
Model package exports.

Import all SQLAlchemy models here so metadata registration and Alembic
autogeneration work without extra imports.
"""

from db.models.circuit import Circuit

__all__ = [
    "Circuit",
]
