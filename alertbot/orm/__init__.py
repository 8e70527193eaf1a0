"""ORM models for database persistence."""

from .base import Base
from .registration import Registration

__all__ = [
    "Base",
    "Registration",
]
