"""Persistence for profiles and call logs."""

from .base import ProfileRepository
from .memory import InMemoryRepository
from .sql import SqlRepository

__all__ = ["InMemoryRepository", "ProfileRepository", "SqlRepository"]
