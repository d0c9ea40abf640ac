"""
Models package for the result store.
"""
from .base import Base, create_engine_for, to_async_url
from .models import ConnectionCheck, TestResultDocument

__all__ = [
    "Base",
    "create_engine_for",
    "to_async_url",
    "ConnectionCheck",
    "TestResultDocument",
]
