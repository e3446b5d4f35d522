"""Testing utilities for GachaForge."""

from .factory import PoolFactory, RewardFactory
from .fixtures import app_fixture, memory_app
from .test_client import TestClient

__all__ = [
    "PoolFactory",
    "RewardFactory",
    "app_fixture",
    "memory_app",
    "TestClient",
]
