"""Pytest fixtures for GachaForge."""

from __future__ import annotations

import pytest

from ..app import GachaApp
from ..config import GachaForgeConfig


@pytest.fixture()
def memory_app() -> GachaApp:
    config = GachaForgeConfig(storage=GachaForgeConfig().storage, rng_seed=7)
    return GachaApp(config)


def app_fixture(**kwargs) -> GachaApp:
    """Helper for ad-hoc tests where pytest is not available."""
    config = GachaForgeConfig(**kwargs)
    return GachaApp(config)
