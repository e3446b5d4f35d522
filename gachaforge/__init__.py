"""GachaForge public API."""

from .app import GachaApp
from .config import GachaForgeConfig, PullConfig, StorageConfig
from .registry import CatalogRegistry, CurrencyRegistryFacade

__all__ = [
    "GachaApp",
    "GachaForgeConfig",
    "PullConfig",
    "StorageConfig",
    "CatalogRegistry",
    "CurrencyRegistryFacade",
]
