"""Chainable registration facades for rewards, pools and currencies."""

from __future__ import annotations

from .domain.economy import Currency, CurrencyRegistry
from .domain.pools import PoolConfig
from .domain.rewards import GachaCatalog, Reward


class CatalogRegistry:
    """Facade around GachaCatalog with chainable API."""

    def __init__(self, catalog: GachaCatalog | None = None) -> None:
        self.catalog = catalog or GachaCatalog()

    def reward(self, reward: Reward) -> "CatalogRegistry":
        self.catalog.register_reward(reward)
        return self

    def pool(self, pool: PoolConfig) -> "CatalogRegistry":
        self.catalog.register_pool(pool)
        return self


class CurrencyRegistryFacade:
    """Provide a convenient registration facade."""

    def __init__(self) -> None:
        self.registry = CurrencyRegistry()

    def currency(self, currency: Currency) -> "CurrencyRegistryFacade":
        self.registry.register(currency)
        return self


__all__ = [
    "CatalogRegistry",
    "CurrencyRegistryFacade",
]
