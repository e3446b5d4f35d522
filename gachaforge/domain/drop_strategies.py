"""Strategies controlling what a duplicate reward converts into."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Mapping

from .rewards import Rarity, Reward

DEFAULT_SHARD_AMOUNTS: Mapping[Rarity, int] = {
    Rarity.UR: 50,
    Rarity.SSR: 20,
    Rarity.SR: 5,
    Rarity.R: 2,
    Rarity.N: 1,
}


class DuplicateStrategy(ABC):
    """Define how duplicates are converted."""

    @abstractmethod
    def convert(self, *, reward: Reward, owned: int) -> dict[str, int]:
        """Return currencies granted instead of a new copy."""


@dataclass(slots=True)
class ShardDuplicateStrategy(DuplicateStrategy):
    """Default behaviour: duplicates turn into shards scaled by rarity."""

    currency: str = "character_shard"
    amounts: Mapping[Rarity, int] = field(default_factory=lambda: dict(DEFAULT_SHARD_AMOUNTS))

    def convert(self, *, reward: Reward, owned: int) -> dict[str, int]:
        amount = self.amounts.get(reward.rarity, 1)
        if amount <= 0:
            return {}
        return {self.currency: amount}


@dataclass(slots=True)
class NoConversionStrategy(DuplicateStrategy):
    """Duplicates are kept as extra copies with no side reward."""

    def convert(self, *, reward: Reward, owned: int) -> dict[str, int]:
        return {}
