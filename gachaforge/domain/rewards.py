"""Reward domain models and the read-only gacha catalog."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from .pools import PoolConfig


class Rarity(str, Enum):
    N = "n"
    R = "r"
    SR = "sr"
    SSR = "ssr"
    UR = "ur"

    @property
    def rank(self) -> int:
        return _RANKS[self]


_RANKS = {rarity: index for index, rarity in enumerate(Rarity)}

# Highest rarity first; the resolver walks tiers in this order.
RARITY_ORDER: tuple[Rarity, ...] = tuple(sorted(Rarity, key=lambda r: r.rank, reverse=True))


def rarities_at_or_above(minimum: Rarity) -> tuple[Rarity, ...]:
    return tuple(rarity for rarity in RARITY_ORDER if rarity.rank >= minimum.rank)


@dataclass(frozen=True, slots=True)
class Reward:
    """Definition of a collectible reward (character, weapon...)."""

    reward_id: str
    name: str
    rarity: Rarity = Rarity.N
    description: str = ""
    element: str | None = None
    tags: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True, slots=True)
class RewardMetadata:
    reward_id: str
    name: str
    rarity: Rarity
    description: str
    element: str | None


class GachaCatalog:
    """Registry of rewards and pools.

    Built once at startup and handed to the services; nothing in the pull
    pipeline mutates it.
    """

    def __init__(self) -> None:
        self._rewards: dict[str, Reward] = {}
        self._pools: dict[str, PoolConfig] = {}

    def register_reward(self, reward: Reward) -> None:
        if reward.reward_id in self._rewards:
            raise ValueError(f"Reward {reward.reward_id} already registered")
        self._rewards[reward.reward_id] = reward

    def register_rewards(self, rewards: Iterable[Reward]) -> None:
        for reward in rewards:
            self.register_reward(reward)

    def get_reward(self, reward_id: str) -> Reward:
        try:
            return self._rewards[reward_id]
        except KeyError as exc:
            raise KeyError(f"Reward {reward_id} not found") from exc

    def has_reward(self, reward_id: str) -> bool:
        return reward_id in self._rewards

    def register_pool(self, pool: PoolConfig) -> None:
        if pool.pool_id in self._pools:
            raise ValueError(f"Pool {pool.pool_id} already registered")
        self._pools[pool.pool_id] = pool

    def find_pool(self, pool_id: str) -> PoolConfig | None:
        return self._pools.get(pool_id)

    def get_pool(self, pool_id: str) -> PoolConfig:
        try:
            return self._pools[pool_id]
        except KeyError as exc:
            raise KeyError(f"Pool {pool_id} not found") from exc

    def iter_rewards(self) -> Iterable[Reward]:
        return self._rewards.values()

    def iter_pools(self) -> Iterable[PoolConfig]:
        return self._pools.values()

    def active_pools(self, now: datetime) -> list[PoolConfig]:
        return [pool for pool in self._pools.values() if pool.is_open(now)]

    def rewards_of_rarity(self, pool_id: str, rarity: Rarity) -> tuple[str, ...]:
        """Eligible reward ids of ``pool_id`` at ``rarity``, in declaration order.

        Ids unknown to the catalog are skipped; validation reports them.
        """
        pool = self.get_pool(pool_id)
        return tuple(
            reward_id
            for reward_id in pool.eligible_reward_ids
            if reward_id in self._rewards and self._rewards[reward_id].rarity is rarity
        )

    def reward_metadata(self, reward_id: str) -> RewardMetadata:
        reward = self.get_reward(reward_id)
        return RewardMetadata(
            reward_id=reward.reward_id,
            name=reward.name,
            rarity=reward.rarity,
            description=reward.description,
            element=reward.element,
        )

    def missing_tiers(self, pool_id: str) -> list[Rarity]:
        """Tiers with positive probability but no eligible reward."""
        pool = self.get_pool(pool_id)
        return [
            rarity
            for rarity in pool.offered_rarities
            if not self.rewards_of_rarity(pool_id, rarity)
        ]
