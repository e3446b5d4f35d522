"""Pick a concrete reward once the rarity of a draw is known."""

from __future__ import annotations

from dataclasses import dataclass
from random import Random
from typing import Sequence

from .exceptions import CatalogInconsistency
from .ledger import DrawOutcome, PityLedger
from .pools import PoolConfig
from .rewards import GachaCatalog, Rarity


@dataclass(frozen=True, slots=True)
class RewardDraw(DrawOutcome):
    forced_featured: bool = False


class RewardResolver:
    """Select a reward inside a tier, honouring featured weighting and guarantee."""

    def __init__(self, catalog: GachaCatalog, *, rng: Random | None = None) -> None:
        self._catalog = catalog
        self._rng = rng or Random()

    def resolve(self, rarity: Rarity, pool: PoolConfig, ledger: PityLedger) -> RewardDraw:
        candidates = self._catalog.rewards_of_rarity(pool.pool_id, rarity)
        if not candidates:
            raise CatalogInconsistency(
                f"Pool {pool.pool_id} has no eligible reward for rarity {rarity.value}"
            )

        featured = [reward_id for reward_id in candidates if pool.is_featured(reward_id)]
        if not featured:
            return RewardDraw(self._rng.choice(candidates), rarity, is_featured=False)

        pity = pool.pity
        if pity.featured_guarantee_enabled and ledger.draws_since_featured >= pity.featured_guarantee_threshold:
            return RewardDraw(
                self._rng.choice(featured), rarity, is_featured=True, forced_featured=True
            )

        weights = [
            pool.featured_weight_multiplier if pool.is_featured(reward_id) else 1.0
            for reward_id in candidates
        ]
        reward_id = candidates[self._weighted_index(weights)]
        return RewardDraw(reward_id, rarity, is_featured=pool.is_featured(reward_id))

    def _weighted_index(self, weights: Sequence[float]) -> int:
        total = sum(weights)
        if total <= 0:
            return int(self._rng.random() * len(weights))
        threshold = self._rng.random() * total
        cumulative = 0.0
        for idx, weight in enumerate(weights):
            cumulative += weight
            if threshold < cumulative:
                return idx
        return len(weights) - 1
