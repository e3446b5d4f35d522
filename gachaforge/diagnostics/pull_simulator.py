"""Monte-Carlo simulation of a pool's pull pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from random import Random
from typing import Dict

from ..domain.ledger import PityLedger, advance
from ..domain.rates import effective_rates, resolve_rarity
from ..domain.resolver import RewardResolver
from ..domain.rewards import GachaCatalog


@dataclass(slots=True)
class SimulationResult:
    pool_id: str
    pulls: int
    rarity_counts: Dict[str, int] = field(default_factory=dict)
    featured: int = 0
    top_hits: int = 0
    longest_dry_streak: int = 0

    @property
    def top_rate(self) -> float:
        return self.top_hits / self.pulls if self.pulls else 0.0

    @property
    def mean_draws_per_top(self) -> float | None:
        return self.pulls / self.top_hits if self.top_hits else None


class PullSimulator:
    """Replay the real rate/rarity/reward pipeline without touching any store."""

    def __init__(self, catalog: GachaCatalog, *, rng: Random | None = None) -> None:
        self._catalog = catalog
        self._rng = rng or Random()
        self._resolver = RewardResolver(catalog, rng=self._rng)

    def simulate(self, pool_id: str, *, pulls: int = 1000, apply_pity: bool = True) -> SimulationResult:
        """Run ``pulls`` single draws.

        With ``apply_pity=False`` the ledger is frozen at its fresh state, which
        measures the raw base-rate behaviour of the resolver.
        """
        pool = self._catalog.get_pool(pool_id)
        top = pool.top_rarity
        result = SimulationResult(pool_id=pool_id, pulls=pulls)
        ledger = PityLedger.fresh(0, pool_id)
        streak = 0

        for _ in range(pulls):
            rarity = resolve_rarity(effective_rates(pool, ledger), self._rng.random())
            draw = self._resolver.resolve(rarity, pool, ledger)
            result.rarity_counts[rarity.value] = result.rarity_counts.get(rarity.value, 0) + 1
            if draw.is_featured:
                result.featured += 1
            if rarity is top:
                result.top_hits += 1
                streak = 0
            else:
                streak += 1
                result.longest_dry_streak = max(result.longest_dry_streak, streak)
            if apply_pity:
                ledger = advance(ledger, draw, top_rarity=top)
        return result
