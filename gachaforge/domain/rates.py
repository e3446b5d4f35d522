"""Effective rarity distribution and rarity resolution."""

from __future__ import annotations

import logging
from typing import Mapping

from .ledger import PityLedger
from .pools import PoolConfig
from .rewards import RARITY_ORDER, Rarity

logger = logging.getLogger(__name__)


def effective_rates(pool: PoolConfig, ledger: PityLedger) -> dict[Rarity, float]:
    """Distribution for the next single draw given the current counters."""
    rates = {rarity: float(rate) for rarity, rate in pool.base_rates.items()}
    pity = pool.pity
    if not pity.enabled:
        return rates

    top = pool.top_rarity
    streak = ledger.draws_since_top_tier

    if pity.hard_pity_count > 0 and streak >= pity.hard_pity_count - 1:
        return {rarity: (1.0 if rarity is top else 0.0) for rarity in rates}

    if streak >= pity.soft_pity_start:
        base_top = rates[top]
        if base_top >= 1.0:
            return rates
        extra = (streak - pity.soft_pity_start) * pity.soft_pity_rate_per_draw
        new_top = min(base_top + extra, 1.0)
        scale = (1.0 - new_top) / (1.0 - base_top)
        for rarity in rates:
            if rarity is top:
                rates[rarity] = new_top
            else:
                rates[rarity] = max(0.0, rates[rarity] * scale)

    return rates


def resolve_rarity(distribution: Mapping[Rarity, float], sample: float) -> Rarity:
    """Pick a tier for ``sample`` in [0, 1), walking highest rarity first.

    Boundary rounding only ever favours the higher tier. If no tier claims the
    sample the lowest tier of the distribution is returned.
    """
    cumulative = 0.0
    for rarity in RARITY_ORDER:
        if rarity not in distribution:
            continue
        cumulative += distribution[rarity]
        if sample < cumulative:
            return rarity

    fallback = min(distribution, key=lambda r: r.rank)
    logger.warning(
        "Rarity sample %.17f unclaimed (cumulative mass %.17f); falling back to %s",
        sample,
        cumulative,
        fallback.value,
    )
    return fallback
