"""Pool configuration models."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Mapping

from .rewards import RARITY_ORDER, Rarity

RATE_TOLERANCE = 1e-6


class PoolType(str, Enum):
    NORMAL = "normal"
    LIMITED = "limited"
    ELEMENT = "element"
    FRIEND = "friend"
    NEWBIE = "newbie"


@dataclass(frozen=True, slots=True)
class Cost:
    currency: str
    amount: int


@dataclass(frozen=True, slots=True)
class PityConfig:
    """Pity parameters of a pool."""

    enabled: bool = True
    hard_pity_count: int = 90
    soft_pity_start: int = 75
    soft_pity_rate_per_draw: float = 0.0
    featured_guarantee_enabled: bool = False
    featured_guarantee_threshold: int = 0
    bulk_guarantee_min_rarity: Rarity | None = None


@dataclass(frozen=True, slots=True)
class PoolConfig:
    """Declarative definition of a reward pool."""

    pool_id: str
    name: str
    base_rates: Mapping[Rarity, float]
    eligible_reward_ids: tuple[str, ...]
    single_cost: Cost
    bulk_cost: Cost
    pity: PityConfig = field(default_factory=PityConfig)
    pool_type: PoolType = PoolType.NORMAL
    description: str = ""
    banner_image: str | None = None
    featured_reward_ids: tuple[str, ...] = ()
    featured_weight_multiplier: float = 1.0
    start_at: datetime | None = None
    end_at: datetime | None = None
    is_active: bool = True
    single_ticket: Cost | None = None
    bulk_ticket: Cost | None = None

    @property
    def offered_rarities(self) -> tuple[Rarity, ...]:
        return tuple(rarity for rarity in RARITY_ORDER if self.base_rates.get(rarity, 0.0) > 0)

    @property
    def top_rarity(self) -> Rarity:
        offered = self.offered_rarities
        if not offered:
            raise ValueError(f"Pool {self.pool_id} has no rarity with positive rate")
        return offered[0]

    def rates_sum_ok(self) -> bool:
        return math.isclose(sum(self.base_rates.values()), 1.0, abs_tol=RATE_TOLERANCE)

    def is_featured(self, reward_id: str) -> bool:
        return reward_id in self.featured_reward_ids

    def is_open(self, now: datetime) -> bool:
        if not self.is_active:
            return False
        now = as_utc(now)
        if self.start_at is not None and now < as_utc(self.start_at):
            return False
        if self.end_at is not None and now > as_utc(self.end_at):
            return False
        return True

    def cost_for(self, draw_count: int, bulk_size: int) -> Cost:
        return self.bulk_cost if draw_count == bulk_size else self.single_cost

    def ticket_for(self, draw_count: int, bulk_size: int) -> Cost | None:
        return self.bulk_ticket if draw_count == bulk_size else self.single_ticket


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
