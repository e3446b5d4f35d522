"""Aggregate pull statistics, fed from the event bus."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict

from .events import PULL_COMPLETED, EventBus, EventPayload


@dataclass(slots=True)
class PullStats:
    total_pulls: int = 0
    spent: Dict[str, int] = field(default_factory=dict)
    tickets_used: int = 0
    rarity_counts: Dict[str, int] = field(default_factory=dict)
    featured_count: int = 0
    first_copy_count: int = 0


class StatsTracker:
    """Keeps per-player counters for every committed batch."""

    def __init__(self) -> None:
        self._stats: dict[int, PullStats] = {}

    def attach(self, bus: EventBus) -> None:
        bus.subscribe(PULL_COMPLETED, self.on_pull_completed)

    async def on_pull_completed(self, payload: EventPayload) -> None:
        stats = self._stats.setdefault(payload["player_id"], PullStats())
        results = payload["results"]
        stats.total_pulls += len(results)
        currency, amount = payload["cost"]
        stats.spent[currency] = stats.spent.get(currency, 0) + amount
        if payload["used_ticket"]:
            stats.tickets_used += len(results)
        for result in results:
            stats.rarity_counts[result["rarity"]] = stats.rarity_counts.get(result["rarity"], 0) + 1
            if result["is_featured"]:
                stats.featured_count += 1
            if result["is_first_copy"]:
                stats.first_copy_count += 1

    def for_player(self, player_id: int) -> PullStats:
        return self._stats.get(player_id, PullStats())

    def totals(self) -> PullStats:
        total = PullStats()
        for stats in self._stats.values():
            total.total_pulls += stats.total_pulls
            total.tickets_used += stats.tickets_used
            total.featured_count += stats.featured_count
            total.first_copy_count += stats.first_copy_count
            for currency, amount in stats.spent.items():
                total.spent[currency] = total.spent.get(currency, 0) + amount
            for rarity, count in stats.rarity_counts.items():
                total.rarity_counts[rarity] = total.rarity_counts.get(rarity, 0) + count
        return total
