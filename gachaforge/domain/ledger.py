"""Per player and pool pity counters.

A ledger is never mutated in place: every draw produces a new ledger through
:func:`advance`, so the pull service only has to guard one read-modify-write
per batch.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Iterable

from .rewards import Rarity


@dataclass(frozen=True, slots=True)
class LedgerEntry:
    reward_id: str
    rarity: Rarity
    is_featured: bool
    is_first_copy: bool
    pulled_at: datetime


@dataclass(frozen=True, slots=True)
class DrawOutcome:
    """Minimal view of a draw needed to advance counters."""

    reward_id: str
    rarity: Rarity
    is_featured: bool


@dataclass(frozen=True, slots=True)
class PityLedger:
    player_id: int
    pool_id: str
    draws_since_top_tier: int = 0
    draws_since_featured: int = 0
    total_draws: int = 0
    recent_results: tuple[LedgerEntry, ...] = ()
    last_pull_at: datetime | None = None

    @classmethod
    def fresh(cls, player_id: int, pool_id: str) -> "PityLedger":
        return cls(player_id=player_id, pool_id=pool_id)

    def check_invariants(self) -> None:
        if self.draws_since_top_tier < 0 or self.draws_since_featured < 0:
            raise ValueError("Pity counters cannot be negative")
        if self.draws_since_top_tier > self.total_draws or self.draws_since_featured > self.total_draws:
            raise ValueError("Pity counters cannot exceed total draws")


def advance(ledger: PityLedger, draw: DrawOutcome, *, top_rarity: Rarity) -> PityLedger:
    """Return the ledger that results from one more draw."""
    return replace(
        ledger,
        total_draws=ledger.total_draws + 1,
        draws_since_top_tier=0 if draw.rarity is top_rarity else ledger.draws_since_top_tier + 1,
        draws_since_featured=0 if draw.is_featured else ledger.draws_since_featured + 1,
    )


def record_results(
    ledger: PityLedger,
    entries: Iterable[LedgerEntry],
    *,
    limit: int,
    at: datetime,
) -> PityLedger:
    """Append entries to the bounded result log, evicting the oldest."""
    combined = ledger.recent_results + tuple(entries)
    if limit <= 0:
        combined = ()
    elif len(combined) > limit:
        combined = combined[-limit:]
    return replace(ledger, recent_results=combined, last_pull_at=at)
