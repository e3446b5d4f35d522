"""Pull orchestration: validation, draws, bulk guarantee and commit."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from random import Random
from typing import TYPE_CHECKING, AsyncContextManager, Mapping, Sequence

from .events import FIRST_COPY, PITY_RESET, PULL_COMPLETED, EventBus
from .exceptions import (
    CatalogInconsistency,
    GachaForgeError,
    InsufficientFunds,
    PersistenceFailure,
    PoolInactive,
    PoolNotFound,
    UnsupportedDrawCount,
)
from .inventory import GrantOutcome, InventoryGateway
from .economy import WalletGateway
from .locks import KeyedLocks
from .ledger import LedgerEntry, PityLedger, advance, record_results
from .pools import Cost, PoolConfig
from .rates import effective_rates, resolve_rarity
from .resolver import RewardDraw, RewardResolver
from .rewards import GachaCatalog, Rarity, rarities_at_or_above
from ..config import PullConfig

if TYPE_CHECKING:
    from ..storage.base import PityLedgerStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PullRequest:
    player_id: int
    pool_id: str
    draw_count: int


@dataclass(frozen=True, slots=True)
class PullResult:
    reward_id: str
    rarity: Rarity
    is_featured: bool
    is_first_copy: bool
    conversion_items: Mapping[str, int] = field(default_factory=dict)
    guaranteed: bool = False


@dataclass(frozen=True, slots=True)
class PullBatchResult:
    player_id: int
    pool_id: str
    results: tuple[PullResult, ...]
    ledger: PityLedger
    cost: Cost
    used_ticket: bool = False


@dataclass(frozen=True, slots=True)
class PityProgress:
    current: int
    hard_pity_max: int | None
    effective_top_rate: float
    draws_since_featured: int
    total_draws: int


@dataclass(frozen=True, slots=True)
class BatchRoll:
    """Draws of a batch before anything is charged or persisted."""

    draws: tuple[RewardDraw, ...]
    ledger: PityLedger
    guaranteed_index: int | None = None


class LedgerLocks(KeyedLocks):
    """Locks keyed by (player, pool)."""

    def hold_ledger(self, player_id: int, pool_id: str) -> AsyncContextManager[None]:
        return self.hold((player_id, pool_id))


class PullService:
    """Entry point for pulls; the only component with side effects."""

    def __init__(
        self,
        catalog: GachaCatalog,
        ledger_store: "PityLedgerStore",
        wallet: WalletGateway,
        inventory: InventoryGateway,
        pull_config: PullConfig,
        event_bus: EventBus,
        *,
        rng: Random | None = None,
    ) -> None:
        self._catalog = catalog
        self._ledgers = ledger_store
        self._wallet = wallet
        self._inventory = inventory
        self._config = pull_config
        self._events = event_bus
        self._rng = rng or Random()
        self._resolver = RewardResolver(catalog, rng=self._rng)
        self._locks = LedgerLocks()

    async def pull_request(self, request: PullRequest, *, now: datetime | None = None) -> PullBatchResult:
        return await self.pull(request.player_id, request.pool_id, request.draw_count, now=now)

    async def pull(
        self,
        player_id: int,
        pool_id: str,
        draw_count: int,
        *,
        now: datetime | None = None,
    ) -> PullBatchResult:
        now = now or datetime.now(timezone.utc)
        pool = self._open_pool(pool_id, now)
        self._check_draw_count(draw_count)
        self._check_catalog(pool)

        async with self._locks.hold_ledger(player_id, pool_id):
            charge, used_ticket = await self._select_charge(player_id, pool, draw_count)
            ledger = await self._load_ledger(player_id, pool_id)
            roll = self.roll_batch(pool, ledger, draw_count)
            results, committed = await self._commit(player_id, pool, roll, charge, now)

        batch = PullBatchResult(
            player_id=player_id,
            pool_id=pool_id,
            results=results,
            ledger=committed,
            cost=charge,
            used_ticket=used_ticket,
        )
        logger.info(
            "Player %s pulled %s from %s for %s %s (pity %s -> %s)",
            player_id,
            draw_count,
            pool_id,
            charge.amount,
            charge.currency,
            ledger.draws_since_top_tier,
            committed.draws_since_top_tier,
        )
        await self._publish(batch, pool)
        return batch

    async def get_pity_progress(self, player_id: int, pool_id: str) -> PityProgress:
        pool = self._find_pool(pool_id)
        self._check_catalog(pool)
        ledger = await self._load_ledger(player_id, pool_id)
        rates = effective_rates(pool, ledger)
        return PityProgress(
            current=ledger.draws_since_top_tier,
            hard_pity_max=pool.pity.hard_pity_count if pool.pity.enabled else None,
            effective_top_rate=rates[pool.top_rarity],
            draws_since_featured=ledger.draws_since_featured,
            total_draws=ledger.total_draws,
        )

    async def get_ledger(self, player_id: int, pool_id: str) -> PityLedger:
        self._find_pool(pool_id)
        return await self._load_ledger(player_id, pool_id)

    def list_active_pools(self, now: datetime | None = None) -> list[PoolConfig]:
        return self._catalog.active_pools(now or datetime.now(timezone.utc))

    async def can_pull(
        self,
        player_id: int,
        pool_id: str,
        draw_count: int,
        *,
        now: datetime | None = None,
    ) -> bool:
        try:
            pool = self._open_pool(pool_id, now or datetime.now(timezone.utc))
            self._check_draw_count(draw_count)
            await self._select_charge(player_id, pool, draw_count)
        except GachaForgeError:
            return False
        return True

    def roll_batch(self, pool: PoolConfig, ledger: PityLedger, draw_count: int) -> BatchRoll:
        """Resolve ``draw_count`` draws against an in-progress copy of ``ledger``."""
        before: list[PityLedger] = []
        draws: list[RewardDraw] = []
        current = ledger
        for _ in range(draw_count):
            before.append(current)
            draw = self._draw_once(pool, current)
            draws.append(draw)
            current = advance(current, draw, top_rarity=pool.top_rarity)

        roll = BatchRoll(draws=tuple(draws), ledger=current)
        if draw_count == self._config.bulk_size and pool.pity.bulk_guarantee_min_rarity is not None:
            roll = self._apply_bulk_guarantee(pool, roll, before)
        return roll

    def _draw_once(self, pool: PoolConfig, ledger: PityLedger) -> RewardDraw:
        rates = effective_rates(pool, ledger)
        rarity = resolve_rarity(rates, self._rng.random())
        draw = self._resolver.resolve(rarity, pool, ledger)
        logger.debug(
            "Draw %s in %s: %s/%s (top rate %.4f)",
            ledger.total_draws + 1,
            pool.pool_id,
            rarity.value,
            draw.reward_id,
            rates[pool.top_rarity],
        )
        return draw

    def _apply_bulk_guarantee(
        self, pool: PoolConfig, roll: BatchRoll, before: Sequence[PityLedger]
    ) -> BatchRoll:
        floor = pool.pity.bulk_guarantee_min_rarity
        if any(draw.rarity.rank >= floor.rank for draw in roll.draws):
            return roll

        # The sacrificed draw is always the last one: index draw_count - 1.
        index = len(roll.draws) - 1
        starting = before[index]
        tiers = self._guarantee_tiers(pool)
        rarity = self._rng.choice(tiers)
        replacement = self._resolver.resolve(rarity, pool, starting)
        logger.debug(
            "Bulk guarantee in %s replaced %s with %s/%s",
            pool.pool_id,
            roll.draws[index].rarity.value,
            rarity.value,
            replacement.reward_id,
        )
        return BatchRoll(
            draws=roll.draws[:index] + (replacement,),
            ledger=advance(starting, replacement, top_rarity=pool.top_rarity),
            guaranteed_index=index,
        )

    def _guarantee_tiers(self, pool: PoolConfig) -> tuple[Rarity, ...]:
        floor = pool.pity.bulk_guarantee_min_rarity
        if floor is None:
            return ()
        offered = pool.offered_rarities
        return tuple(rarity for rarity in rarities_at_or_above(floor) if rarity in offered)

    async def _commit(
        self,
        player_id: int,
        pool: PoolConfig,
        roll: BatchRoll,
        charge: Cost,
        now: datetime,
    ) -> tuple[tuple[PullResult, ...], PityLedger]:
        reason = f"gacha:{pool.pool_id}:{len(roll.draws)}"
        if not await self._wallet.debit(player_id, charge.currency, charge.amount, reason):
            raise InsufficientFunds(charge.currency, charge.amount)

        granted: list[GrantOutcome] = []
        try:
            for draw in roll.draws:
                granted.append(await self._inventory.grant(player_id, draw.reward_id))

            results = tuple(
                PullResult(
                    reward_id=draw.reward_id,
                    rarity=draw.rarity,
                    is_featured=draw.is_featured,
                    is_first_copy=grant.is_first_copy,
                    conversion_items=dict(grant.conversion_items),
                    guaranteed=index == roll.guaranteed_index,
                )
                for index, (draw, grant) in enumerate(zip(roll.draws, granted))
            )
            committed = record_results(
                roll.ledger,
                (
                    LedgerEntry(
                        reward_id=result.reward_id,
                        rarity=result.rarity,
                        is_featured=result.is_featured,
                        is_first_copy=result.is_first_copy,
                        pulled_at=now,
                    )
                    for result in results
                ),
                limit=self._config.recent_results_limit,
                at=now,
            )
            await self._save_ledger(committed)
        except BaseException:
            logger.warning(
                "Rolling back pull of player %s in %s (%s grants, %s %s)",
                player_id,
                pool.pool_id,
                len(granted),
                charge.amount,
                charge.currency,
            )
            await self._rollback(player_id, granted, charge, reason)
            raise
        return results, committed

    async def _rollback(
        self, player_id: int, granted: Sequence[GrantOutcome], charge: Cost, reason: str
    ) -> None:
        """Revoke grants newest first, then refund; every step is attempted."""
        for outcome in reversed(granted):
            try:
                await self._inventory.revoke(outcome)
            except Exception:
                logger.exception("Revoking %s from player %s failed", outcome.reward_id, player_id)
        try:
            await self._wallet.credit(player_id, charge.currency, charge.amount, f"refund:{reason}")
        except Exception:
            logger.exception(
                "Refunding %s %s to player %s failed", charge.amount, charge.currency, player_id
            )

    async def _publish(self, batch: PullBatchResult, pool: PoolConfig) -> None:
        top_hits = sum(1 for result in batch.results if result.rarity is pool.top_rarity)
        if top_hits:
            await self._events.publish(
                PITY_RESET,
                {"player_id": batch.player_id, "pool_id": batch.pool_id, "hits": top_hits},
            )
        for result in batch.results:
            if result.is_first_copy:
                await self._events.publish(
                    FIRST_COPY,
                    {
                        "player_id": batch.player_id,
                        "reward_id": result.reward_id,
                        "rarity": result.rarity.value,
                    },
                )
        await self._events.publish(
            PULL_COMPLETED,
            {
                "player_id": batch.player_id,
                "pool_id": batch.pool_id,
                "cost": (batch.cost.currency, batch.cost.amount),
                "used_ticket": batch.used_ticket,
                "total_draws": batch.ledger.total_draws,
                "pity_counter": batch.ledger.draws_since_top_tier,
                "results": [
                    {
                        "reward_id": result.reward_id,
                        "rarity": result.rarity.value,
                        "is_featured": result.is_featured,
                        "is_first_copy": result.is_first_copy,
                    }
                    for result in batch.results
                ],
            },
        )

    def _find_pool(self, pool_id: str) -> PoolConfig:
        pool = self._catalog.find_pool(pool_id)
        if pool is None:
            raise PoolNotFound(pool_id)
        return pool

    def _open_pool(self, pool_id: str, now: datetime) -> PoolConfig:
        pool = self._find_pool(pool_id)
        if not pool.is_active:
            raise PoolInactive(pool_id, "disabled")
        if not pool.is_open(now):
            raise PoolInactive(pool_id, "outside time window")
        return pool

    def _check_draw_count(self, draw_count: int) -> None:
        if draw_count not in self._config.supported_sizes:
            raise UnsupportedDrawCount(draw_count, self._config.supported_sizes)

    def _check_catalog(self, pool: PoolConfig) -> None:
        problems: list[str] = []
        if not pool.rates_sum_ok():
            problems.append(f"base rates sum to {sum(pool.base_rates.values())}")
        if not pool.offered_rarities:
            problems.append("no rarity has a positive rate")
        missing = self._catalog.missing_tiers(pool.pool_id)
        if missing:
            problems.append("no eligible reward for " + ", ".join(r.value for r in missing))
        if pool.pity.bulk_guarantee_min_rarity is not None and pool.offered_rarities and not self._guarantee_tiers(pool):
            problems.append(
                f"bulk guarantee floor {pool.pity.bulk_guarantee_min_rarity.value} is above every offered tier"
            )
        if problems:
            message = f"Pool {pool.pool_id} is misconfigured: " + "; ".join(problems)
            logger.critical(message)
            raise CatalogInconsistency(message)

    async def _select_charge(self, player_id: int, pool: PoolConfig, draw_count: int) -> tuple[Cost, bool]:
        ticket = pool.ticket_for(draw_count, self._config.bulk_size) if self._config.allow_tickets else None
        if ticket is not None and await self._wallet.has_balance(player_id, ticket.currency, ticket.amount):
            return ticket, True
        cost = pool.cost_for(draw_count, self._config.bulk_size)
        if not await self._wallet.has_balance(player_id, cost.currency, cost.amount):
            raise InsufficientFunds(cost.currency, cost.amount)
        return cost, False

    async def _load_ledger(self, player_id: int, pool_id: str) -> PityLedger:
        try:
            ledger = await self._ledgers.load(player_id, pool_id)
        except PersistenceFailure:
            raise
        except Exception as exc:
            raise PersistenceFailure(f"Cannot load ledger for {player_id}/{pool_id}") from exc
        return ledger or PityLedger.fresh(player_id, pool_id)

    async def _save_ledger(self, ledger: PityLedger) -> None:
        ledger.check_invariants()
        try:
            await self._ledgers.save(ledger)
        except PersistenceFailure:
            raise
        except Exception as exc:
            raise PersistenceFailure(
                f"Cannot save ledger for {ledger.player_id}/{ledger.pool_id}"
            ) from exc
