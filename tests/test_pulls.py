import asyncio
from datetime import datetime, timedelta, timezone
from random import Random

import pytest

from gachaforge.app import GachaApp
from gachaforge.config import GachaForgeConfig, PullConfig
from gachaforge.domain.events import FIRST_COPY, PITY_RESET, PULL_COMPLETED
from gachaforge.domain.exceptions import (
    CatalogInconsistency,
    InsufficientFunds,
    PersistenceFailure,
    PoolInactive,
    PoolNotFound,
    UnsupportedDrawCount,
)
from gachaforge.domain.inventory import PlayerInventory
from gachaforge.domain.ledger import PityLedger
from gachaforge.domain.locks import KeyedLocks
from gachaforge.domain.pools import Cost, PityConfig, PoolConfig
from gachaforge.domain.pulls import PullRequest
from gachaforge.domain.rewards import GachaCatalog, Rarity, Reward
from gachaforge.storage.memory import InMemoryPityLedgerStore, InMemoryPlayerStore

BASE_RATES = {
    Rarity.UR: 0.01,
    Rarity.SSR: 0.04,
    Rarity.SR: 0.15,
    Rarity.R: 0.30,
    Rarity.N: 0.50,
}

REWARDS = (
    Reward("dragon", "Dragon", rarity=Rarity.UR),
    Reward("phoenix", "Phoenix", rarity=Rarity.UR),
    Reward("knight", "Knight", rarity=Rarity.SSR),
    Reward("archer", "Archer", rarity=Rarity.SR),
    Reward("sr_feat", "Featured Mage", rarity=Rarity.SR),
    Reward("squire", "Squire", rarity=Rarity.R),
    Reward("slime", "Slime", rarity=Rarity.N),
    Reward("goblin", "Goblin", rarity=Rarity.N),
)


class ScriptedRandom:
    """Return queued samples, repeating the last one once the queue runs dry."""

    def __init__(self, samples, *, pick_last=False):
        self._samples = list(samples)
        self._pick_last = pick_last

    def random(self):
        if len(self._samples) > 1:
            return self._samples.pop(0)
        return self._samples[0]

    def choice(self, seq):
        return seq[-1] if self._pick_last else seq[0]


def make_pool(pool_id="standard", *, rewards=None, rates=None, pity=None, **kwargs):
    return PoolConfig(
        pool_id=pool_id,
        name=pool_id.title(),
        base_rates=rates or BASE_RATES,
        eligible_reward_ids=rewards or ("dragon", "phoenix", "knight", "archer", "squire", "slime", "goblin"),
        single_cost=Cost("diamond", 300),
        bulk_cost=Cost("diamond", 2700),
        pity=pity or PityConfig(hard_pity_count=90, soft_pity_start=75, soft_pity_rate_per_draw=0.0),
        **kwargs,
    )


def build_app(*pools, rng=None, config=None, **app_kwargs):
    app = GachaApp(config or GachaForgeConfig(), rng=rng or Random(5), **app_kwargs)
    app.catalog.catalog.register_rewards(REWARDS)
    for pool in pools or (make_pool(),):
        app.catalog.pool(pool)
    return app


async def inventory_of(app, player_id):
    record = await app.player_store.get_or_create(player_id)
    return record.inventory


@pytest.mark.asyncio()
async def test_single_pull_debits_grants_and_advances_ledger():
    app = build_app()
    await app.wallet.credit(1, "diamond", 300, "test")

    batch = await app.pull_service.pull(1, "standard", 1)

    assert len(batch.results) == 1
    assert batch.cost == Cost("diamond", 300)
    assert not batch.used_ticket
    assert await app.wallet.balance(1, "diamond") == 0
    inventory = await inventory_of(app, 1)
    assert inventory == {batch.results[0].reward_id: 1}
    assert batch.results[0].is_first_copy
    ledger = await app.pull_service.get_ledger(1, "standard")
    assert ledger.total_draws == 1
    assert len(ledger.recent_results) == 1


@pytest.mark.asyncio()
async def test_pull_request_delegates_to_pull():
    app = build_app()
    await app.wallet.credit(1, "diamond", 2700, "test")
    batch = await app.pull_service.pull_request(PullRequest(player_id=1, pool_id="standard", draw_count=10))
    assert len(batch.results) == 10
    assert batch.ledger.total_draws == 10


@pytest.mark.asyncio()
async def test_insufficient_funds_leaves_everything_untouched():
    app = build_app()
    events = []

    async def listener(payload):
        events.append(payload)

    app.event_bus.subscribe(PULL_COMPLETED, listener)

    with pytest.raises(InsufficientFunds):
        await app.pull_service.pull(1, "standard", 10)

    ledger = await app.pull_service.get_ledger(1, "standard")
    assert ledger.total_draws == 0
    assert await inventory_of(app, 1) == {}
    assert events == []
    assert not await app.pull_service.can_pull(1, "standard", 10)


class RefusingWallet:
    """Reports enough balance but refuses the debit itself."""

    def __init__(self):
        self.credits = []

    async def has_balance(self, player_id, currency, amount):
        return True

    async def debit(self, player_id, currency, amount, reason):
        return False

    async def credit(self, player_id, currency, amount, reason):
        self.credits.append((currency, amount))


@pytest.mark.asyncio()
async def test_refused_debit_aborts_before_any_grant():
    wallet = RefusingWallet()
    app = build_app(wallet=wallet)

    with pytest.raises(InsufficientFunds):
        await app.pull_service.pull(1, "standard", 1)

    ledger = await app.pull_service.get_ledger(1, "standard")
    assert ledger.total_draws == 0
    assert await inventory_of(app, 1) == {}
    assert wallet.credits == []


class FailingLedgerStore(InMemoryPityLedgerStore):
    async def save(self, ledger):
        raise RuntimeError("disk full")


@pytest.mark.asyncio()
async def test_ledger_save_failure_refunds_and_revokes():
    app = build_app(ledger_store=FailingLedgerStore())
    await app.wallet.credit(1, "diamond", 2700, "test")

    with pytest.raises(PersistenceFailure):
        await app.pull_service.pull(1, "standard", 10)

    assert await app.wallet.balance(1, "diamond") == 2700
    assert await app.wallet.balance(1, "character_shard") == 0
    assert await inventory_of(app, 1) == {}
    assert (await app.pull_service.get_ledger(1, "standard")).total_draws == 0


class SlowInventory(PlayerInventory):
    async def grant(self, player_id, reward_id):
        await asyncio.sleep(0.01)
        return await super().grant(player_id, reward_id)


class RevokeFailingInventory(PlayerInventory):
    async def revoke(self, outcome):
        raise RuntimeError("inventory offline")


def build_app_with_inventory(inventory_cls, **app_kwargs):
    store = InMemoryPlayerStore()
    catalog = GachaCatalog()
    locks = KeyedLocks()
    inventory = inventory_cls(store, catalog, locks=locks)
    app_kwargs.setdefault("ledger_store", InMemoryPityLedgerStore())
    return build_app(
        catalog=catalog,
        player_store=store,
        inventory=inventory,
        player_locks=locks,
        **app_kwargs,
    )


@pytest.mark.asyncio()
async def test_cancelled_pull_revokes_grants_and_refunds():
    app = build_app_with_inventory(SlowInventory)
    await app.wallet.credit(1, "diamond", 2700, "test")

    task = asyncio.create_task(app.pull_service.pull(1, "standard", 10))
    await asyncio.sleep(0.035)
    assert not task.done()
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task

    assert await app.wallet.balance(1, "diamond") == 2700
    assert await app.wallet.balance(1, "character_shard") == 0
    assert await inventory_of(app, 1) == {}
    assert (await app.pull_service.get_ledger(1, "standard")).total_draws == 0


@pytest.mark.asyncio()
async def test_refund_still_happens_when_revoke_fails():
    app = build_app_with_inventory(RevokeFailingInventory, ledger_store=FailingLedgerStore())
    await app.wallet.credit(1, "diamond", 2700, "test")

    with pytest.raises(PersistenceFailure):
        await app.pull_service.pull(1, "standard", 10)

    assert await app.wallet.balance(1, "diamond") == 2700
    assert sum((await inventory_of(app, 1)).values()) == 10


@pytest.mark.asyncio()
async def test_draw_at_hard_pity_threshold_is_top_tier():
    app = build_app()
    await app.ledger_store.save(
        PityLedger(1, "standard", draws_since_top_tier=89, draws_since_featured=89, total_draws=89)
    )
    await app.wallet.credit(1, "diamond", 300, "test")

    batch = await app.pull_service.pull(1, "standard", 1)

    assert batch.results[0].rarity is Rarity.UR
    assert batch.ledger.draws_since_top_tier == 0
    assert batch.ledger.total_draws == 90


@pytest.mark.asyncio()
async def test_pity_counter_never_exceeds_hard_pity():
    pool = make_pool(pity=PityConfig(hard_pity_count=10, soft_pity_start=10))
    app = build_app(pool)
    await app.wallet.credit(1, "diamond", 300 * 100, "test")
    for _ in range(100):
        batch = await app.pull_service.pull(1, "standard", 1)
        assert batch.ledger.draws_since_top_tier <= 9


@pytest.mark.asyncio()
async def test_bulk_guarantee_replaces_last_draw():
    pool = make_pool(
        pity=PityConfig(hard_pity_count=90, soft_pity_start=75, bulk_guarantee_min_rarity=Rarity.SR),
    )
    app = build_app(pool, rng=ScriptedRandom([0.99], pick_last=True))
    await app.wallet.credit(1, "diamond", 2700, "test")

    batch = await app.pull_service.pull(1, "standard", 10)

    assert [result.rarity for result in batch.results[:9]] == [Rarity.N] * 9
    assert batch.results[9].rarity is Rarity.SR
    assert batch.results[9].guaranteed
    assert not any(result.guaranteed for result in batch.results[:9])
    assert batch.ledger.draws_since_top_tier == 10
    assert batch.ledger.total_draws == 10


@pytest.mark.asyncio()
async def test_bulk_guarantee_untouched_when_floor_already_met():
    pool = make_pool(
        pity=PityConfig(hard_pity_count=90, soft_pity_start=75, bulk_guarantee_min_rarity=Rarity.SR),
    )
    app = build_app(pool, rng=ScriptedRandom([0.1, 0.99]))
    await app.wallet.credit(1, "diamond", 2700, "test")

    batch = await app.pull_service.pull(1, "standard", 10)

    assert batch.results[0].rarity is Rarity.SR
    assert batch.results[9].rarity is Rarity.N
    assert not any(result.guaranteed for result in batch.results)


@pytest.mark.asyncio()
async def test_bulk_guarantee_replacement_honours_pending_featured_guarantee():
    pool = make_pool(
        rewards=("dragon", "knight", "archer", "sr_feat", "squire", "slime", "goblin"),
        featured_reward_ids=("sr_feat",),
        pity=PityConfig(
            hard_pity_count=90,
            soft_pity_start=75,
            featured_guarantee_enabled=True,
            featured_guarantee_threshold=9,
            bulk_guarantee_min_rarity=Rarity.SR,
        ),
    )
    app = build_app(pool, rng=ScriptedRandom([0.99], pick_last=True))
    await app.wallet.credit(1, "diamond", 2700, "test")

    batch = await app.pull_service.pull(1, "standard", 10)

    last = batch.results[9]
    assert last.reward_id == "sr_feat"
    assert last.is_featured
    assert last.guaranteed
    assert batch.ledger.draws_since_featured == 0


@pytest.mark.asyncio()
async def test_ticket_is_used_before_currency():
    pool = make_pool(single_ticket=Cost("summon_ticket", 1), bulk_ticket=Cost("summon_ticket_10", 1))
    app = build_app(pool)
    await app.wallet.credit(1, "summon_ticket", 1, "test")
    await app.wallet.credit(1, "diamond", 300, "test")

    batch = await app.pull_service.pull(1, "standard", 1)

    assert batch.used_ticket
    assert batch.cost == Cost("summon_ticket", 1)
    assert await app.wallet.balance(1, "summon_ticket") == 0
    assert await app.wallet.balance(1, "diamond") == 300


@pytest.mark.asyncio()
async def test_tickets_can_be_disabled():
    pool = make_pool(single_ticket=Cost("summon_ticket", 1))
    config = GachaForgeConfig(pull=PullConfig(allow_tickets=False))
    app = build_app(pool, config=config)
    await app.wallet.credit(1, "summon_ticket", 1, "test")
    await app.wallet.credit(1, "diamond", 300, "test")

    batch = await app.pull_service.pull(1, "standard", 1)

    assert not batch.used_ticket
    assert await app.wallet.balance(1, "summon_ticket") == 1


@pytest.mark.asyncio()
async def test_unknown_pool_raises():
    app = build_app()
    with pytest.raises(PoolNotFound):
        await app.pull_service.pull(1, "missing", 1)
    with pytest.raises(PoolNotFound):
        await app.pull_service.get_pity_progress(1, "missing")


@pytest.mark.asyncio()
async def test_inactive_and_expired_pools_raise():
    now = datetime(2024, 6, 1, tzinfo=timezone.utc)
    app = build_app(
        make_pool("disabled", is_active=False),
        make_pool("expired", end_at=now - timedelta(days=1)),
        make_pool("upcoming", start_at=now + timedelta(days=1)),
    )
    await app.wallet.credit(1, "diamond", 900, "test")
    for pool_id in ("disabled", "expired", "upcoming"):
        with pytest.raises(PoolInactive):
            await app.pull_service.pull(1, pool_id, 1, now=now)
    assert await app.wallet.balance(1, "diamond") == 900


@pytest.mark.asyncio()
async def test_unsupported_draw_count_raises():
    app = build_app()
    await app.wallet.credit(1, "diamond", 3000, "test")
    with pytest.raises(UnsupportedDrawCount):
        await app.pull_service.pull(1, "standard", 5)
    assert not await app.pull_service.can_pull(1, "standard", 5)


@pytest.mark.asyncio()
async def test_missing_tier_is_catalog_inconsistency():
    pool = make_pool(rewards=("dragon", "knight", "squire", "slime"))
    app = build_app(pool)
    await app.wallet.credit(1, "diamond", 300, "test")
    with pytest.raises(CatalogInconsistency):
        await app.pull_service.pull(1, "standard", 1)
    assert await app.wallet.balance(1, "diamond") == 300


@pytest.mark.asyncio()
async def test_duplicates_convert_into_shards():
    pool = make_pool(rewards=("slime",), rates={Rarity.N: 1.0})
    app = build_app(pool)
    await app.wallet.credit(1, "diamond", 600, "test")

    first = await app.pull_service.pull(1, "standard", 1)
    second = await app.pull_service.pull(1, "standard", 1)

    assert first.results[0].is_first_copy
    assert not second.results[0].is_first_copy
    assert second.results[0].conversion_items == {"character_shard": 1}
    assert await app.wallet.balance(1, "character_shard") == 1
    assert (await inventory_of(app, 1))["slime"] == 2


class SlowLedgerStore(InMemoryPityLedgerStore):
    async def load(self, player_id, pool_id):
        await asyncio.sleep(0)
        return await super().load(player_id, pool_id)

    async def save(self, ledger):
        await asyncio.sleep(0)
        await super().save(ledger)


@pytest.mark.asyncio()
async def test_concurrent_pulls_are_serialized_per_ledger():
    app = build_app(ledger_store=SlowLedgerStore())
    await app.wallet.credit(1, "diamond", 300 * 10, "test")

    await asyncio.gather(*(app.pull_service.pull(1, "standard", 1) for _ in range(10)))

    ledger = await app.pull_service.get_ledger(1, "standard")
    assert ledger.total_draws == 10
    assert await app.wallet.balance(1, "diamond") == 0


@pytest.mark.asyncio()
async def test_pity_progress_reports_effective_rate():
    pool = make_pool(pity=PityConfig(hard_pity_count=90, soft_pity_start=75, soft_pity_rate_per_draw=0.02))
    app = build_app(pool, make_pool("friend", pity=PityConfig(enabled=False)))
    await app.ledger_store.save(
        PityLedger(1, "standard", draws_since_top_tier=80, draws_since_featured=80, total_draws=80)
    )

    progress = await app.pull_service.get_pity_progress(1, "standard")
    assert progress.current == 80
    assert progress.hard_pity_max == 90
    assert progress.effective_top_rate == pytest.approx(0.11)
    assert progress.total_draws == 80

    disabled = await app.pull_service.get_pity_progress(1, "friend")
    assert disabled.hard_pity_max is None
    assert disabled.effective_top_rate == pytest.approx(0.01)


@pytest.mark.asyncio()
async def test_pity_progress_on_pool_without_positive_rate_is_catalog_inconsistency():
    pool = make_pool(rewards=("slime",), rates={Rarity.N: 0.0})
    app = build_app(pool)
    with pytest.raises(CatalogInconsistency):
        await app.pull_service.get_pity_progress(1, "standard")


def test_list_active_pools_filters_by_window():
    now = datetime(2024, 6, 1, tzinfo=timezone.utc)
    app = build_app(
        make_pool("standard"),
        make_pool("expired", end_at=now - timedelta(hours=1)),
        make_pool("naive_window", start_at=datetime(2024, 5, 1), end_at=datetime(2024, 7, 1)),
    )
    active = [pool.pool_id for pool in app.pull_service.list_active_pools(now)]
    assert active == ["standard", "naive_window"]


@pytest.mark.asyncio()
async def test_events_and_stats_follow_committed_pulls():
    app = build_app(rng=ScriptedRandom([0.0]))
    completed, first_copies, resets = [], [], []

    async def on_completed(payload):
        completed.append(payload)

    async def on_first_copy(payload):
        first_copies.append(payload)

    async def on_reset(payload):
        resets.append(payload)

    app.event_bus.subscribe(PULL_COMPLETED, on_completed)
    app.event_bus.subscribe(FIRST_COPY, on_first_copy)
    app.event_bus.subscribe(PITY_RESET, on_reset)
    await app.wallet.credit(1, "diamond", 600, "test")

    await app.pull_service.pull(1, "standard", 1)
    await app.pull_service.pull(1, "standard", 1)

    assert len(completed) == 2
    assert completed[0]["results"][0]["rarity"] == "ur"
    assert [payload["reward_id"] for payload in first_copies] == ["dragon"]
    assert len(resets) == 2

    stats = app.stats.for_player(1)
    assert stats.total_pulls == 2
    assert stats.spent == {"diamond": 600}
    assert stats.rarity_counts == {"ur": 2}
    assert stats.first_copy_count == 1
    assert app.stats.totals().total_pulls == 2


@pytest.mark.asyncio()
async def test_recent_results_are_bounded():
    config = GachaForgeConfig(pull=PullConfig(recent_results_limit=3))
    app = build_app(config=config)
    await app.wallet.credit(1, "diamond", 2700, "test")

    batch = await app.pull_service.pull(1, "standard", 10)

    assert len(batch.ledger.recent_results) == 3
    assert [entry.reward_id for entry in batch.ledger.recent_results] == [
        result.reward_id for result in batch.results[-3:]
    ]
