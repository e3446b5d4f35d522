from random import Random

import pytest

from gachaforge.domain.exceptions import CatalogInconsistency
from gachaforge.domain.ledger import PityLedger
from gachaforge.domain.pools import Cost, PityConfig, PoolConfig
from gachaforge.domain.resolver import RewardResolver
from gachaforge.domain.rewards import GachaCatalog, Rarity, Reward


@pytest.fixture()
def catalog():
    catalog = GachaCatalog()
    catalog.register_rewards(
        [
            Reward("dragon", "Dragon", rarity=Rarity.SSR),
            Reward("knight", "Knight", rarity=Rarity.SSR),
            Reward("archer", "Archer", rarity=Rarity.SSR),
            Reward("slime", "Slime", rarity=Rarity.N),
        ]
    )
    return catalog


def make_pool(catalog, *, featured=("dragon",), multiplier=1.0, guarantee=False, threshold=0, rewards=None):
    pool = PoolConfig(
        pool_id="limited",
        name="Limited",
        base_rates={Rarity.SSR: 0.1, Rarity.N: 0.9},
        eligible_reward_ids=rewards or ("dragon", "knight", "archer", "slime"),
        single_cost=Cost("diamond", 300),
        bulk_cost=Cost("diamond", 2700),
        pity=PityConfig(featured_guarantee_enabled=guarantee, featured_guarantee_threshold=threshold),
        featured_reward_ids=featured,
        featured_weight_multiplier=multiplier,
    )
    catalog.register_pool(pool)
    return pool


def test_featured_guarantee_forces_featured_reward(catalog):
    pool = make_pool(catalog, guarantee=True, threshold=2)
    ledger = PityLedger(1, "limited", draws_since_featured=2, total_draws=2)
    resolver = RewardResolver(catalog, rng=Random(0))
    for _ in range(20):
        draw = resolver.resolve(Rarity.SSR, pool, ledger)
        assert draw.reward_id == "dragon"
        assert draw.is_featured
        assert draw.forced_featured


def test_featured_guarantee_waits_for_threshold(catalog):
    pool = make_pool(catalog, guarantee=True, threshold=2)
    ledger = PityLedger(1, "limited", draws_since_featured=1, total_draws=1)
    resolver = RewardResolver(catalog, rng=Random(0))
    draws = [resolver.resolve(Rarity.SSR, pool, ledger) for _ in range(60)]
    assert not any(draw.forced_featured for draw in draws)
    assert {draw.reward_id for draw in draws} == {"dragon", "knight", "archer"}


def test_featured_weight_multiplier_biases_selection(catalog):
    pool = make_pool(catalog, multiplier=1000.0)
    resolver = RewardResolver(catalog, rng=Random(3))
    ledger = PityLedger.fresh(1, "limited")
    featured = sum(1 for _ in range(200) if resolver.resolve(Rarity.SSR, pool, ledger).is_featured)
    assert featured >= 190


def test_tier_without_featured_rewards_is_uniform(catalog):
    pool = make_pool(catalog, guarantee=True, threshold=0)
    resolver = RewardResolver(catalog, rng=Random(5))
    draw = resolver.resolve(Rarity.N, pool, PityLedger.fresh(1, "limited"))
    assert draw.reward_id == "slime"
    assert not draw.is_featured
    assert not draw.forced_featured


def test_empty_tier_raises_catalog_inconsistency(catalog):
    pool = make_pool(catalog, featured=(), rewards=("slime",))
    resolver = RewardResolver(catalog, rng=Random(1))
    with pytest.raises(CatalogInconsistency):
        resolver.resolve(Rarity.SSR, pool, PityLedger.fresh(1, "limited"))


def test_rewards_of_rarity_keeps_declaration_order(catalog):
    make_pool(catalog, rewards=("archer", "slime", "dragon"))
    assert catalog.rewards_of_rarity("limited", Rarity.SSR) == ("archer", "dragon")
    assert catalog.missing_tiers("limited") == []
