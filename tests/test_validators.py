from datetime import datetime, timezone

from gachaforge.app import GachaApp
from gachaforge.config import GachaForgeConfig
from gachaforge.domain.pools import Cost, PityConfig, PoolConfig
from gachaforge.domain.rewards import Rarity, Reward
from gachaforge.validators import validate_app


def build_app(**pool_kwargs) -> GachaApp:
    app = GachaApp(GachaForgeConfig())
    app.catalog.reward(Reward("dragon", "Dragon", rarity=Rarity.SSR))
    app.catalog.reward(Reward("slime", "Slime", rarity=Rarity.N))
    options = dict(
        pool_id="standard",
        name="Standard",
        base_rates={Rarity.SSR: 0.1, Rarity.N: 0.9},
        eligible_reward_ids=("dragon", "slime"),
        single_cost=Cost("diamond", 300),
        bulk_cost=Cost("diamond", 2700),
    )
    options.update(pool_kwargs)
    app.catalog.pool(PoolConfig(**options))
    return app


def test_valid_app_has_no_errors():
    assert validate_app(build_app()) == []


def test_rate_sum_and_missing_tier_are_reported():
    app = build_app(base_rates={Rarity.SSR: 0.1, Rarity.SR: 0.1, Rarity.N: 0.7})
    errors = validate_app(app)
    assert any("base rates sum" in err for err in errors)
    assert any("'sr' without any eligible reward" in err for err in errors)


def test_unknown_currency_and_featured_are_reported():
    app = build_app(
        single_cost=Cost("gold", 1),
        featured_reward_ids=("phoenix",),
        pity=PityConfig(featured_guarantee_enabled=True),
    )
    errors = validate_app(app)
    assert any("unknown currency 'gold'" in err for err in errors)
    assert any("featured reward 'phoenix'" in err for err in errors)


def test_bulk_floor_above_offered_tiers_is_reported():
    app = build_app(pity=PityConfig(bulk_guarantee_min_rarity=Rarity.UR))
    errors = validate_app(app)
    assert any("bulk guarantee 'ur'" in err for err in errors)


def test_empty_app_reports_missing_pools():
    app = GachaApp(GachaForgeConfig())
    assert "No pools registered in application." in validate_app(app)


def test_mixed_naive_and_aware_window_is_compared_in_utc():
    app = build_app(
        start_at=datetime(2024, 6, 2),
        end_at=datetime(2024, 6, 1, tzinfo=timezone.utc),
    )
    assert "Pool 'standard' window ends before it starts." in validate_app(app)

    ordered = build_app(
        start_at=datetime(2024, 6, 1),
        end_at=datetime(2024, 6, 2, tzinfo=timezone.utc),
    )
    assert validate_app(ordered) == []
