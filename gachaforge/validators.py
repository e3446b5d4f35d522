"""Validation utilities for GachaForge applications."""

from __future__ import annotations

from .app import GachaApp
from .domain.pools import as_utc


def validate_app(app: GachaApp) -> list[str]:
    """Return list of validation errors discovered in configured app."""
    errors: list[str] = []
    catalog = app.catalog.catalog

    currency_codes = {currency.code for currency in app.currencies.registry.all()}
    if not currency_codes:
        errors.append("No currencies registered in application.")

    pools = list(catalog.iter_pools())
    if not pools:
        errors.append("No pools registered in application.")

    for pool in pools:
        if not pool.rates_sum_ok():
            errors.append(
                f"Pool '{pool.pool_id}' base rates sum to {sum(pool.base_rates.values()):.6f}, expected 1.0."
            )
        for rarity, rate in pool.base_rates.items():
            if rate < 0:
                errors.append(f"Pool '{pool.pool_id}' has negative rate for '{rarity.value}'.")

        for reward_id in pool.eligible_reward_ids:
            if not catalog.has_reward(reward_id):
                errors.append(f"Pool '{pool.pool_id}' references unknown reward '{reward_id}'.")
        for reward_id in pool.featured_reward_ids:
            if reward_id not in pool.eligible_reward_ids:
                errors.append(f"Pool '{pool.pool_id}' featured reward '{reward_id}' is not eligible.")
        if pool.featured_weight_multiplier < 1:
            errors.append(f"Pool '{pool.pool_id}' featured weight multiplier must be >= 1.")

        for rarity in catalog.missing_tiers(pool.pool_id):
            errors.append(
                f"Pool '{pool.pool_id}' offers rarity '{rarity.value}' without any eligible reward."
            )

        pity = pool.pity
        if pity.hard_pity_count < 0 or pity.soft_pity_start < 0:
            errors.append(f"Pool '{pool.pool_id}' pity counts cannot be negative.")
        if pity.hard_pity_count and pity.soft_pity_start > pity.hard_pity_count:
            errors.append(f"Pool '{pool.pool_id}' soft pity starts after hard pity.")
        if pity.soft_pity_rate_per_draw < 0:
            errors.append(f"Pool '{pool.pool_id}' soft pity rate cannot be negative.")
        if pity.featured_guarantee_enabled and not pool.featured_reward_ids:
            errors.append(f"Pool '{pool.pool_id}' enables featured guarantee without featured rewards.")
        floor = pity.bulk_guarantee_min_rarity
        if floor is not None and pool.offered_rarities and all(
            rarity.rank < floor.rank for rarity in pool.offered_rarities
        ):
            errors.append(
                f"Pool '{pool.pool_id}' bulk guarantee '{floor.value}' is above every offered rarity."
            )

        for label, cost in (
            ("single cost", pool.single_cost),
            ("bulk cost", pool.bulk_cost),
            ("single ticket", pool.single_ticket),
            ("bulk ticket", pool.bulk_ticket),
        ):
            if cost is None:
                continue
            if cost.currency not in currency_codes:
                errors.append(f"Pool '{pool.pool_id}' {label} uses unknown currency '{cost.currency}'.")
            if cost.amount <= 0:
                errors.append(f"Pool '{pool.pool_id}' {label} must be positive.")

        if pool.start_at and pool.end_at and as_utc(pool.start_at) > as_utc(pool.end_at):
            errors.append(f"Pool '{pool.pool_id}' window ends before it starts.")

    pull = app.config.pull
    if pull.single_size <= 0 or pull.bulk_size <= pull.single_size:
        errors.append("Pull configuration sizes must satisfy 0 < single_size < bulk_size.")
    if pull.recent_results_limit < 0:
        errors.append("Pull configuration 'recent_results_limit' cannot be negative.")

    return errors


__all__ = ["validate_app"]
