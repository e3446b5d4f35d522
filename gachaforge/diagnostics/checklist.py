"""Automated checks to highlight balancing issues."""

from __future__ import annotations

from dataclasses import dataclass

from ..app import GachaApp


@dataclass(slots=True)
class ChecklistIssue:
    severity: str
    message: str


def run_checklist(app: GachaApp) -> list[ChecklistIssue]:
    issues: list[ChecklistIssue] = []
    catalog = app.catalog.catalog
    pools = list(catalog.iter_pools())
    if not pools:
        issues.append(ChecklistIssue("error", "No pools registered."))

    for pool in pools:
        missing = catalog.missing_tiers(pool.pool_id)
        if missing:
            issues.append(
                ChecklistIssue(
                    "error",
                    f"Pool {pool.pool_id} has no rewards for {', '.join(r.value for r in missing)}.",
                )
            )
        pity = pool.pity
        if pity.enabled and pity.hard_pity_count == 0:
            issues.append(ChecklistIssue("warning", f"Pool {pool.pool_id} enables pity without hard pity."))
        if pity.enabled and pity.soft_pity_rate_per_draw > 0 and pool.offered_rarities:
            base_top = pool.base_rates[pool.top_rarity]
            ramp = pity.hard_pity_count - 1 - pity.soft_pity_start
            if ramp > 0 and base_top + ramp * pity.soft_pity_rate_per_draw >= 1.0:
                issues.append(
                    ChecklistIssue(
                        "warning",
                        f"Pool {pool.pool_id} soft pity reaches 100% before hard pity.",
                    )
                )
        if (
            pity.enabled
            and pity.hard_pity_count
            and pity.soft_pity_rate_per_draw > 0
            and pity.soft_pity_start >= pity.hard_pity_count - 1
        ):
            issues.append(
                ChecklistIssue("warning", f"Pool {pool.pool_id} soft pity never applies before hard pity.")
            )
        floor = pity.bulk_guarantee_min_rarity
        if floor is not None and pool.offered_rarities and floor.rank <= pool.offered_rarities[-1].rank:
            issues.append(
                ChecklistIssue(
                    "warning",
                    f"Pool {pool.pool_id} bulk guarantee {floor.value} is at or below its lowest tier.",
                )
            )
        if pool.featured_weight_multiplier > 20:
            issues.append(
                ChecklistIssue(
                    "warning",
                    f"Pool {pool.pool_id} featured multiplier {pool.featured_weight_multiplier} is unusually high.",
                )
            )
        if pool.bulk_cost.currency == pool.single_cost.currency and pool.bulk_cost.amount > pool.single_cost.amount * app.config.pull.bulk_size:
            issues.append(
                ChecklistIssue(
                    "warning",
                    f"Pool {pool.pool_id} bulk pull costs more than {app.config.pull.bulk_size} single pulls.",
                )
            )

    if not list(app.currencies.registry.all()):
        issues.append(ChecklistIssue("warning", "No currencies defined."))

    return issues
