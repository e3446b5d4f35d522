"""Load rewards, pools, and currencies from JSON definitions."""

from __future__ import annotations

import json
import math
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Sequence, TYPE_CHECKING

from ..domain.economy import Currency
from ..domain.pools import RATE_TOLERANCE, Cost, PityConfig, PoolConfig, PoolType
from ..domain.rewards import Rarity, Reward

if TYPE_CHECKING:
    from ..app import GachaApp


@dataclass(slots=True)
class CatalogDefinition:
    rewards: Sequence[Reward]
    pools: Sequence[PoolConfig]
    currencies: Sequence[Currency]


def load_catalog_from_json(app: "GachaApp", path: str | Path) -> CatalogDefinition:
    """Load rewards/currencies/pools from a JSON file and register them on the app."""
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    definition = parse_catalog_dict(data)
    for currency in definition.currencies:
        if app.currencies.registry.has(currency.code):
            # Keep the definition registered from config defaults.
            continue
        app.currencies.currency(currency)
    for reward in definition.rewards:
        app.catalog.reward(reward)
    for pool in definition.pools:
        app.catalog.pool(pool)
    return definition


def parse_catalog_dict(data: dict[str, Any]) -> CatalogDefinition:
    """Parse a JSON dict (already decoded) into domain objects."""
    errors = validate_catalog_dict(data)
    if errors:
        raise ValueError(_format_errors("Catalog validation failed", errors))
    currencies = tuple(parse_currency(entry) for entry in data.get("currencies", []))
    rewards = tuple(parse_reward(entry) for entry in data.get("rewards", []))
    pools = tuple(parse_pool(entry) for entry in data.get("pools", []))
    return CatalogDefinition(rewards=rewards, pools=pools, currencies=currencies)


def parse_currency(entry: dict[str, Any]) -> Currency:
    return Currency(
        code=entry["code"],
        name=entry.get("name", entry["code"].title()),
        precision=int(entry.get("precision", 0)),
        description=entry.get("description", ""),
    )


def parse_reward(entry: dict[str, Any]) -> Reward:
    return Reward(
        reward_id=entry["id"],
        name=entry["name"],
        rarity=Rarity(entry["rarity"]),
        description=entry.get("description", ""),
        element=entry.get("element"),
        tags=tuple(map(str, entry.get("tags", []))),
    )


def parse_cost(entry: dict[str, Any] | None) -> Cost | None:
    if entry is None:
        return None
    return Cost(currency=entry["currency"], amount=int(entry["amount"]))


def parse_pity(entry: dict[str, Any] | None) -> PityConfig:
    entry = entry or {}
    floor = entry.get("bulkGuaranteeRarity")
    return PityConfig(
        enabled=bool(entry.get("enabled", True)),
        hard_pity_count=int(entry.get("hardPity", 0)),
        soft_pity_start=int(entry.get("softPityStart", 0)),
        soft_pity_rate_per_draw=float(entry.get("softPityRateIncrease", 0.0)),
        featured_guarantee_enabled=bool(entry.get("featuredGuarantee", False)),
        featured_guarantee_threshold=int(entry.get("featuredGuaranteeThreshold", 0)),
        bulk_guarantee_min_rarity=Rarity(floor) if floor else None,
    )


def parse_pool(entry: dict[str, Any]) -> PoolConfig:
    return PoolConfig(
        pool_id=entry["id"],
        name=entry.get("name", entry["id"]),
        pool_type=PoolType(entry.get("type", PoolType.NORMAL.value)),
        description=entry.get("description", ""),
        banner_image=entry.get("bannerImage"),
        base_rates={Rarity(code): float(rate) for code, rate in entry["rates"].items()},
        eligible_reward_ids=tuple(entry["rewards"]),
        featured_reward_ids=tuple(entry.get("featured", ())),
        featured_weight_multiplier=float(entry.get("featuredWeightMultiplier", 1.0)),
        pity=parse_pity(entry.get("pity")),
        single_cost=parse_cost(entry["singleCost"]),
        bulk_cost=parse_cost(entry["bulkCost"]),
        single_ticket=parse_cost(entry.get("singleTicket")),
        bulk_ticket=parse_cost(entry.get("bulkTicket")),
        start_at=_parse_datetime(entry.get("startAt")),
        end_at=_parse_datetime(entry.get("endAt")),
        is_active=bool(entry.get("active", True)),
    )


def validate_catalog_file(path: str | Path) -> list[str]:
    """Validate catalog JSON file and return a list of errors."""
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    return validate_catalog_dict(data)


def validate_catalog_dict(data: dict[str, Any]) -> list[str]:
    errors: list[str] = []

    currencies_raw = data.get("currencies")
    currency_codes: set[str] = set()
    if not isinstance(currencies_raw, list) or not currencies_raw:
        errors.append("Catalog must contain non-empty 'currencies' array.")
    else:
        for idx, entry in enumerate(currencies_raw, start=1):
            if not isinstance(entry, dict):
                errors.append(f"Currency #{idx} must be an object.")
                continue
            code = entry.get("code")
            if not isinstance(code, str) or not code.strip():
                errors.append(f"Currency #{idx} must define non-empty 'code'.")
                continue
            if code in currency_codes:
                errors.append(f"Currency code '{code}' defined multiple times.")
            currency_codes.add(code)

    rewards_raw = data.get("rewards")
    reward_rarities: dict[str, Rarity] = {}
    if not isinstance(rewards_raw, list) or not rewards_raw:
        errors.append("Catalog must contain non-empty 'rewards' array.")
    else:
        for idx, entry in enumerate(rewards_raw, start=1):
            if not isinstance(entry, dict):
                errors.append(f"Reward #{idx} must be an object.")
                continue
            reward_id = entry.get("id")
            if not isinstance(reward_id, str) or not reward_id.strip():
                errors.append(f"Reward #{idx} must define non-empty 'id'.")
                continue
            if reward_id in reward_rarities:
                errors.append(f"Reward id '{reward_id}' defined multiple times.")
            name = entry.get("name")
            if not isinstance(name, str) or not name.strip():
                errors.append(f"Reward '{reward_id}' must define non-empty 'name'.")
            rarity = _parse_rarity(entry.get("rarity"))
            if rarity is None:
                errors.append(f"Reward '{reward_id}' has invalid rarity '{entry.get('rarity')}'.")
                continue
            reward_rarities[reward_id] = rarity

    pools_raw = data.get("pools")
    if not isinstance(pools_raw, list) or not pools_raw:
        errors.append("Catalog must contain non-empty 'pools' array.")
        return errors

    pool_ids: set[str] = set()
    for idx, entry in enumerate(pools_raw, start=1):
        if not isinstance(entry, dict):
            errors.append(f"Pool #{idx} must be an object.")
            continue
        pool_id = entry.get("id")
        if not isinstance(pool_id, str) or not pool_id.strip():
            errors.append(f"Pool #{idx} must define non-empty 'id'.")
            continue
        if pool_id in pool_ids:
            errors.append(f"Pool id '{pool_id}' defined multiple times.")
        pool_ids.add(pool_id)
        errors.extend(_validate_pool(pool_id, entry, reward_rarities, currency_codes))

    return errors


def _validate_pool(
    pool_id: str,
    entry: dict[str, Any],
    reward_rarities: dict[str, Rarity],
    currency_codes: set[str],
) -> list[str]:
    errors: list[str] = []

    pool_type = entry.get("type", PoolType.NORMAL.value)
    try:
        PoolType(pool_type)
    except ValueError:
        errors.append(f"Pool '{pool_id}' has invalid type '{pool_type}'.")

    offered: set[Rarity] = set()
    rates = entry.get("rates")
    if not isinstance(rates, dict) or not rates:
        errors.append(f"Pool '{pool_id}' must define non-empty 'rates' object.")
    else:
        total = 0.0
        for code, rate in rates.items():
            rarity = _parse_rarity(code)
            if rarity is None:
                errors.append(f"Pool '{pool_id}' rates contain invalid rarity '{code}'.")
                continue
            if not isinstance(rate, (int, float)) or rate < 0:
                errors.append(f"Pool '{pool_id}' rate for '{code}' must be a non-negative number.")
                continue
            total += float(rate)
            if rate > 0:
                offered.add(rarity)
        if not math.isclose(total, 1.0, abs_tol=RATE_TOLERANCE):
            errors.append(f"Pool '{pool_id}' rates must sum to 1.0 (got {total:.6f}).")

    reward_ids = entry.get("rewards")
    eligible: set[str] = set()
    if not isinstance(reward_ids, list) or not reward_ids:
        errors.append(f"Pool '{pool_id}' must define non-empty 'rewards' array.")
    else:
        for reward_id in reward_ids:
            if reward_rarities and reward_id not in reward_rarities:
                errors.append(f"Pool '{pool_id}' references unknown reward '{reward_id}'.")
            eligible.add(reward_id)
        covered = {reward_rarities[rid] for rid in eligible if rid in reward_rarities}
        for rarity in sorted(offered - covered, key=lambda r: r.rank):
            errors.append(
                f"Pool '{pool_id}' offers rarity '{rarity.value}' but has no eligible reward for it."
            )

    featured = entry.get("featured", [])
    if not isinstance(featured, list):
        errors.append(f"Pool '{pool_id}' 'featured' must be an array.")
    else:
        for reward_id in featured:
            if reward_id not in eligible:
                errors.append(f"Pool '{pool_id}' featured reward '{reward_id}' is not eligible in the pool.")

    multiplier = entry.get("featuredWeightMultiplier", 1.0)
    if not isinstance(multiplier, (int, float)) or multiplier < 1:
        errors.append(f"Pool '{pool_id}' 'featuredWeightMultiplier' must be a number >= 1.")

    errors.extend(_validate_pity(pool_id, entry.get("pity")))

    for key, required in (("singleCost", True), ("bulkCost", True), ("singleTicket", False), ("bulkTicket", False)):
        cost = entry.get(key)
        if cost is None:
            if required:
                errors.append(f"Pool '{pool_id}' must define '{key}'.")
            continue
        if not isinstance(cost, dict):
            errors.append(f"Pool '{pool_id}' '{key}' must be an object.")
            continue
        currency = cost.get("currency")
        if currency_codes and currency not in currency_codes:
            errors.append(f"Pool '{pool_id}' '{key}' references unknown currency '{currency}'.")
        amount = cost.get("amount")
        if not isinstance(amount, int) or amount <= 0:
            errors.append(f"Pool '{pool_id}' '{key}' amount must be a positive integer.")

    for key in ("startAt", "endAt"):
        value = entry.get(key)
        if value is not None:
            try:
                _parse_datetime(value)
            except (TypeError, ValueError):
                errors.append(f"Pool '{pool_id}' '{key}' must be an ISO-8601 timestamp.")

    return errors


def _validate_pity(pool_id: str, pity: Any) -> list[str]:
    if pity is None:
        return []
    if not isinstance(pity, dict):
        return [f"Pool '{pool_id}' 'pity' must be an object."]
    errors: list[str] = []
    hard = pity.get("hardPity", 0)
    soft = pity.get("softPityStart", 0)
    rate = pity.get("softPityRateIncrease", 0.0)
    if not isinstance(hard, int) or hard < 0:
        errors.append(f"Pool '{pool_id}' pity 'hardPity' must be a non-negative integer.")
    if not isinstance(soft, int) or soft < 0:
        errors.append(f"Pool '{pool_id}' pity 'softPityStart' must be a non-negative integer.")
    elif isinstance(hard, int) and hard and soft > hard:
        errors.append(f"Pool '{pool_id}' pity 'softPityStart' cannot exceed 'hardPity'.")
    if not isinstance(rate, (int, float)) or rate < 0:
        errors.append(f"Pool '{pool_id}' pity 'softPityRateIncrease' must be non-negative.")
    threshold = pity.get("featuredGuaranteeThreshold", 0)
    if not isinstance(threshold, int) or threshold < 0:
        errors.append(f"Pool '{pool_id}' pity 'featuredGuaranteeThreshold' must be a non-negative integer.")
    floor = pity.get("bulkGuaranteeRarity")
    if floor is not None and _parse_rarity(floor) is None:
        errors.append(f"Pool '{pool_id}' pity 'bulkGuaranteeRarity' is invalid rarity '{floor}'.")
    return errors


def _parse_rarity(value: Any) -> Rarity | None:
    try:
        return Rarity(value)
    except ValueError:
        return None


def _parse_datetime(value: str | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromisoformat(value)


def _format_errors(prefix: str, errors: Iterable[str]) -> str:
    formatted = "\n".join(f"- {err}" for err in errors)
    return f"{prefix}:\n{formatted}"
