"""High-level helpers that simplify bootstrapping GachaForge services.

This module provides a straightforward, batteries-included API for developers
who do not want to wire config, storage and catalogs by hand.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Mapping, Sequence

from rich.console import Console

from .app import GachaApp
from .config import GachaForgeConfig
from .diagnostics.pull_simulator import PullSimulator
from .loaders import load_catalog_from_json, validate_catalog_dict

console = Console()


@dataclass(slots=True)
class SimpleGachaConfig:
    """Minimal settings required to run GachaForge."""

    catalog_path: Path
    storage: str = "memory"  # "memory" or path to SQLite file
    rng_seed: int | None = None
    preview_pool: str | None = None


async def build_simple_app(config: SimpleGachaConfig) -> GachaApp:
    """Create a ready-to-use app with its catalog loaded and tables created."""

    gacha_config = GachaForgeConfig.from_env()
    if config.storage != "memory":
        db_path = Path(config.storage).expanduser().resolve()
        db_path.parent.mkdir(parents=True, exist_ok=True)
        gacha_config.storage.backend = "sqlalchemy"
        gacha_config.storage.dsn = f"sqlite+aiosqlite:///{db_path.as_posix()}"
    if config.rng_seed is not None:
        gacha_config.rng_seed = config.rng_seed

    app = GachaApp(gacha_config)
    await app.init_backend()
    load_catalog_from_json(app, config.catalog_path)

    if config.preview_pool:
        summary = PullSimulator(app.catalog.catalog).simulate(config.preview_pool, pulls=1000)
        console.print(
            f"[bold green]GachaForge ready![/bold green]\n"
            f"{config.preview_pool}: top rate {summary.top_rate:.2%}, "
            f"longest dry streak {summary.longest_dry_streak}",
        )
    return app


@dataclass(slots=True)
class CatalogBuilder:
    """Imperative builder that produces JSON catalogs."""

    rewards: list[dict] = field(default_factory=list)
    pools: list[dict] = field(default_factory=list)
    currencies: list[dict] = field(
        default_factory=lambda: [
            {"code": "diamond", "name": "Diamond"},
            {"code": "summon_ticket", "name": "Summon Ticket"},
            {"code": "summon_ticket_10", "name": "10x Summon Ticket"},
        ]
    )

    def add_currency(self, code: str, name: str | None = None) -> "CatalogBuilder":
        self.currencies.append({"code": code, "name": name or code.title()})
        return self

    def add_reward(
        self,
        reward_id: str,
        name: str,
        *,
        rarity: str = "n",
        description: str = "",
        element: str | None = None,
        tags: Iterable[str] = (),
    ) -> "CatalogBuilder":
        reward: dict = {
            "id": reward_id,
            "name": name,
            "rarity": rarity,
            "description": description,
            "tags": list(tags),
        }
        if element:
            reward["element"] = element
        self.rewards.append(reward)
        return self

    def add_pool(
        self,
        pool_id: str,
        name: str,
        *,
        rates: Mapping[str, float],
        rewards: Sequence[str],
        single_cost: tuple[str, int] = ("diamond", 300),
        bulk_cost: tuple[str, int] = ("diamond", 2700),
        featured: Sequence[str] = (),
        featured_weight_multiplier: float = 1.0,
        pity: Mapping[str, object] | None = None,
        pool_type: str = "normal",
        tickets: bool = False,
    ) -> "CatalogBuilder":
        pool: dict = {
            "id": pool_id,
            "name": name,
            "type": pool_type,
            "rates": dict(rates),
            "rewards": list(rewards),
            "singleCost": {"currency": single_cost[0], "amount": single_cost[1]},
            "bulkCost": {"currency": bulk_cost[0], "amount": bulk_cost[1]},
        }
        if featured:
            pool["featured"] = list(featured)
            pool["featuredWeightMultiplier"] = featured_weight_multiplier
        if pity:
            pool["pity"] = dict(pity)
        if tickets:
            pool["singleTicket"] = {"currency": "summon_ticket", "amount": 1}
            pool["bulkTicket"] = {"currency": "summon_ticket_10", "amount": 1}
        self.pools.append(pool)
        return self

    def build(self) -> dict:
        catalog = {
            "currencies": self.currencies,
            "rewards": self.rewards,
            "pools": self.pools,
        }
        errors = validate_catalog_dict(catalog)
        if errors:
            raise ValueError("Catalog validation failed:\n" + "\n".join(f"- {err}" for err in errors))
        return catalog

    def save(self, path: Path) -> None:
        catalog = self.build()
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(catalog, ensure_ascii=False, indent=2), encoding="utf-8")


__all__ = [
    "SimpleGachaConfig",
    "CatalogBuilder",
    "build_simple_app",
]
