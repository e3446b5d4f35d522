"""Example GachaForge setup: standard, limited, element, friend and beginner pools."""

from __future__ import annotations

import asyncio
from pathlib import Path

from rich.console import Console

from gachaforge import GachaApp, GachaForgeConfig
from gachaforge.diagnostics.pull_simulator import PullSimulator
from gachaforge.domain.events import FIRST_COPY
from gachaforge.loaders import load_catalog_from_json

console = Console()


def register(app: GachaApp) -> None:
    """Register currencies, rewards and pools."""
    catalog_path = Path(__file__).with_name("catalog") / "pools.json"
    load_catalog_from_json(app, catalog_path)

    async def announce_first_copy(payload) -> None:
        if payload["rarity"] in ("ssr", "ur"):
            console.print(f"[bold magenta]New {payload['rarity'].upper()}![/bold magenta] {payload['reward_id']}")

    app.event_bus.subscribe(FIRST_COPY, announce_first_copy)


def simulate() -> None:
    app = GachaApp(GachaForgeConfig.from_env())
    register(app)
    result = PullSimulator(app.catalog.catalog).simulate("pool_limited", pulls=10000)
    console.print(f"UR rate: {result.top_rate:.2%}, featured: {result.featured}")


async def run_demo() -> None:
    app = GachaApp(GachaForgeConfig.from_env())
    register(app)
    await app.init_backend()
    try:
        await app.wallet.credit(1, "diamond", 27000, "demo")
        for _ in range(10):
            batch = await app.pull_service.pull(1, "pool_limited", 10)
            console.print(", ".join(f"{r.reward_id} ({r.rarity.value})" for r in batch.results))
        progress = await app.pull_service.get_pity_progress(1, "pool_limited")
        console.print(f"Pity {progress.current}/{progress.hard_pity_max}")
    finally:
        await app.close()


if __name__ == "__main__":
    asyncio.run(run_demo())
