"""Command line helpers for GachaForge."""

from __future__ import annotations

import argparse
import importlib
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.table import Table

from .app import GachaApp
from .config import GachaForgeConfig
from .diagnostics.checklist import run_checklist as checklist_run
from .diagnostics.pull_simulator import PullSimulator
from .domain.rewards import RARITY_ORDER
from .loaders import load_catalog_from_json, validate_catalog_file
from .validators import validate_app

console = Console()


def run_simulator(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="GachaForge pull simulator")
    _add_source_arguments(parser)
    parser.add_argument("pool_id", help="Pool identifier to simulate")
    parser.add_argument("--pulls", type=int, default=10000, help="Number of single draws to simulate")
    parser.add_argument(
        "--no-pity",
        action="store_true",
        help="Freeze pity counters to measure raw base rates",
    )
    args = parser.parse_args(argv)

    app = _build_app(args)
    simulator = PullSimulator(app.catalog.catalog)
    result = simulator.simulate(args.pool_id, pulls=args.pulls, apply_pity=not args.no_pity)

    pool = app.catalog.catalog.get_pool(args.pool_id)
    table = Table(title=f"{pool.name} ({result.pulls} draws)")
    table.add_column("Rarity")
    table.add_column("Base rate", justify="right")
    table.add_column("Observed", justify="right")
    table.add_column("Count", justify="right")
    for rarity in RARITY_ORDER:
        if rarity not in pool.base_rates:
            continue
        count = result.rarity_counts.get(rarity.value, 0)
        table.add_row(
            rarity.value.upper(),
            f"{pool.base_rates[rarity]:.2%}",
            f"{count / result.pulls:.2%}" if result.pulls else "-",
            str(count),
        )
    console.print(table)
    console.print(f"Featured rewards: {result.featured}")
    console.print(f"Longest streak without {pool.top_rarity.value.upper()}: {result.longest_dry_streak}")
    if result.mean_draws_per_top is not None:
        console.print(f"Mean draws per {pool.top_rarity.value.upper()}: {result.mean_draws_per_top:.1f}")


def run_checklist(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="GachaForge balancing checks")
    _add_source_arguments(parser)
    args = parser.parse_args(argv)

    app = _build_app(args)
    issues = checklist_run(app)
    if not issues:
        console.print("[green]No issues found[/green]")
        return
    for issue in issues:
        colour = "red" if issue.severity == "error" else "yellow"
        console.print(f"[{colour}]{issue.severity.upper()}[/{colour}] {issue.message}")
    sys.exit(1)


def run_validate(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="GachaForge validator")
    _add_source_arguments(parser)
    args = parser.parse_args(argv)

    if args.catalog:
        errors = validate_catalog_file(Path(args.catalog))
        if errors:
            console.print("[red]Catalog errors:[/red]")
            for err in errors:
                console.print(f"- {err}")
            sys.exit(1)

    app = _build_app(args)
    issues = validate_app(app)
    if issues:
        console.print("[red]Configuration errors:[/red]")
        for issue in issues:
            console.print(f"- {issue}")
        sys.exit(1)
    console.print("[green]Configuration is valid[/green]")


def _add_source_arguments(parser: argparse.ArgumentParser) -> None:
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--catalog", help="Path to catalog JSON file")
    group.add_argument("--module", help="Python module with register(app) function")


def _build_app(args: argparse.Namespace) -> GachaApp:
    config = GachaForgeConfig.from_env()
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = GachaApp(config)
    if args.catalog:
        load_catalog_from_json(app, Path(args.catalog))
    else:
        _load_module(args.module, app)
    return app


def _load_module(path: str, app: GachaApp) -> None:
    cwd = str(Path.cwd())
    if cwd not in sys.path:
        sys.path.insert(0, cwd)
    module = importlib.import_module(path)
    if hasattr(module, "register"):
        module.register(app)
    else:
        raise RuntimeError(f"Module {path} has no register(app) function.")
