"""Configuration models for GachaForge."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Literal, Sequence


StorageBackend = Literal["memory", "sqlalchemy"]

_TRUTHY = {"1", "true", "yes"}


@dataclass(slots=True)
class StorageConfig:
    """Configure how player state and pity ledgers are persisted."""

    backend: StorageBackend = "memory"
    dsn: str | None = None
    echo_sql: bool = False

    def resolve_dsn(self) -> str | None:
        if self.dsn:
            return self.dsn
        if self.backend == "sqlalchemy":
            return "sqlite+aiosqlite:///./gachaforge.db"
        return None


@dataclass(slots=True)
class PullConfig:
    """Rules shared by every pool."""

    single_size: int = 1
    bulk_size: int = 10
    recent_results_limit: int = 100
    allow_tickets: bool = True
    shard_currency: str = "character_shard"

    @property
    def supported_sizes(self) -> tuple[int, ...]:
        return (self.single_size, self.bulk_size)


@dataclass(slots=True)
class GachaForgeConfig:
    """Top-level configuration container."""

    storage: StorageConfig = field(default_factory=StorageConfig)
    pull: PullConfig = field(default_factory=PullConfig)
    default_currencies: Sequence[str] = field(
        default_factory=lambda: (
            "diamond",
            "friend_point",
            "summon_ticket",
            "summon_ticket_10",
            "character_shard",
        )
    )
    rng_seed: int | None = None
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "GachaForgeConfig":
        """Create config from environment variables prefixed with GACHAFORGE_."""
        prefix = "GACHAFORGE_"
        storage_backend = os.getenv(f"{prefix}STORAGE_BACKEND", "memory")
        if storage_backend not in ("memory", "sqlalchemy"):
            raise ValueError(f"Unsupported {prefix}STORAGE_BACKEND '{storage_backend}'")

        pull_config = PullConfig(
            recent_results_limit=int(os.getenv(f"{prefix}PULL_RECENT_RESULTS", "100")),
            allow_tickets=os.getenv(f"{prefix}PULL_ALLOW_TICKETS", "true").lower() in _TRUTHY,
            shard_currency=os.getenv(f"{prefix}PULL_SHARD_CURRENCY", "character_shard")
            or "character_shard",
        )

        currencies = tuple(
            cur.strip()
            for cur in os.getenv(
                f"{prefix}DEFAULT_CURRENCIES",
                "diamond,friend_point,summon_ticket,summon_ticket_10,character_shard",
            ).split(",")
            if cur.strip()
        )

        return cls(
            storage=StorageConfig(
                backend=storage_backend,
                dsn=os.getenv(f"{prefix}STORAGE_DSN"),
                echo_sql=os.getenv(f"{prefix}STORAGE_ECHO_SQL", "false").lower() in _TRUTHY,
            ),
            pull=pull_config,
            default_currencies=currencies,
            rng_seed=(
                int(os.getenv(f"{prefix}RNG_SEED")) if os.getenv(f"{prefix}RNG_SEED") else None
            ),
            log_level=os.getenv(f"{prefix}LOG_LEVEL", "INFO").upper(),
        )
