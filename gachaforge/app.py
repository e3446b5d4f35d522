"""Top level application object for GachaForge services."""

from __future__ import annotations

from random import Random
from typing import Any

from .config import GachaForgeConfig
from .domain.drop_strategies import DuplicateStrategy, ShardDuplicateStrategy
from .domain.economy import Currency, PlayerWallet, WalletGateway
from .domain.events import EventBus
from .domain.inventory import InventoryGateway, PlayerInventory
from .domain.locks import KeyedLocks
from .domain.pulls import PullService
from .domain.rewards import GachaCatalog
from .domain.stats import StatsTracker
from .registry import CatalogRegistry, CurrencyRegistryFacade
from .storage.base import PityLedgerStore, PlayerStore
from .storage.memory import InMemoryPityLedgerStore, InMemoryPlayerStore
from .storage.sqlalchemy import AsyncSQLAlchemyStorage


class GachaApp:
    """Central dependency container.

    The catalog is owned by the app instance, never by module globals, so two
    apps (or two tests) never see each other's pools.
    """

    def __init__(
        self,
        config: GachaForgeConfig,
        *,
        catalog: GachaCatalog | None = None,
        player_store: PlayerStore | None = None,
        ledger_store: PityLedgerStore | None = None,
        wallet: WalletGateway | None = None,
        inventory: InventoryGateway | None = None,
        event_bus: EventBus | None = None,
        rng: Random | None = None,
        duplicate_strategy: DuplicateStrategy | None = None,
        player_locks: KeyedLocks | None = None,
    ) -> None:
        self.config = config
        self.event_bus = event_bus or EventBus()
        self.catalog = CatalogRegistry(catalog)
        self.currencies = CurrencyRegistryFacade()

        for code in self.config.default_currencies:
            self.currencies.currency(Currency(code=code, name=code.replace("_", " ").title()))

        self._rng = rng or (Random(config.rng_seed) if config.rng_seed is not None else Random())

        self._sqlalchemy_storage: AsyncSQLAlchemyStorage | None = None
        self.player_store, self.ledger_store = self._wire_storage(player_store, ledger_store)

        self.player_locks = player_locks if player_locks is not None else KeyedLocks()
        self.wallet = wallet or PlayerWallet(
            self.player_store, self.currencies.registry, locks=self.player_locks
        )
        self.inventory = inventory or PlayerInventory(
            self.player_store,
            self.catalog.catalog,
            duplicate_strategy=duplicate_strategy
            or ShardDuplicateStrategy(currency=self.config.pull.shard_currency),
            locks=self.player_locks,
        )
        self.pull_service = PullService(
            catalog=self.catalog.catalog,
            ledger_store=self.ledger_store,
            wallet=self.wallet,
            inventory=self.inventory,
            pull_config=self.config.pull,
            event_bus=self.event_bus,
            rng=self._rng,
        )
        self.stats = StatsTracker()
        self.stats.attach(self.event_bus)

    def _wire_storage(
        self,
        player_store: PlayerStore | None,
        ledger_store: PityLedgerStore | None,
    ) -> tuple[PlayerStore, PityLedgerStore]:
        if player_store and ledger_store:
            return player_store, ledger_store

        backend = self.config.storage.backend
        if backend == "memory":
            return (
                player_store or InMemoryPlayerStore(),
                ledger_store or InMemoryPityLedgerStore(),
            )
        if backend == "sqlalchemy":
            dsn = self.config.storage.resolve_dsn()
            if not dsn:
                raise ValueError("SQLAlchemy backend requires a DSN")
            storage = AsyncSQLAlchemyStorage(dsn, echo=self.config.storage.echo_sql)
            self._sqlalchemy_storage = storage
            return (
                player_store or storage.player_store(),
                ledger_store or storage.ledger_store(),
            )
        raise ValueError(f"Unsupported storage backend {backend}")

    def snapshot(self) -> dict[str, Any]:
        """Export current configuration for debugging."""
        return {
            "storage": self.config.storage.backend,
            "rewards": [reward.reward_id for reward in self.catalog.catalog.iter_rewards()],
            "pools": [pool.pool_id for pool in self.catalog.catalog.iter_pools()],
            "currencies": [currency.code for currency in self.currencies.registry.all()],
        }

    async def init_backend(self) -> None:
        """Initialize storage backend resources (e.g., database tables)."""
        if self._sqlalchemy_storage:
            await self._sqlalchemy_storage.init_models()

    async def close(self) -> None:
        if self._sqlalchemy_storage:
            await self._sqlalchemy_storage.dispose()
