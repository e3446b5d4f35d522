"""Domain models and services."""

from .rewards import RARITY_ORDER, GachaCatalog, Rarity, Reward, RewardMetadata, rarities_at_or_above
from .pools import Cost, PityConfig, PoolConfig, PoolType
from .ledger import LedgerEntry, PityLedger, advance, record_results
from .rates import effective_rates, resolve_rarity
from .resolver import RewardDraw, RewardResolver
from .pulls import PityProgress, PullBatchResult, PullRequest, PullResult, PullService
from .economy import Currency, CurrencyRegistry, PlayerWallet, Wallet, WalletGateway
from .inventory import GrantOutcome, InventoryGateway, PlayerInventory
from .drop_strategies import DuplicateStrategy, NoConversionStrategy, ShardDuplicateStrategy
from .stats import PullStats, StatsTracker
from .exceptions import (
    CatalogInconsistency,
    GachaForgeError,
    InsufficientFunds,
    PersistenceFailure,
    PoolInactive,
    PoolNotFound,
    UnsupportedDrawCount,
)

__all__ = [
    "RARITY_ORDER",
    "GachaCatalog",
    "Rarity",
    "Reward",
    "RewardMetadata",
    "rarities_at_or_above",
    "Cost",
    "PityConfig",
    "PoolConfig",
    "PoolType",
    "LedgerEntry",
    "PityLedger",
    "advance",
    "record_results",
    "effective_rates",
    "resolve_rarity",
    "RewardDraw",
    "RewardResolver",
    "PityProgress",
    "PullBatchResult",
    "PullRequest",
    "PullResult",
    "PullService",
    "Currency",
    "CurrencyRegistry",
    "PlayerWallet",
    "Wallet",
    "WalletGateway",
    "GrantOutcome",
    "InventoryGateway",
    "PlayerInventory",
    "DuplicateStrategy",
    "NoConversionStrategy",
    "ShardDuplicateStrategy",
    "PullStats",
    "StatsTracker",
    "CatalogInconsistency",
    "GachaForgeError",
    "InsufficientFunds",
    "PersistenceFailure",
    "PoolInactive",
    "PoolNotFound",
    "UnsupportedDrawCount",
]
