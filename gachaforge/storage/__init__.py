"""Storage backends for GachaForge."""

from .base import PityLedgerStore, PlayerRecord, PlayerStore
from .memory import InMemoryPityLedgerStore, InMemoryPlayerStore
from .sqlalchemy import AsyncSQLAlchemyStorage

__all__ = [
    "PlayerRecord",
    "PlayerStore",
    "PityLedgerStore",
    "InMemoryPityLedgerStore",
    "InMemoryPlayerStore",
    "AsyncSQLAlchemyStorage",
]
