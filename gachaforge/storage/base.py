"""Storage abstractions used by the GachaForge services."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

from ..domain.ledger import PityLedger


@dataclass(slots=True)
class PlayerRecord:
    player_id: int
    username: str | None = None
    inventory: dict[str, int] = field(default_factory=dict)
    wallet: dict[str, int] = field(default_factory=dict)


class PlayerStore(Protocol):
    async def get_or_create(self, player_id: int, username: str | None = None) -> PlayerRecord:
        ...

    async def save(self, record: PlayerRecord) -> None:
        ...


class PityLedgerStore(Protocol):
    """Persistence port for pity ledgers.

    Implementations raise :class:`~gachaforge.domain.exceptions.PersistenceFailure`
    when the backend cannot serve the request.
    """

    async def load(self, player_id: int, pool_id: str) -> PityLedger | None:
        ...

    async def save(self, ledger: PityLedger) -> None:
        ...
