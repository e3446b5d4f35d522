"""In-memory storage backend for GachaForge."""

from __future__ import annotations

import copy

from ..domain.ledger import PityLedger
from .base import PityLedgerStore, PlayerRecord, PlayerStore


class InMemoryPlayerStore(PlayerStore):
    def __init__(self) -> None:
        self._records: dict[int, PlayerRecord] = {}

    async def get_or_create(self, player_id: int, username: str | None = None) -> PlayerRecord:
        if player_id not in self._records:
            self._records[player_id] = PlayerRecord(player_id=player_id, username=username)
        record = self._records[player_id]
        if username and record.username != username:
            record.username = username
        return copy.deepcopy(record)

    async def save(self, record: PlayerRecord) -> None:
        self._records[record.player_id] = copy.deepcopy(record)


class InMemoryPityLedgerStore(PityLedgerStore):
    def __init__(self) -> None:
        self._ledgers: dict[tuple[int, str], PityLedger] = {}

    async def load(self, player_id: int, pool_id: str) -> PityLedger | None:
        return self._ledgers.get((player_id, pool_id))

    async def save(self, ledger: PityLedger) -> None:
        self._ledgers[(ledger.player_id, ledger.pool_id)] = ledger

    def dump(self) -> list[PityLedger]:
        return list(self._ledgers.values())
