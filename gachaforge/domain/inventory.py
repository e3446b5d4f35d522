"""Inventory port and the player-record backed adapter."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Mapping, Protocol

from .drop_strategies import DuplicateStrategy, ShardDuplicateStrategy
from .economy import Wallet
from .locks import KeyedLocks
from .rewards import GachaCatalog

if TYPE_CHECKING:
    from ..storage.base import PlayerStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class GrantOutcome:
    player_id: int
    reward_id: str
    is_first_copy: bool
    conversion_items: Mapping[str, int] = field(default_factory=dict)


class InventoryGateway(Protocol):
    async def grant(self, player_id: int, reward_id: str) -> GrantOutcome:
        ...

    async def revoke(self, outcome: GrantOutcome) -> None:
        """Undo a grant when the surrounding batch aborts."""
        ...


class PlayerInventory(InventoryGateway):
    """Store owned copies on the player record; duplicates also convert."""

    def __init__(
        self,
        store: "PlayerStore",
        catalog: GachaCatalog,
        *,
        duplicate_strategy: DuplicateStrategy | None = None,
        locks: KeyedLocks | None = None,
    ) -> None:
        self._store = store
        self._catalog = catalog
        self._duplicate_strategy = duplicate_strategy or ShardDuplicateStrategy()
        self._locks = locks if locks is not None else KeyedLocks()

    async def owns(self, player_id: int, reward_id: str) -> bool:
        record = await self._store.get_or_create(player_id)
        return record.inventory.get(reward_id, 0) > 0

    async def grant(self, player_id: int, reward_id: str) -> GrantOutcome:
        reward = self._catalog.get_reward(reward_id)
        async with self._locks.hold(player_id):
            record = await self._store.get_or_create(player_id)
            owned = record.inventory.get(reward_id, 0)
            record.inventory[reward_id] = owned + 1

            conversion: dict[str, int] = {}
            if owned:
                conversion = self._duplicate_strategy.convert(reward=reward, owned=owned)
                wallet = Wallet(balances=dict(record.wallet))
                for currency, amount in conversion.items():
                    wallet.credit(currency, amount)
                record.wallet = dict(wallet.balances)

            await self._store.save(record)
        return GrantOutcome(
            player_id=player_id,
            reward_id=reward_id,
            is_first_copy=owned == 0,
            conversion_items=conversion,
        )

    async def revoke(self, outcome: GrantOutcome) -> None:
        async with self._locks.hold(outcome.player_id):
            record = await self._store.get_or_create(outcome.player_id)
            owned = record.inventory.get(outcome.reward_id, 0)
            if owned <= 1:
                record.inventory.pop(outcome.reward_id, None)
            else:
                record.inventory[outcome.reward_id] = owned - 1
            for currency, amount in outcome.conversion_items.items():
                record.wallet[currency] = max(0, record.wallet.get(currency, 0) - amount)
            await self._store.save(record)
        logger.debug("Revoked %s from player %s", outcome.reward_id, outcome.player_id)
