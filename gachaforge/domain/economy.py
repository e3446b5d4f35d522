"""Economy primitives and the wallet port used by the pull service."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, Iterable, Protocol

from .locks import KeyedLocks

if TYPE_CHECKING:
    from ..storage.base import PlayerStore

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Currency:
    code: str
    name: str
    precision: int = 0
    description: str = ""


@dataclass(slots=True)
class Wallet:
    """Mutable balance sheet used by the wallet adapter."""

    balances: Dict[str, int] = field(default_factory=dict)

    def has(self, currency: str, amount: int) -> bool:
        return self.balances.get(currency, 0) >= amount

    def credit(self, currency: str, amount: int) -> None:
        if amount < 0:
            raise ValueError("Cannot credit negative amount")
        self.balances[currency] = self.balances.get(currency, 0) + amount

    def debit(self, currency: str, amount: int) -> None:
        if amount < 0:
            raise ValueError("Cannot debit negative amount")
        current = self.balances.get(currency, 0)
        if current < amount:
            raise ValueError(f"Insufficient {currency}: have {current}, need {amount}")
        self.balances[currency] = current - amount


class CurrencyRegistry:
    """Keeps track of available currencies."""

    def __init__(self) -> None:
        self._currencies: dict[str, Currency] = {}

    def register(self, currency: Currency) -> None:
        if currency.code in self._currencies:
            raise ValueError(f"Currency {currency.code} already registered")
        self._currencies[currency.code] = currency

    def get(self, code: str) -> Currency:
        try:
            return self._currencies[code]
        except KeyError as exc:
            raise KeyError(f"Currency {code} is not configured") from exc

    def has(self, code: str) -> bool:
        return code in self._currencies

    def ensure_codes(self, codes: Iterable[str]) -> None:
        for code in codes:
            if code not in self._currencies:
                raise KeyError(f"Currency {code} is not configured")

    def all(self) -> Iterable[Currency]:
        return self._currencies.values()


class WalletGateway(Protocol):
    """Currency ledger consumed by the pull service.

    ``has_balance`` must not change state so the service can check first and
    debit only once the batch is resolved.
    """

    async def has_balance(self, player_id: int, currency: str, amount: int) -> bool:
        ...

    async def debit(self, player_id: int, currency: str, amount: int, reason: str) -> bool:
        ...

    async def credit(self, player_id: int, currency: str, amount: int, reason: str) -> None:
        ...


class PlayerWallet(WalletGateway):
    """Wallet adapter storing balances on the player record."""

    def __init__(
        self,
        store: "PlayerStore",
        currencies: CurrencyRegistry,
        *,
        locks: KeyedLocks | None = None,
    ) -> None:
        self._store = store
        self._currencies = currencies
        self._locks = locks if locks is not None else KeyedLocks()

    async def balance(self, player_id: int, currency: str) -> int:
        record = await self._store.get_or_create(player_id)
        return record.wallet.get(currency, 0)

    async def has_balance(self, player_id: int, currency: str, amount: int) -> bool:
        record = await self._store.get_or_create(player_id)
        return Wallet(balances=dict(record.wallet)).has(currency, amount)

    async def debit(self, player_id: int, currency: str, amount: int, reason: str) -> bool:
        self._currencies.ensure_codes([currency])
        async with self._locks.hold(player_id):
            record = await self._store.get_or_create(player_id)
            wallet = Wallet(balances=dict(record.wallet))
            try:
                wallet.debit(currency, amount)
            except ValueError as exc:
                logger.info("Debit refused for player %s (%s): %s", player_id, reason, exc)
                return False
            record.wallet = dict(wallet.balances)
            await self._store.save(record)
        return True

    async def credit(self, player_id: int, currency: str, amount: int, reason: str) -> None:
        self._currencies.ensure_codes([currency])
        async with self._locks.hold(player_id):
            record = await self._store.get_or_create(player_id)
            wallet = Wallet(balances=dict(record.wallet))
            wallet.credit(currency, amount)
            record.wallet = dict(wallet.balances)
            await self._store.save(record)
        logger.debug("Credited %s %s to player %s (%s)", amount, currency, player_id, reason)
