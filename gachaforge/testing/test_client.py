"""Async test client that scripts pulls and wallet changes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List

from ..domain.economy import PlayerWallet
from ..domain.pulls import PullBatchResult, PullService


@dataclass(slots=True)
class TestMessage:
    __test__ = False

    text: str
    metadata: Dict[str, Any]


class TestClient:
    __test__ = False

    """Record a scenario of pulls for later assertions."""

    def __init__(self, pulls: PullService, wallet: PlayerWallet) -> None:
        self._pulls = pulls
        self._wallet = wallet
        self._log: List[TestMessage] = []

    async def top_up(self, player_id: int, currency: str, amount: int) -> None:
        await self._wallet.credit(player_id, currency, amount, "test:top_up")
        self._log.append(
            TestMessage(
                text=f"Credited {amount} {currency}",
                metadata={"balance": await self._wallet.balance(player_id, currency)},
            )
        )

    async def pull(self, player_id: int, pool_id: str, draw_count: int = 1) -> PullBatchResult:
        batch = await self._pulls.pull(player_id, pool_id, draw_count)
        self._log.append(
            TestMessage(
                text=f"Pulled {', '.join(result.reward_id for result in batch.results)}",
                metadata={
                    "rewards": [result.reward_id for result in batch.results],
                    "rarities": [result.rarity.value for result in batch.results],
                    "cost": (batch.cost.currency, batch.cost.amount),
                    "pity": batch.ledger.draws_since_top_tier,
                },
            )
        )
        return batch

    def history(self) -> List[TestMessage]:
        return list(self._log)
