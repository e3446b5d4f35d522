"""Exceptions raised by GachaForge domain services."""


class GachaForgeError(RuntimeError):
    """Base class for domain exceptions."""


class PoolNotFound(GachaForgeError):
    """Raised when a pull targets an unknown pool."""

    def __init__(self, pool_id: str) -> None:
        super().__init__(f"Pool {pool_id} not found")
        self.pool_id = pool_id


class PoolInactive(GachaForgeError):
    """Raised when the pool is disabled or outside its time window."""

    def __init__(self, pool_id: str, reason: str = "inactive") -> None:
        super().__init__(f"Pool {pool_id} is not available ({reason})")
        self.pool_id = pool_id
        self.reason = reason


class UnsupportedDrawCount(GachaForgeError):
    """Raised when a batch size other than single or bulk is requested."""

    def __init__(self, draw_count: int, supported: tuple[int, ...]) -> None:
        super().__init__(f"Draw count {draw_count} not supported (expected one of {supported})")
        self.draw_count = draw_count
        self.supported = supported


class InsufficientFunds(GachaForgeError):
    """Raised when the wallet cannot cover the batch cost."""

    def __init__(self, currency: str, amount: int) -> None:
        super().__init__(f"Insufficient {currency}: need {amount}")
        self.currency = currency
        self.amount = amount


class CatalogInconsistency(GachaForgeError):
    """Raised when a rarity with positive probability has no eligible reward.

    This is a content defect, not a runtime condition; retrying will not help.
    """


class PersistenceFailure(GachaForgeError):
    """Raised when the pity ledger cannot be loaded or saved."""
