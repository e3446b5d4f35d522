"""SQLAlchemy storage backend for GachaForge."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator

from sqlalchemy import DateTime, Integer, JSON, String, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from ..domain.exceptions import PersistenceFailure
from ..domain.ledger import LedgerEntry, PityLedger
from ..domain.rewards import Rarity
from .base import PityLedgerStore, PlayerRecord, PlayerStore

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


class PlayerTable(Base):
    __tablename__ = "gachaforge_players"

    player_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    username: Mapped[str | None] = mapped_column(String(255), nullable=True)
    inventory: Mapped[dict] = mapped_column(JSON, default=dict)
    wallet: Mapped[dict] = mapped_column(JSON, default=dict)


class PityLedgerTable(Base):
    __tablename__ = "gachaforge_pity_ledgers"

    player_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    pool_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    draws_since_top_tier: Mapped[int] = mapped_column(Integer, default=0)
    draws_since_featured: Mapped[int] = mapped_column(Integer, default=0)
    total_draws: Mapped[int] = mapped_column(Integer, default=0)
    recent_results: Mapped[list] = mapped_column(JSON, default=list)
    last_pull_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class AsyncSQLAlchemyStorage:
    """Bundle of async stores backed by SQLAlchemy."""

    def __init__(self, dsn: str, *, echo: bool = False) -> None:
        self._engine = create_async_engine(dsn, echo=echo, future=True)
        self._session_factory = async_sessionmaker(self._engine, expire_on_commit=False)

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        async with self._session_factory() as session:
            yield session

    async def init_models(self) -> None:
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self._engine.dispose()

    def player_store(self) -> "AsyncSQLAlchemyPlayerStore":
        return AsyncSQLAlchemyPlayerStore(self._session_factory)

    def ledger_store(self) -> "AsyncSQLAlchemyPityLedgerStore":
        return AsyncSQLAlchemyPityLedgerStore(self._session_factory)


class AsyncSQLAlchemyPlayerStore(PlayerStore):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_or_create(self, player_id: int, username: str | None = None) -> PlayerRecord:
        async with self._session_factory() as session:
            record = await session.get(PlayerTable, player_id)
            if not record:
                record = PlayerTable(player_id=player_id, username=username, inventory={}, wallet={})
                session.add(record)
                await session.commit()
            if username and record.username != username:
                record.username = username
                await session.commit()
            return PlayerRecord(
                player_id=record.player_id,
                username=record.username,
                inventory=dict(record.inventory or {}),
                wallet=dict(record.wallet or {}),
            )

    async def save(self, record: PlayerRecord) -> None:
        async with self._session_factory() as session:
            stmt = update(PlayerTable).where(PlayerTable.player_id == record.player_id).values(
                username=record.username,
                inventory=dict(record.inventory),
                wallet=dict(record.wallet),
            )
            result = await session.execute(stmt)
            if result.rowcount == 0:
                session.add(
                    PlayerTable(
                        player_id=record.player_id,
                        username=record.username,
                        inventory=dict(record.inventory),
                        wallet=dict(record.wallet),
                    )
                )
            await session.commit()


class AsyncSQLAlchemyPityLedgerStore(PityLedgerStore):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def load(self, player_id: int, pool_id: str) -> PityLedger | None:
        try:
            async with self._session_factory() as session:
                row = await session.get(PityLedgerTable, (player_id, pool_id))
                if row is None:
                    return None
                return PityLedger(
                    player_id=row.player_id,
                    pool_id=row.pool_id,
                    draws_since_top_tier=row.draws_since_top_tier,
                    draws_since_featured=row.draws_since_featured,
                    total_draws=row.total_draws,
                    recent_results=tuple(_entry_from_json(item) for item in row.recent_results or ()),
                    last_pull_at=row.last_pull_at,
                )
        except SQLAlchemyError as exc:
            logger.error("Loading pity ledger (%s, %s) failed: %s", player_id, pool_id, exc)
            raise PersistenceFailure(f"Cannot load ledger for {player_id}/{pool_id}") from exc

    async def save(self, ledger: PityLedger) -> None:
        values = dict(
            draws_since_top_tier=ledger.draws_since_top_tier,
            draws_since_featured=ledger.draws_since_featured,
            total_draws=ledger.total_draws,
            recent_results=[_entry_to_json(entry) for entry in ledger.recent_results],
            last_pull_at=ledger.last_pull_at,
        )
        try:
            async with self._session_factory() as session:
                stmt = (
                    update(PityLedgerTable)
                    .where(PityLedgerTable.player_id == ledger.player_id)
                    .where(PityLedgerTable.pool_id == ledger.pool_id)
                    .values(**values)
                )
                result = await session.execute(stmt)
                if result.rowcount == 0:
                    session.add(
                        PityLedgerTable(player_id=ledger.player_id, pool_id=ledger.pool_id, **values)
                    )
                await session.commit()
        except SQLAlchemyError as exc:
            logger.error(
                "Saving pity ledger (%s, %s) failed: %s", ledger.player_id, ledger.pool_id, exc
            )
            raise PersistenceFailure(
                f"Cannot save ledger for {ledger.player_id}/{ledger.pool_id}"
            ) from exc


def _entry_to_json(entry: LedgerEntry) -> dict:
    return {
        "reward_id": entry.reward_id,
        "rarity": entry.rarity.value,
        "is_featured": entry.is_featured,
        "is_first_copy": entry.is_first_copy,
        "pulled_at": entry.pulled_at.isoformat(),
    }


def _entry_from_json(data: dict) -> LedgerEntry:
    return LedgerEntry(
        reward_id=data["reward_id"],
        rarity=Rarity(data["rarity"]),
        is_featured=bool(data["is_featured"]),
        is_first_copy=bool(data["is_first_copy"]),
        pulled_at=datetime.fromisoformat(data["pulled_at"]),
    )
