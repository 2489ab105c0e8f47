"""Balance Store contract and its SQL implementation.

The store is the only authority on a user's gem balance. Every mutation is a
single conditional statement so that concurrent spends from different
sessions cannot drive a balance below zero.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Protocol
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.cache import cached, invalidate_cache
from src.database.models import (
    FeatureGemCost,
    GemTransaction,
    TransactionType,
    UserGems,
)
from src.utils.logger import get_logger
from src.utils.settings.gems import GemSettings

# Returned by deduct when the balance cannot cover the amount
INSUFFICIENT_FUNDS = -1


@dataclass(frozen=True)
class BalanceSnapshot:
    balance: int
    subscription_type: str | None = None
    subscription_expires_at: datetime | None = None


@dataclass(frozen=True)
class FeatureCost:
    feature_key: str
    cost: int
    feature_name: str = ""
    category: str = ""
    is_active: bool = True


class BalanceStore(Protocol):
    async def read_balance(self, user_id: UUID) -> BalanceSnapshot: ...

    async def deduct(self, user_id: UUID, amount: int, feature_key: str) -> int: ...

    async def credit(
        self,
        user_id: UUID,
        amount: int,
        reason: str,
        feature_key: str | None = None,
    ) -> int: ...

    async def read_feature_costs(self) -> list[FeatureCost]: ...


def validate_amount(amount: int) -> None:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
        raise ValueError(f"Gem amount must be a non-negative integer, got {amount!r}")


async def increment_balance(db: AsyncSession, user_id: UUID, amount: int) -> int:
    """Atomically add gems inside the caller's transaction, creating the row if needed."""
    stmt = (
        update(UserGems)
        .where(UserGems.user_id == user_id)
        .values(
            gems_balance=UserGems.gems_balance + amount,
            updated_at=datetime.now(timezone.utc),
        )
        .returning(UserGems.gems_balance)
        .execution_options(synchronize_session=False)
    )
    new_balance = (await db.execute(stmt)).scalar_one_or_none()
    if new_balance is None:
        db.add(UserGems(user_id=user_id, gems_balance=amount))
        await db.flush()
        new_balance = amount
    return new_balance


class SqlBalanceStore:
    """Balance Store backed by the hosted Postgres database."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory
        self.logger = get_logger(self.__class__.__name__)

    async def read_balance(self, user_id: UUID) -> BalanceSnapshot:
        async with self.session_factory() as db:
            result = await db.execute(
                select(UserGems).where(UserGems.user_id == user_id)
            )
            row = result.scalar_one_or_none()

        if row is None:
            return BalanceSnapshot(balance=0)

        return BalanceSnapshot(
            balance=row.gems_balance,
            subscription_type=row.subscription_type,
            subscription_expires_at=row.subscription_expires_at,
        )

    async def deduct(self, user_id: UUID, amount: int, feature_key: str) -> int:
        validate_amount(amount)

        async with self.session_factory() as db:
            stmt = (
                update(UserGems)
                .where(
                    UserGems.user_id == user_id,
                    UserGems.gems_balance >= amount,
                )
                .values(
                    gems_balance=UserGems.gems_balance - amount,
                    updated_at=datetime.now(timezone.utc),
                )
                .returning(UserGems.gems_balance)
                .execution_options(synchronize_session=False)
            )
            new_balance = (await db.execute(stmt)).scalar_one_or_none()

            if new_balance is None:
                await db.rollback()
                self.logger.info(
                    "Deduct rejected, insufficient gems",
                    user_id=str(user_id),
                    feature_key=feature_key,
                    amount=amount,
                )
                return INSUFFICIENT_FUNDS

            db.add(
                GemTransaction(
                    user_id=user_id,
                    gems_amount=-amount,
                    gems_balance_after=new_balance,
                    transaction_type=TransactionType.DEDUCTION.value,
                    feature_used=feature_key,
                )
            )
            await db.commit()

        self.logger.info(
            f"Deducted {amount} gems for {feature_key}",
            user_id=str(user_id),
            balance=new_balance,
        )
        return new_balance

    async def credit(
        self,
        user_id: UUID,
        amount: int,
        reason: str,
        feature_key: str | None = None,
    ) -> int:
        validate_amount(amount)

        async with self.session_factory() as db:
            new_balance = await increment_balance(db, user_id, amount)
            db.add(
                GemTransaction(
                    user_id=user_id,
                    gems_amount=amount,
                    gems_balance_after=new_balance,
                    transaction_type=reason,
                    feature_used=feature_key,
                )
            )
            await db.commit()

        self.logger.info(
            f"Credited {amount} gems ({reason})",
            user_id=str(user_id),
            feature_key=feature_key,
            balance=new_balance,
        )
        return new_balance

    @cached(ttl=GemSettings().FEATURE_COSTS_CACHE_TTL)
    async def read_feature_costs(self) -> list[FeatureCost]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(FeatureGemCost).order_by(
                    FeatureGemCost.category.asc(), FeatureGemCost.feature_name.asc()
                )
            )
            rows = result.scalars().all()

        return [
            FeatureCost(
                feature_key=row.feature_key,
                cost=row.gem_cost,
                feature_name=row.feature_name,
                category=row.category,
                is_active=row.is_active,
            )
            for row in rows
        ]

    async def invalidate_feature_costs(self) -> None:
        await invalidate_cache(SqlBalanceStore.read_feature_costs, self)
