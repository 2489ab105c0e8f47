"""In-process Balance Store, usage log and account directory.

Used as the ``memory`` store backend for local development and as the test
double for the ledger. Every mutation holds one lock so deduct stays atomic.
"""

import asyncio
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from uuid import UUID

from src.database.models import TransactionType

from .store import INSUFFICIENT_FUNDS, BalanceSnapshot, FeatureCost, validate_amount
from .usage import UsageLogEntry


@dataclass(frozen=True)
class RecordedTransaction:
    user_id: UUID
    gems_amount: int
    gems_balance_after: int
    transaction_type: str
    feature_used: str | None
    created_at: datetime


class InMemoryBalanceStore:
    def __init__(
        self,
        balances: dict[UUID, int] | None = None,
        feature_costs: list[FeatureCost] | None = None,
    ):
        self._snapshots: dict[UUID, BalanceSnapshot] = {
            user_id: BalanceSnapshot(balance=balance)
            for user_id, balance in (balances or {}).items()
        }
        self._costs: dict[str, FeatureCost] = {
            cost.feature_key: cost for cost in feature_costs or []
        }
        self._lock = asyncio.Lock()
        self.transactions: list[RecordedTransaction] = []

    def balance_of(self, user_id: UUID) -> int:
        snapshot = self._snapshots.get(user_id)
        return snapshot.balance if snapshot else 0

    def set_feature_cost(self, cost: FeatureCost) -> None:
        self._costs[cost.feature_key] = cost

    def set_subscription(
        self, user_id: UUID, subscription_type: str | None, expires_at: datetime | None
    ) -> None:
        current = self._snapshots.get(user_id, BalanceSnapshot(balance=0))
        self._snapshots[user_id] = replace(
            current,
            subscription_type=subscription_type,
            subscription_expires_at=expires_at,
        )

    async def read_balance(self, user_id: UUID) -> BalanceSnapshot:
        return self._snapshots.get(user_id, BalanceSnapshot(balance=0))

    async def deduct(self, user_id: UUID, amount: int, feature_key: str) -> int:
        validate_amount(amount)
        async with self._lock:
            current = self._snapshots.get(user_id, BalanceSnapshot(balance=0))
            if current.balance < amount:
                return INSUFFICIENT_FUNDS
            return self._apply(
                user_id, current, -amount, TransactionType.DEDUCTION.value, feature_key
            )

    async def credit(
        self,
        user_id: UUID,
        amount: int,
        reason: str,
        feature_key: str | None = None,
    ) -> int:
        validate_amount(amount)
        async with self._lock:
            current = self._snapshots.get(user_id, BalanceSnapshot(balance=0))
            return self._apply(user_id, current, amount, reason, feature_key)

    async def read_feature_costs(self) -> list[FeatureCost]:
        return sorted(
            self._costs.values(), key=lambda cost: (cost.category, cost.feature_name)
        )

    async def invalidate_feature_costs(self) -> None:
        return None

    def _apply(
        self,
        user_id: UUID,
        current: BalanceSnapshot,
        delta: int,
        transaction_type: str,
        feature_key: str | None,
    ) -> int:
        new_balance = current.balance + delta
        self._snapshots[user_id] = replace(current, balance=new_balance)
        self.transactions.append(
            RecordedTransaction(
                user_id=user_id,
                gems_amount=delta,
                gems_balance_after=new_balance,
                transaction_type=transaction_type,
                feature_used=feature_key,
                created_at=datetime.now(timezone.utc),
            )
        )
        return new_balance


class InMemoryUsageLog:
    def __init__(self):
        self.entries: list[UsageLogEntry] = []

    async def append(self, entry: UsageLogEntry) -> None:
        self.entries.append(entry)


class InMemoryAccountDirectory:
    def __init__(
        self,
        blocked: set[UUID] | None = None,
        admins: set[UUID] | None = None,
    ):
        self.blocked = set(blocked or ())
        self.admins = set(admins or ())

    async def is_blocked(self, user_id: UUID) -> bool:
        return user_id in self.blocked

    async def has_role(self, user_id: UUID, role: str) -> bool:
        return role == "admin" and user_id in self.admins
