"""Session-scoped ledger client.

Holds the cached balance and subscription snapshot for one authenticated
user. The cached balance is only ever a pre-check: the store's conditional
deduct is the authority, and every balance the client holds is one the store
returned.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from uuid import UUID

from src.modules.auth.retry import BoundedRetry, RetryExhaustedError, RetryPolicy
from src.utils.logger import get_logger

from .costs import FeatureCostResolver
from .store import INSUFFICIENT_FUNDS, BalanceStore


class LedgerFailure(str, Enum):
    INSUFFICIENT_FUNDS = "insufficient_funds"
    STORE_UNAVAILABLE = "store_unavailable"
    NOT_AUTHENTICATED = "not_authenticated"


@dataclass(frozen=True)
class LedgerResult:
    success: bool
    new_balance: int | None
    amount: int = 0
    failure: LedgerFailure | None = None


@dataclass(frozen=True)
class SubscriptionState:
    subscription_type: str | None = None
    expires_at: datetime | None = None

    def is_active(self, now: datetime | None = None) -> bool:
        if not self.subscription_type:
            return False
        if self.expires_at is None:
            return True

        now = now or datetime.now(timezone.utc)
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return expires_at > now


class LedgerClient:
    def __init__(
        self,
        store: BalanceStore,
        costs: FeatureCostResolver,
        user_id: UUID | None,
        retry_policy: RetryPolicy | None = None,
    ):
        self.store = store
        self.costs = costs
        self.user_id = user_id
        self.retry_policy = retry_policy or RetryPolicy.for_balance_reads()
        self.logger = get_logger(self.__class__.__name__)

        self._balance: int | None = None
        self._subscription = SubscriptionState()
        self._epoch = 0
        self._stale = False

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def stale(self) -> bool:
        """True while the cached balance is a fail-closed 0 from a failed refresh."""
        return self._stale

    @property
    def needs_refresh(self) -> bool:
        return self.user_id is not None and (self._balance is None or self._stale)

    @property
    def subscription(self) -> SubscriptionState:
        return self._subscription

    def get_balance(self) -> int | None:
        """Cached balance, or None before the first load or without a user."""
        if self.user_id is None:
            return None
        return self._balance

    async def refresh(self) -> int | None:
        """Re-read balance and subscription; on exhausted retries the balance becomes 0."""
        if self.user_id is None:
            self._balance = None
            return None

        epoch = self._epoch
        self.costs.preload()

        try:
            snapshot = await BoundedRetry(self.retry_policy).run(
                lambda: self.store.read_balance(self.user_id)
            )
        except RetryExhaustedError as e:
            self.logger.error(
                f"Balance refresh failed, failing closed: {e.last_error}",
                user_id=str(self.user_id),
            )
            if epoch == self._epoch:
                self._balance = 0
                self._stale = True
            return self.get_balance()

        if epoch != self._epoch:
            self.logger.debug("Discarding balance read from a previous session")
            return self.get_balance()

        self._balance = snapshot.balance
        self._stale = False
        self._subscription = SubscriptionState(
            subscription_type=snapshot.subscription_type,
            expires_at=snapshot.subscription_expires_at,
        )
        return self._balance

    def can_afford(self, feature_key: str) -> bool:
        if self.get_balance() is None:
            return False
        return self._balance >= self.costs.get_cost_sync(feature_key)

    async def deduct(self, feature_key: str) -> LedgerResult:
        if self.user_id is None:
            return LedgerResult(False, None, failure=LedgerFailure.NOT_AUTHENTICATED)

        epoch = self._epoch
        amount = await self.costs.get_cost_async(feature_key)

        try:
            new_balance = await self.store.deduct(self.user_id, amount, feature_key)
        except Exception as e:
            self.logger.error(
                f"Deduct failed for {feature_key}: {e}", user_id=str(self.user_id)
            )
            return LedgerResult(
                False, self.get_balance(), amount, LedgerFailure.STORE_UNAVAILABLE
            )

        if new_balance == INSUFFICIENT_FUNDS or new_balance < 0:
            self.logger.info(
                f"Insufficient gems for {feature_key}",
                user_id=str(self.user_id),
                amount=amount,
            )
            return LedgerResult(
                False, self.get_balance(), amount, LedgerFailure.INSUFFICIENT_FUNDS
            )

        self._adopt(epoch, new_balance)
        return LedgerResult(True, new_balance, amount)

    async def credit(
        self, feature_key: str, reason: str, amount: int | None = None
    ) -> LedgerResult:
        """Credit gems for ``feature_key``.

        With ``amount`` given, exactly that many gems are credited; refunds
        pass the amount that was deducted so the pair nets to zero.
        """
        if self.user_id is None:
            return LedgerResult(False, None, failure=LedgerFailure.NOT_AUTHENTICATED)

        epoch = self._epoch
        if amount is None:
            amount = await self.costs.get_cost_async(feature_key)

        try:
            new_balance = await self.store.credit(
                self.user_id, amount, reason, feature_key
            )
        except Exception as e:
            self.logger.error(
                f"Credit ({reason}) failed for {feature_key}: {e}",
                user_id=str(self.user_id),
                amount=amount,
            )
            return LedgerResult(
                False, self.get_balance(), amount, LedgerFailure.STORE_UNAVAILABLE
            )

        self._adopt(epoch, new_balance)
        return LedgerResult(True, new_balance, amount)

    def reset(self) -> None:
        """Drop cached state; results of calls started before this are not adopted."""
        self._epoch += 1
        self._balance = None
        self._stale = False
        self._subscription = SubscriptionState()

    def _adopt(self, epoch: int, new_balance: int) -> None:
        if epoch == self._epoch:
            self._balance = new_balance
            self._stale = False
