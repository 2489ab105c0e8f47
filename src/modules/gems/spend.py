"""Spend-guarded generation: charge if and only if generation succeeds.

Two orderings are supported. ``DEDUCT_FIRST`` charges before calling the
generation function and refunds the exact deducted amount when it fails.
``DEDUCT_AFTER`` generates speculatively and charges only on success; if
that late charge is rejected the user keeps the result and the drift is
logged for reconciliation.
"""

import asyncio
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from src.database.models import TransactionType
from src.modules.generation.client import GenerationResult
from src.utils.logger import get_logger

from .exceptions import (
    BalanceStoreUnavailableError,
    GenerationFailedError,
    InsufficientGemsError,
    RefundFailedError,
    SpendInProgressError,
)
from .ledger import LedgerClient, LedgerFailure, LedgerResult
from .usage import UsageLog, record_usage

logger = get_logger(__name__)

GenerateFn = Callable[[dict[str, Any]], Awaitable[Any]]


class SpendPolicy(str, Enum):
    DEDUCT_FIRST = "deduct_first"
    DEDUCT_AFTER = "deduct_after"


# Features charged only after a successful generation
DEDUCT_AFTER_FEATURES = frozenset(
    {
        "remove-people-from-image",
        "cinematic-transform",
        "enhance-photo",
        "pose-transfer",
        "prompt-engineer",
        "generate-video",
    }
)


class SpendFailure(str, Enum):
    INSUFFICIENT_FUNDS = "insufficient_funds"
    STORE_UNAVAILABLE = "store_unavailable"
    GENERATION_FAILED = "generation_failed"
    REFUND_FAILED = "refund_failed"
    SPEND_IN_PROGRESS = "spend_in_progress"


_FAILURE_ERRORS = {
    SpendFailure.INSUFFICIENT_FUNDS: InsufficientGemsError,
    SpendFailure.STORE_UNAVAILABLE: BalanceStoreUnavailableError,
    SpendFailure.GENERATION_FAILED: GenerationFailedError,
    SpendFailure.REFUND_FAILED: RefundFailedError,
    SpendFailure.SPEND_IN_PROGRESS: SpendInProgressError,
}


@dataclass(frozen=True)
class SpendOutcome:
    feature_key: str
    policy: SpendPolicy
    charged: bool
    balance: int | None
    amount: int = 0
    result: Any = None
    output_refs: list[str] = field(default_factory=list)
    failure: SpendFailure | None = None
    error: str | None = None
    drift: bool = False

    @property
    def success(self) -> bool:
        return self.failure is None

    def raise_for_failure(self) -> None:
        if self.failure is None:
            return

        details = {
            "feature_key": self.feature_key,
            "charged": self.charged,
            "balance": self.balance,
            "amount": self.amount,
        }
        if self.error:
            details["error"] = self.error
        raise _FAILURE_ERRORS[self.failure](details=details)


def _ledger_failure(result: LedgerResult) -> SpendFailure:
    if result.failure == LedgerFailure.INSUFFICIENT_FUNDS:
        return SpendFailure.INSUFFICIENT_FUNDS
    return SpendFailure.STORE_UNAVAILABLE


class SpendGuard:
    """Wraps generation calls for one session's ledger."""

    def __init__(
        self,
        ledger: LedgerClient,
        usage_log: UsageLog,
        default_policy: SpendPolicy = SpendPolicy.DEDUCT_FIRST,
        overrides: Mapping[str, SpendPolicy] | None = None,
    ):
        self.ledger = ledger
        self.usage_log = usage_log
        self.default_policy = default_policy
        if overrides is None:
            overrides = {key: SpendPolicy.DEDUCT_AFTER for key in DEDUCT_AFTER_FEATURES}
        self.overrides = dict(overrides)
        self._in_flight: set[str] = set()

    def policy_for(self, feature_key: str) -> SpendPolicy:
        return self.overrides.get(feature_key, self.default_policy)

    def is_processing(self, feature_key: str) -> bool:
        return feature_key in self._in_flight

    @property
    def busy(self) -> bool:
        return bool(self._in_flight)

    async def run(
        self,
        feature_key: str,
        generate: GenerateFn,
        payload: dict[str, Any],
        input_refs: Iterable[str] = (),
        policy: SpendPolicy | None = None,
    ) -> SpendOutcome:
        policy = policy or self.policy_for(feature_key)

        if feature_key in self._in_flight:
            return SpendOutcome(
                feature_key=feature_key,
                policy=policy,
                charged=False,
                balance=self.ledger.get_balance(),
                failure=SpendFailure.SPEND_IN_PROGRESS,
            )

        self._in_flight.add(feature_key)
        try:
            # can_afford reads the synchronous cost
            await self.ledger.costs.ensure_loaded()
            if self.ledger.needs_refresh:
                await self.ledger.refresh()
                if self.ledger.needs_refresh:
                    return self._unavailable(feature_key, policy)
            if policy == SpendPolicy.DEDUCT_AFTER:
                return await self._deduct_after(feature_key, generate, payload, input_refs)
            return await self._deduct_first(feature_key, generate, payload, input_refs)
        finally:
            self._in_flight.discard(feature_key)

    async def _deduct_first(self, feature_key, generate, payload, input_refs) -> SpendOutcome:
        policy = SpendPolicy.DEDUCT_FIRST

        if not self.ledger.can_afford(feature_key):
            return self._rejected(feature_key, policy)

        charge = await self.ledger.deduct(feature_key)
        if not charge.success:
            return SpendOutcome(
                feature_key=feature_key,
                policy=policy,
                charged=False,
                balance=self.ledger.get_balance(),
                amount=charge.amount,
                failure=_ledger_failure(charge),
            )

        try:
            generated = await self._generate(feature_key, generate, payload)
        except asyncio.CancelledError:
            logger.warning(
                f"Generation for {feature_key} cancelled after charge, refunding",
                user_id=str(self.ledger.user_id),
                amount=charge.amount,
            )
            await asyncio.shield(self._refund(feature_key, charge.amount))
            raise

        if not generated.ok:
            refund = await self._refund(feature_key, charge.amount)
            if not refund.success:
                return SpendOutcome(
                    feature_key=feature_key,
                    policy=policy,
                    charged=True,
                    balance=self.ledger.get_balance(),
                    amount=charge.amount,
                    failure=SpendFailure.REFUND_FAILED,
                    error=generated.error,
                )
            return SpendOutcome(
                feature_key=feature_key,
                policy=policy,
                charged=False,
                balance=refund.new_balance,
                amount=charge.amount,
                failure=SpendFailure.GENERATION_FAILED,
                error=generated.error,
            )

        await record_usage(
            self.usage_log,
            self.ledger.user_id,
            feature_key,
            input_refs,
            generated.output_refs,
        )
        return SpendOutcome(
            feature_key=feature_key,
            policy=policy,
            charged=True,
            balance=charge.new_balance,
            amount=charge.amount,
            result=generated.result,
            output_refs=list(generated.output_refs),
        )

    async def _deduct_after(self, feature_key, generate, payload, input_refs) -> SpendOutcome:
        policy = SpendPolicy.DEDUCT_AFTER

        if not self.ledger.can_afford(feature_key):
            return self._rejected(feature_key, policy)

        generated = await self._generate(feature_key, generate, payload)
        if not generated.ok:
            return SpendOutcome(
                feature_key=feature_key,
                policy=policy,
                charged=False,
                balance=self.ledger.get_balance(),
                failure=SpendFailure.GENERATION_FAILED,
                error=generated.error,
            )

        charge = await self.ledger.deduct(feature_key)
        drift = not charge.success
        if drift:
            logger.warning(
                f"Generation for {feature_key} succeeded but the charge was rejected",
                user_id=str(self.ledger.user_id),
                amount=charge.amount,
                reason=charge.failure.value if charge.failure else None,
                drift=True,
            )

        await record_usage(
            self.usage_log,
            self.ledger.user_id,
            feature_key,
            input_refs,
            generated.output_refs,
        )
        return SpendOutcome(
            feature_key=feature_key,
            policy=policy,
            charged=charge.success,
            balance=charge.new_balance if charge.success else self.ledger.get_balance(),
            amount=charge.amount,
            result=generated.result,
            output_refs=list(generated.output_refs),
            drift=drift,
        )

    def _rejected(self, feature_key: str, policy: SpendPolicy) -> SpendOutcome:
        return SpendOutcome(
            feature_key=feature_key,
            policy=policy,
            charged=False,
            balance=self.ledger.get_balance(),
            amount=self.ledger.costs.get_cost_sync(feature_key),
            failure=SpendFailure.INSUFFICIENT_FUNDS,
        )

    def _unavailable(self, feature_key: str, policy: SpendPolicy) -> SpendOutcome:
        logger.warning(
            f"Balance for {feature_key} could not be loaded, not spending",
            user_id=str(self.ledger.user_id),
        )
        return SpendOutcome(
            feature_key=feature_key,
            policy=policy,
            charged=False,
            balance=self.ledger.get_balance(),
            amount=self.ledger.costs.get_cost_sync(feature_key),
            failure=SpendFailure.STORE_UNAVAILABLE,
        )

    async def _generate(self, feature_key, generate, payload) -> GenerationResult:
        try:
            raw = await generate(payload)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Generation for {feature_key} raised: {e}")
            return GenerationResult.failure(str(e) or e.__class__.__name__)

        generated = GenerationResult.coerce(raw)
        if not generated.ok and generated.error is None:
            return GenerationResult.failure("Generation returned no result")
        return generated

    async def _refund(self, feature_key: str, amount: int) -> LedgerResult:
        refund = await self.ledger.credit(
            feature_key, TransactionType.REFUND.value, amount=amount
        )
        if not refund.success:
            logger.error(
                f"Refund of {amount} gems for {feature_key} failed, manual correction needed",
                user_id=str(self.ledger.user_id),
                amount=amount,
            )
        return refund
