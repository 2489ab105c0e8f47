from .costs import DEFAULT_GEM_COSTS, FEATURE_CATEGORIES, FeatureCostResolver
from .ledger import LedgerClient, LedgerFailure, LedgerResult, SubscriptionState
from .session import SessionRegistry, StudioSession
from .spend import (
    DEDUCT_AFTER_FEATURES,
    SpendFailure,
    SpendGuard,
    SpendOutcome,
    SpendPolicy,
)
from .store import (
    INSUFFICIENT_FUNDS,
    BalanceSnapshot,
    BalanceStore,
    FeatureCost,
    SqlBalanceStore,
)
from .usage import SqlUsageLog, UsageLog, UsageLogEntry, record_usage

__all__ = [
    "BalanceSnapshot",
    "BalanceStore",
    "DEDUCT_AFTER_FEATURES",
    "DEFAULT_GEM_COSTS",
    "FEATURE_CATEGORIES",
    "FeatureCost",
    "FeatureCostResolver",
    "INSUFFICIENT_FUNDS",
    "LedgerClient",
    "LedgerFailure",
    "LedgerResult",
    "SessionRegistry",
    "SpendFailure",
    "SpendGuard",
    "SpendOutcome",
    "SpendPolicy",
    "SqlBalanceStore",
    "SqlUsageLog",
    "StudioSession",
    "SubscriptionState",
    "UsageLog",
    "UsageLogEntry",
    "record_usage",
]
