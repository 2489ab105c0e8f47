"""Test factories for the studio gem ledger models."""

from .base import AsyncSQLAlchemyModelFactory
from .gems import (
    FeatureGemCostFactory,
    GenerationHistoryFactory,
    UserGemsFactory,
)
from .profiles import ProfileFactory, UserRoleFactory

__all__ = [
    "AsyncSQLAlchemyModelFactory",
    "FeatureGemCostFactory",
    "GenerationHistoryFactory",
    "ProfileFactory",
    "UserGemsFactory",
    "UserRoleFactory",
]
