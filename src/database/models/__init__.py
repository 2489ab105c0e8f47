"""Database models for the studio gem ledger."""

from .base import Base
from .feature_costs import FeatureGemCost
from .gems import GemTransaction, TransactionType, UserGems
from .generation_history import GenerationHistory
from .profiles import AppRole, Profile, UserRole

__all__ = [
    # Base
    "Base",
    # Enums
    "AppRole",
    "TransactionType",
    # Models
    "FeatureGemCost",
    "GemTransaction",
    "GenerationHistory",
    "Profile",
    "UserGems",
    "UserRole",
]
