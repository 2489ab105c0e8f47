"""Gem balance and transaction models."""

import uuid
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import CheckConstraint, DateTime, Integer, String, UUID
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class TransactionType(str, Enum):
    DEDUCTION = "deduction"
    REFUND = "refund"
    TOPUP = "topup"
    SUBSCRIPTION = "subscription"
    ADMIN_ADJUSTMENT = "admin_adjustment"


class UserGems(Base):
    __tablename__ = "user_gems"
    __table_args__ = (
        CheckConstraint("gems_balance >= 0", name="ck_user_gems_balance_non_negative"),
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID, primary_key=True, comment="Supabase Auth User ID"
    )
    gems_balance: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    subscription_type: Mapped[str | None] = mapped_column(String, nullable=True)
    subscription_expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )


class GemTransaction(Base):
    __tablename__ = "gem_transactions"

    id: Mapped[uuid.UUID] = mapped_column(UUID, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(UUID, nullable=False, index=True)
    # Negative for deductions
    gems_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    gems_balance_after: Mapped[int] = mapped_column(Integer, nullable=False)
    transaction_type: Mapped[TransactionType] = mapped_column(String, nullable=False)
    feature_used: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
