"""Feature gem cost table."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, CheckConstraint, DateTime, Integer, String, UUID
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class FeatureGemCost(Base):
    __tablename__ = "feature_gem_costs"
    __table_args__ = (
        CheckConstraint("gem_cost >= 0", name="ck_feature_gem_costs_non_negative"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID, primary_key=True, default=uuid.uuid4)
    feature_key: Mapped[str] = mapped_column(String, unique=True, nullable=False)
    feature_name: Mapped[str] = mapped_column(String, nullable=False)
    gem_cost: Mapped[int] = mapped_column(Integer, nullable=False)
    category: Mapped[str] = mapped_column(String, nullable=False, default="quick-tools")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
