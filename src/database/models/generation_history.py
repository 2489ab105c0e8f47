"""Generation history (usage log) model."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, String, UUID
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class GenerationHistory(Base):
    __tablename__ = "generation_history"

    id: Mapped[uuid.UUID] = mapped_column(UUID, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(UUID, nullable=False, index=True)
    feature_name: Mapped[str] = mapped_column(String, nullable=False)
    input_images: Mapped[list[str]] = mapped_column(JSON, default=list)
    output_images: Mapped[list[str]] = mapped_column(JSON, default=list)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
