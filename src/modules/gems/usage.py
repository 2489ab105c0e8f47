"""Usage log: best-effort record of completed paid generations."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Protocol
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.database.models import GenerationHistory
from src.utils.logger import get_logger
from src.utils.path_helpers import clean_refs

logger = get_logger(__name__)


@dataclass(frozen=True)
class UsageLogEntry:
    user_id: UUID | None
    feature_key: str
    input_refs: list[str] = field(default_factory=list)
    output_refs: list[str] = field(default_factory=list)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class UsageLog(Protocol):
    async def append(self, entry: UsageLogEntry) -> None: ...


class SqlUsageLog:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def append(self, entry: UsageLogEntry) -> None:
        async with self.session_factory() as db:
            db.add(
                GenerationHistory(
                    user_id=entry.user_id,
                    feature_name=entry.feature_key,
                    input_images=list(entry.input_refs),
                    output_images=list(entry.output_refs),
                    created_at=entry.timestamp,
                )
            )
            await db.commit()


async def record_usage(
    usage_log: UsageLog,
    user_id: UUID | None,
    feature_key: str,
    input_refs,
    output_refs,
) -> bool:
    """Append a usage entry, logging and swallowing write failures.

    Returns True when the entry was written.
    """
    if user_id is None:
        logger.warning("Skipping usage log entry without user", feature_key=feature_key)
        return False

    entry = UsageLogEntry(
        user_id=user_id,
        feature_key=feature_key,
        input_refs=clean_refs(input_refs),
        output_refs=clean_refs(output_refs),
    )
    try:
        await usage_log.append(entry)
    except Exception as e:
        logger.error(
            f"Failed to write usage log entry: {e}",
            user_id=str(user_id),
            feature_key=feature_key,
        )
        return False

    return True
