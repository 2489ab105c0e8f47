"""Account standing lookups (blocked flag, roles)."""

from typing import Protocol
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.database.models import Profile, UserRole


class AccountDirectory(Protocol):
    async def is_blocked(self, user_id: UUID) -> bool: ...

    async def has_role(self, user_id: UUID, role: str) -> bool: ...


class SqlAccountDirectory:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def is_blocked(self, user_id: UUID) -> bool:
        async with self.session_factory() as db:
            result = await db.execute(
                select(Profile.is_blocked).where(Profile.user_id == user_id)
            )
            return bool(result.scalar_one_or_none())

    async def has_role(self, user_id: UUID, role: str) -> bool:
        async with self.session_factory() as db:
            result = await db.execute(
                select(UserRole.id).where(
                    UserRole.user_id == user_id, UserRole.role == role
                )
            )
            return result.first() is not None
