"""Administrative balance, subscription, blocking and cost-table operations."""

from datetime import datetime, timedelta, timezone
from uuid import UUID

from fastapi import status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.core.exceptions.base import StudioException
from src.api.core.messages import MessageCode
from src.core.base import BaseService
from src.database.models import (
    FeatureGemCost,
    GemTransaction,
    GenerationHistory,
    Profile,
    TransactionType,
    UserGems,
    UserRole,
)
from src.modules.auth.status import AccountStatusService
from src.modules.gems.costs import FEATURE_CATEGORIES, FeatureCostResolver
from src.modules.gems.session import SessionRegistry
from src.modules.gems.store import BalanceStore, increment_balance, validate_amount


class AdminService(BaseService):
    """Mutations behind the admin console.

    Every operation first checks that ``admin_id`` holds the admin role.
    Balance changes are audited in ``gem_transactions`` and pushed to the
    target's open ledger session, if any.
    """

    def __init__(
        self,
        db: AsyncSession,
        status_service: AccountStatusService,
        registry: SessionRegistry,
        store: BalanceStore,
        costs: FeatureCostResolver,
    ):
        super().__init__(db)
        self.status_service = status_service
        self.registry = registry
        self.store = store
        self.costs = costs

    async def require_admin(self, admin_id: UUID) -> None:
        if not await self.status_service.is_admin(admin_id):
            self.logger.warning("Unauthorized admin access attempt", user_id=str(admin_id))
            raise StudioException(
                MessageCode.FORBIDDEN,
                status.HTTP_403_FORBIDDEN,
                {"description": "Admin access required"},
            )

    async def set_gems(self, admin_id: UUID, target: UUID, gems: int) -> int:
        await self.require_admin(admin_id)
        self._validate_gems(gems)

        row = await self._get_or_create_gems(target)
        delta = gems - row.gems_balance
        row.gems_balance = gems
        row.updated_at = datetime.now(timezone.utc)
        self.db.add(
            GemTransaction(
                user_id=target,
                gems_amount=delta,
                gems_balance_after=gems,
                transaction_type=TransactionType.ADMIN_ADJUSTMENT.value,
            )
        )
        await self.db.commit()

        self.logger.info(
            f"Set balance of {target} to {gems}", admin_id=str(admin_id), delta=delta
        )
        await self._sync_session(target)
        return gems

    async def add_gems(
        self,
        admin_id: UUID,
        target: UUID,
        gems: int,
        transaction_type: TransactionType = TransactionType.TOPUP,
        subscription_type: str | None = None,
        expires_at: datetime | None = None,
    ) -> int:
        await self.require_admin(admin_id)
        self._validate_gems(gems)

        new_balance = await increment_balance(self.db, target, gems)
        if subscription_type is not None:
            row = await self.db.get(UserGems, target)
            row.subscription_type = subscription_type
            row.subscription_expires_at = expires_at

        self.db.add(
            GemTransaction(
                user_id=target,
                gems_amount=gems,
                gems_balance_after=new_balance,
                transaction_type=TransactionType(transaction_type).value,
            )
        )
        await self.db.commit()

        self.logger.info(
            f"Added {gems} gems to {target}",
            admin_id=str(admin_id),
            transaction_type=TransactionType(transaction_type).value,
        )
        await self._sync_session(target)
        return new_balance

    async def set_subscription(
        self, admin_id: UUID, target: UUID, subscription_type: str, days: int
    ) -> UserGems:
        await self.require_admin(admin_id)
        if days <= 0:
            raise StudioException(
                MessageCode.INVALID_INPUT,
                status.HTTP_400_BAD_REQUEST,
                {"description": "Subscription length must be at least one day"},
            )

        row = await self._get_or_create_gems(target)
        row.subscription_type = subscription_type
        row.subscription_expires_at = datetime.now(timezone.utc) + timedelta(days=days)
        await self.db.commit()
        await self.db.refresh(row)

        self.logger.info(
            f"Set {subscription_type} subscription for {target} ({days} days)",
            admin_id=str(admin_id),
        )
        await self._sync_session(target)
        return row

    async def clear_subscription(self, admin_id: UUID, target: UUID) -> UserGems | None:
        await self.require_admin(admin_id)

        row = await self.db.get(UserGems, target)
        if row is None:
            return None

        # The balance is left alone; only future entitlement changes
        row.subscription_type = None
        row.subscription_expires_at = None
        await self.db.commit()
        await self.db.refresh(row)

        self.logger.info(f"Cleared subscription for {target}", admin_id=str(admin_id))
        await self._sync_session(target)
        return row

    async def toggle_block(self, admin_id: UUID, target: UUID, blocked: bool) -> Profile:
        await self.require_admin(admin_id)

        profile = await self.db.get(Profile, target)
        if profile is None:
            profile = Profile(user_id=target)
            self.db.add(profile)
        profile.is_blocked = blocked
        await self.db.commit()
        await self.db.refresh(profile)

        self.status_service.forget(target)
        if blocked:
            await self.registry.sign_out(target)

        self.logger.info(
            f"{'Blocked' if blocked else 'Unblocked'} user {target}", admin_id=str(admin_id)
        )
        return profile

    async def update_feature_cost(
        self,
        admin_id: UUID,
        feature_key: str,
        gem_cost: int | None = None,
        feature_name: str | None = None,
        category: str | None = None,
        is_active: bool | None = None,
    ) -> FeatureGemCost:
        await self.require_admin(admin_id)
        if gem_cost is not None:
            self._validate_gems(gem_cost)
        if category is not None and category not in FEATURE_CATEGORIES:
            raise StudioException(
                MessageCode.INVALID_INPUT,
                status.HTTP_400_BAD_REQUEST,
                {"description": f"Unknown category '{category}'"},
            )

        result = await self.db.execute(
            select(FeatureGemCost).where(FeatureGemCost.feature_key == feature_key)
        )
        row = result.scalar_one_or_none()
        if row is None:
            if gem_cost is None:
                raise StudioException(
                    MessageCode.FEATURE_NOT_FOUND,
                    status.HTTP_404_NOT_FOUND,
                    {"feature_key": feature_key},
                )
            row = FeatureGemCost(
                feature_key=feature_key,
                feature_name=feature_name or feature_key,
                gem_cost=gem_cost,
                category=category or "quick-tools",
            )
            self.db.add(row)
        else:
            if gem_cost is not None:
                row.gem_cost = gem_cost
            if feature_name is not None:
                row.feature_name = feature_name
            if category is not None:
                row.category = category
        if is_active is not None:
            row.is_active = is_active

        await self.db.commit()
        await self.db.refresh(row)

        await self.store.invalidate_feature_costs()
        await self.costs.refresh()

        self.logger.info(
            f"Updated cost for {feature_key} to {row.gem_cost}", admin_id=str(admin_id)
        )
        return row

    async def list_generation_history(
        self, admin_id: UUID, limit: int, offset: int
    ) -> tuple[list[GenerationHistory], int]:
        await self.require_admin(admin_id)

        total = await self.db.scalar(select(func.count()).select_from(GenerationHistory))
        result = await self.db.execute(
            select(GenerationHistory)
            .order_by(GenerationHistory.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all()), total or 0

    async def list_users(
        self, admin_id: UUID, limit: int, offset: int
    ) -> tuple[list[dict], int]:
        await self.require_admin(admin_id)

        total = await self.db.scalar(select(func.count()).select_from(Profile))
        result = await self.db.execute(
            select(Profile, UserGems)
            .outerjoin(UserGems, UserGems.user_id == Profile.user_id)
            .order_by(Profile.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        rows = result.all()

        user_ids = [profile.user_id for profile, _ in rows]
        admins: set[UUID] = set()
        if user_ids:
            role_result = await self.db.execute(
                select(UserRole.user_id).where(
                    UserRole.user_id.in_(user_ids), UserRole.role == "admin"
                )
            )
            admins = set(role_result.scalars().all())

        users = [
            {
                "user_id": profile.user_id,
                "email": profile.email,
                "full_name": profile.full_name,
                "is_blocked": profile.is_blocked,
                "is_admin": profile.user_id in admins,
                "gems_balance": gems.gems_balance if gems else 0,
                "subscription_type": gems.subscription_type if gems else None,
                "subscription_expires_at": gems.subscription_expires_at if gems else None,
                "created_at": profile.created_at,
            }
            for profile, gems in rows
        ]
        return users, total or 0

    async def _get_or_create_gems(self, user_id: UUID) -> UserGems:
        """Balance row locked for the rest of the transaction, re-read from the database."""
        row = await self.db.get(
            UserGems, user_id, with_for_update=True, populate_existing=True
        )
        if row is None:
            row = UserGems(user_id=user_id, gems_balance=0)
            self.db.add(row)
            await self.db.flush()
        return row

    def _validate_gems(self, gems: int) -> None:
        try:
            validate_amount(gems)
        except ValueError as e:
            raise StudioException(
                MessageCode.INVALID_INPUT,
                status.HTTP_400_BAD_REQUEST,
                {"description": str(e)},
            )

    async def _sync_session(self, user_id: UUID) -> None:
        session = self.registry.get(user_id)
        if session is not None:
            await session.ledger.refresh()
