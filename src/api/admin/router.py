"""Admin console endpoints. Role checks happen in AdminService."""

from uuid import UUID

from fastapi import APIRouter, Query

from src.api.admin.schemas import (
    AddGemsRequest,
    AdminUserModel,
    AdminUsersResponse,
    BalanceChangeModel,
    BalanceChangeResponse,
    BlockStatusModel,
    BlockStatusResponse,
    FeatureGemCostModel,
    FeatureGemCostResponse,
    GenerationHistoryModel,
    GenerationHistoryResponse,
    SetGemsRequest,
    SetSubscriptionRequest,
    SubscriptionModel,
    SubscriptionResponse,
    ToggleBlockRequest,
    UpdateFeatureCostRequest,
)
from src.api.core.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from src.api.core.dependencies import AdminServiceDep, CurrentUserAuthDep
from src.api.core.messages import APIResponse, MessageCode, Paginated, PaginationInfo

router = APIRouter(prefix="/admin", tags=["admin"])


def _pagination(total: int, limit: int, offset: int) -> PaginationInfo:
    return PaginationInfo(
        total=total, limit=limit, offset=offset, has_more=offset + limit < total
    )


@router.put("/users/{user_id}/gems", response_model=BalanceChangeResponse)
async def set_gems(
    user_id: UUID,
    body: SetGemsRequest,
    current_user: CurrentUserAuthDep,
    admin_service: AdminServiceDep,
) -> BalanceChangeResponse:
    balance = await admin_service.set_gems(current_user.user_id, user_id, body.gems)
    return APIResponse.success(
        message_code=MessageCode.UPDATED,
        data=BalanceChangeModel(user_id=user_id, gems_balance=balance),
    )


@router.post("/users/{user_id}/gems", response_model=BalanceChangeResponse)
async def add_gems(
    user_id: UUID,
    body: AddGemsRequest,
    current_user: CurrentUserAuthDep,
    admin_service: AdminServiceDep,
) -> BalanceChangeResponse:
    """Credit gems for a top-up or subscription purchase."""
    balance = await admin_service.add_gems(
        current_user.user_id,
        user_id,
        body.gems,
        transaction_type=body.transaction_type,
        subscription_type=body.subscription_type,
        expires_at=body.expires_at,
    )
    return APIResponse.success(
        message_code=MessageCode.UPDATED,
        data=BalanceChangeModel(user_id=user_id, gems_balance=balance),
    )


@router.put("/users/{user_id}/subscription", response_model=SubscriptionResponse)
async def set_subscription(
    user_id: UUID,
    body: SetSubscriptionRequest,
    current_user: CurrentUserAuthDep,
    admin_service: AdminServiceDep,
) -> SubscriptionResponse:
    row = await admin_service.set_subscription(
        current_user.user_id, user_id, body.subscription_type, body.days
    )
    return APIResponse.success(
        message_code=MessageCode.UPDATED, data=SubscriptionModel.model_validate(row)
    )


@router.delete("/users/{user_id}/subscription", response_model=SubscriptionResponse)
async def clear_subscription(
    user_id: UUID,
    current_user: CurrentUserAuthDep,
    admin_service: AdminServiceDep,
) -> SubscriptionResponse:
    row = await admin_service.clear_subscription(current_user.user_id, user_id)
    return APIResponse.success(
        message_code=MessageCode.UPDATED,
        data=SubscriptionModel.model_validate(row) if row else None,
    )


@router.put("/users/{user_id}/block", response_model=BlockStatusResponse)
async def toggle_block(
    user_id: UUID,
    body: ToggleBlockRequest,
    current_user: CurrentUserAuthDep,
    admin_service: AdminServiceDep,
) -> BlockStatusResponse:
    profile = await admin_service.toggle_block(current_user.user_id, user_id, body.blocked)
    return APIResponse.success(
        message_code=MessageCode.UPDATED, data=BlockStatusModel.model_validate(profile)
    )


@router.put("/feature-costs/{feature_key}", response_model=FeatureGemCostResponse)
async def update_feature_cost(
    feature_key: str,
    body: UpdateFeatureCostRequest,
    current_user: CurrentUserAuthDep,
    admin_service: AdminServiceDep,
) -> FeatureGemCostResponse:
    row = await admin_service.update_feature_cost(
        current_user.user_id,
        feature_key,
        gem_cost=body.gem_cost,
        feature_name=body.feature_name,
        category=body.category,
        is_active=body.is_active,
    )
    return APIResponse.success(
        message_code=MessageCode.UPDATED, data=FeatureGemCostModel.model_validate(row)
    )


@router.get("/users", response_model=AdminUsersResponse)
async def list_users(
    current_user: CurrentUserAuthDep,
    admin_service: AdminServiceDep,
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
) -> AdminUsersResponse:
    users, total = await admin_service.list_users(current_user.user_id, limit, offset)
    return APIResponse.success(
        data=Paginated(
            items=[AdminUserModel(**user) for user in users],
            pagination=_pagination(total, limit, offset),
        )
    )


@router.get("/generation-history", response_model=GenerationHistoryResponse)
async def list_generation_history(
    current_user: CurrentUserAuthDep,
    admin_service: AdminServiceDep,
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
) -> GenerationHistoryResponse:
    entries, total = await admin_service.list_generation_history(
        current_user.user_id, limit, offset
    )
    return APIResponse.success(
        data=Paginated(
            items=[GenerationHistoryModel.model_validate(entry) for entry in entries],
            pagination=_pagination(total, limit, offset),
        )
    )
