from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from src.api.core.messages import APIResponse, Paginated
from src.database.models import TransactionType


class SetGemsRequest(BaseModel):
    gems: int = Field(..., ge=0)


class AddGemsRequest(BaseModel):
    gems: int = Field(..., ge=0)
    transaction_type: TransactionType = TransactionType.TOPUP
    subscription_type: str | None = None
    expires_at: datetime | None = None


class SetSubscriptionRequest(BaseModel):
    subscription_type: str = Field(..., min_length=1)
    days: int = Field(..., gt=0)


class ToggleBlockRequest(BaseModel):
    blocked: bool


class UpdateFeatureCostRequest(BaseModel):
    gem_cost: int | None = Field(None, ge=0)
    feature_name: str | None = Field(None, min_length=1)
    category: str | None = None
    is_active: bool | None = None


class BalanceChangeModel(BaseModel):
    user_id: UUID
    gems_balance: int


class SubscriptionModel(BaseModel):
    user_id: UUID
    gems_balance: int
    subscription_type: str | None = None
    subscription_expires_at: datetime | None = None

    class Config:
        from_attributes = True


class BlockStatusModel(BaseModel):
    user_id: UUID
    is_blocked: bool

    class Config:
        from_attributes = True


class FeatureGemCostModel(BaseModel):
    id: UUID
    feature_key: str
    feature_name: str
    gem_cost: int
    category: str
    is_active: bool
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


class AdminUserModel(BaseModel):
    user_id: UUID
    email: str | None = None
    full_name: str | None = None
    is_blocked: bool
    is_admin: bool
    gems_balance: int
    subscription_type: str | None = None
    subscription_expires_at: datetime | None = None
    created_at: datetime | None = None


class GenerationHistoryModel(BaseModel):
    id: UUID
    user_id: UUID
    feature_name: str
    input_images: list[str]
    output_images: list[str]
    created_at: datetime

    class Config:
        from_attributes = True


BalanceChangeResponse = APIResponse[BalanceChangeModel]
SubscriptionResponse = APIResponse[SubscriptionModel | None]
BlockStatusResponse = APIResponse[BlockStatusModel]
FeatureGemCostResponse = APIResponse[FeatureGemCostModel]
AdminUsersResponse = APIResponse[Paginated[AdminUserModel]]
GenerationHistoryResponse = APIResponse[Paginated[GenerationHistoryModel]]
