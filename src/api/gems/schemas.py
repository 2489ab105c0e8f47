from datetime import datetime

from pydantic import BaseModel

from src.api.core.messages import APIResponse


class BalanceModel(BaseModel):
    balance: int | None
    subscription_type: str | None = None
    subscription_expires_at: datetime | None = None
    subscription_active: bool = False


class FeatureCostModel(BaseModel):
    feature_key: str
    feature_name: str
    cost: int
    category: str
    is_active: bool = True

    class Config:
        from_attributes = True


class CostTableModel(BaseModel):
    categories: dict[str, str]
    default_cost: int
    features: list[FeatureCostModel]


class AffordabilityModel(BaseModel):
    feature_key: str
    cost: int
    balance: int | None
    affordable: bool


BalanceResponse = APIResponse[BalanceModel]
CostTableResponse = APIResponse[CostTableModel]
AffordabilityResponse = APIResponse[AffordabilityModel]
