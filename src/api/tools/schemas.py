from typing import Any

from pydantic import BaseModel, Field

from src.api.core.messages import APIResponse
from src.modules.gems.spend import SpendPolicy


class GenerateRequest(BaseModel):
    """Spend policy is chosen server-side per feature, never by the caller."""

    payload: dict[str, Any] = Field(default_factory=dict)
    input_refs: list[str] = Field(default_factory=list)


class GenerationOutcomeModel(BaseModel):
    feature_key: str
    policy: SpendPolicy
    charged: bool
    balance: int | None
    amount: int
    result: Any = None
    output_refs: list[str] = Field(default_factory=list)
    drift: bool = False


GenerationResponse = APIResponse[GenerationOutcomeModel]
