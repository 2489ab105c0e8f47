"""Gem balance and cost table endpoints."""

from fastapi import APIRouter, Path

from src.api.core.dependencies import CostResolverDep, StudioSessionDep
from src.api.core.messages import APIResponse
from src.api.gems.schemas import (
    AffordabilityModel,
    AffordabilityResponse,
    BalanceModel,
    BalanceResponse,
    CostTableModel,
    CostTableResponse,
    FeatureCostModel,
)
from src.modules.gems.costs import FEATURE_CATEGORIES

router = APIRouter(prefix="/gems", tags=["gems"])

FEATURE_KEY_PATTERN = r"^[a-z0-9][a-z0-9-]*$"


@router.get("/balance", response_model=BalanceResponse)
async def get_balance(session: StudioSessionDep) -> BalanceResponse:
    """Re-read the caller's balance and subscription from the store."""
    ledger = session.ledger
    balance = await ledger.refresh()
    subscription = ledger.subscription

    return APIResponse.success(
        data=BalanceModel(
            balance=balance,
            subscription_type=subscription.subscription_type,
            subscription_expires_at=subscription.expires_at,
            subscription_active=subscription.is_active(),
        )
    )


@router.get("/costs", response_model=CostTableResponse)
async def list_costs(costs: CostResolverDep) -> CostTableResponse:
    await costs.ensure_loaded()

    return APIResponse.success(
        data=CostTableModel(
            categories=FEATURE_CATEGORIES,
            default_cost=costs.default_cost,
            features=[FeatureCostModel.model_validate(entry) for entry in costs.table()],
        )
    )


@router.get("/costs/{feature_key}/affordable", response_model=AffordabilityResponse)
async def check_affordable(
    session: StudioSessionDep,
    feature_key: str = Path(..., pattern=FEATURE_KEY_PATTERN),
) -> AffordabilityResponse:
    """Fast pre-check against the cached balance; the charge itself decides."""
    ledger = session.ledger
    await ledger.costs.ensure_loaded()

    return APIResponse.success(
        data=AffordabilityModel(
            feature_key=feature_key,
            cost=ledger.costs.get_cost_sync(feature_key),
            balance=ledger.get_balance(),
            affordable=ledger.can_afford(feature_key),
        )
    )
