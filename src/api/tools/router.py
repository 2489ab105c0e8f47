"""Spend-guarded generation endpoint shared by every studio tool."""

from functools import partial

from fastapi import APIRouter, Path

from src.api.core.dependencies import GenerationClientDep, StudioSessionDep
from src.api.core.messages import APIResponse, MessageCode
from src.api.gems.router import FEATURE_KEY_PATTERN
from src.api.tools.schemas import (
    GenerateRequest,
    GenerationOutcomeModel,
    GenerationResponse,
)

router = APIRouter(prefix="/tools", tags=["tools"])


@router.post("/{feature_key}/generate", response_model=GenerationResponse)
async def generate(
    body: GenerateRequest,
    session: StudioSessionDep,
    client: GenerationClientDep,
    feature_key: str = Path(..., pattern=FEATURE_KEY_PATTERN),
) -> GenerationResponse:
    outcome = await session.guard.run(
        feature_key,
        partial(client.generate, feature_key),
        body.payload,
        input_refs=body.input_refs,
    )
    outcome.raise_for_failure()

    return APIResponse.success(
        message_code=MessageCode.GENERATION_COMPLETED,
        data=GenerationOutcomeModel(
            feature_key=outcome.feature_key,
            policy=outcome.policy,
            charged=outcome.charged,
            balance=outcome.balance,
            amount=outcome.amount,
            result=outcome.result,
            output_refs=outcome.output_refs,
            drift=outcome.drift,
        ),
    )
