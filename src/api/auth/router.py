from fastapi import APIRouter

from src.api.core.dependencies import CurrentUserAuthDep, SessionRegistryDep
from src.api.core.messages import APIResponse, MessageCode

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/sign-out", response_model=APIResponse[bool])
async def sign_out(
    current_user: CurrentUserAuthDep,
    registry: SessionRegistryDep,
) -> APIResponse[bool]:
    """End the caller's ledger session and discard its cached balance."""
    closed = await registry.sign_out(current_user.user_id)
    return APIResponse.success(message_code=MessageCode.SIGNED_OUT, data=closed)
