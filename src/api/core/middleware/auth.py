import structlog
from fastapi import Request, status

from src.api.core.constants import SKIP_AUTH_PATHS
from src.api.core.exceptions.base import StudioException
from src.api.core.messages import MessageCode
from src.modules.auth.handlers import handle_jwt_auth
from src.utils.path_helpers import path_matches

logger = structlog.get_logger(__name__)


async def _authenticate(request: Request):
    authorization = request.headers.get("Authorization", "")
    if not authorization:
        raise StudioException(
            MessageCode.AUTH_REQUIRED,
            status.HTTP_401_UNAUTHORIZED,
            {"description": "Authorization header is required"},
        )

    auth_parts = authorization.split(" ")
    if len(auth_parts) != 2 or auth_parts[0].lower() != "bearer":
        logger.debug("Invalid authorization header format", parts=len(auth_parts))
        raise StudioException(
            MessageCode.INVALID_TOKEN,
            status.HTTP_401_UNAUTHORIZED,
            {"description": "Authorization header must be 'Bearer <token>'"},
        )

    user = await handle_jwt_auth(auth_parts[1])

    status_service = request.app.state.status_service
    if await status_service.is_blocked(user.user_id):
        logger.warning("Blocked account rejected", user_id=str(user.user_id))
        await request.app.state.session_registry.sign_out(user.user_id)
        raise StudioException(
            MessageCode.ACCOUNT_BLOCKED,
            status.HTTP_403_FORBIDDEN,
            {"description": "This account has been blocked"},
        )

    return user


async def auth_middleware(request: Request, call_next):
    """Authenticate Supabase JWTs and reject blocked accounts.

    Errors are rendered here because exceptions raised from HTTP middleware
    never reach the application's exception handlers.
    """
    if request.method == "OPTIONS" or path_matches(request.url.path, SKIP_AUTH_PATHS):
        request.state.user = None
        return await call_next(request)

    try:
        user = await _authenticate(request)
    except StudioException as e:
        logger.debug(
            "Authentication rejected",
            message_code=e.message_code,
            status_code=e.status_code,
        )
        return e.to_response()
    except Exception as e:
        logger.error(
            "Unexpected authentication error",
            error=str(e),
            error_type=type(e).__name__,
        )
        return StudioException(
            MessageCode.AUTH_REQUIRED,
            status.HTTP_401_UNAUTHORIZED,
            {"description": "Authentication failed"},
        ).to_response()

    request.state.user = user
    structlog.contextvars.bind_contextvars(user_id=str(user.user_id))
    return await call_next(request)
