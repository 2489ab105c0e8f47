"""Supabase JWT authentication."""

from uuid import UUID

from fastapi import status
from jose import JWTError, jwt

from src.api.core.constants import JWT_ALGORITHM, JWT_AUDIENCE
from src.api.core.exceptions.base import StudioException
from src.api.core.messages import MessageCode
from src.cache import cached
from src.core.context import AuthenticatedUserContext
from src.utils.logger import get_logger
from src.utils.settings.auth import AuthSettings

logger = get_logger(__name__)


def extract_user_from_claims(payload: dict) -> AuthenticatedUserContext:
    """Build the request user context from Supabase JWT claims."""
    user_metadata = payload.get("user_metadata") or {}
    full_name = user_metadata.get("full_name") or user_metadata.get("name", "")

    try:
        user_id = UUID(payload.get("sub", ""))
    except ValueError:
        raise StudioException(
            MessageCode.INVALID_TOKEN,
            status.HTTP_401_UNAUTHORIZED,
            {"description": "Token subject is not a user id"},
        )

    return AuthenticatedUserContext(
        user_id=user_id,
        email=payload.get("email", ""),
        full_name=full_name,
    )


@cached(300)
async def handle_jwt_auth(token: str) -> AuthenticatedUserContext:
    try:
        payload = jwt.decode(
            token,
            AuthSettings().SUPABASE_JWT_SECRET,
            algorithms=[JWT_ALGORITHM],
            audience=JWT_AUDIENCE,
        )
    except JWTError as e:
        logger.error(f"JWT decoding failed: {e}")
        raise StudioException(
            MessageCode.INVALID_TOKEN,
            status.HTTP_401_UNAUTHORIZED,
            {"description": "Invalid or expired authentication token"},
        )

    if payload.get("role") == "anon":
        raise StudioException(
            MessageCode.FORBIDDEN,
            status.HTTP_403_FORBIDDEN,
            {"description": "Anonymous access not permitted"},
        )

    return extract_user_from_claims(payload)
