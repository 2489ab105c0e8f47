from typing import Annotated, AsyncGenerator

from fastapi import Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.core.exceptions.base import StudioException
from src.api.core.messages import MessageCode
from src.core.context import AuthenticatedUserContext
from src.modules.admin.service import AdminService
from src.modules.gems.costs import FeatureCostResolver
from src.modules.gems.session import SessionRegistry, StudioSession
from src.modules.generation.client import GenerationClient


async def get_db_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Get database session from app state."""
    session_factory = request.app.state.session_factory
    async with session_factory() as session:
        yield session


def get_cost_resolver(request: Request) -> FeatureCostResolver:
    return request.app.state.cost_resolver


def get_session_registry(request: Request) -> SessionRegistry:
    return request.app.state.session_registry


def get_generation_client(request: Request) -> GenerationClient:
    return request.app.state.generation_client


async def get_current_user_authenticated(request: Request) -> AuthenticatedUserContext:
    """Dependency to get the user the auth middleware put on request state."""
    user = getattr(request.state, "user", None)
    if not user:
        raise StudioException(MessageCode.AUTH_REQUIRED, status.HTTP_401_UNAUTHORIZED)
    return user


CurrentUserAuthDep = Annotated[
    AuthenticatedUserContext, Depends(get_current_user_authenticated)
]
AsyncSessionDep = Annotated[AsyncSession, Depends(get_db_session)]
SessionRegistryDep = Annotated[SessionRegistry, Depends(get_session_registry)]


async def get_studio_session(
    user: CurrentUserAuthDep,
    registry: SessionRegistryDep,
) -> StudioSession:
    """Get (opening on first use) the caller's ledger session."""
    return await registry.open(user.user_id)


async def get_admin_service(
    db: AsyncSessionDep,
    request: Request,
) -> AdminService:
    """Get admin service with database session."""
    state = request.app.state
    return AdminService(
        db,
        status_service=state.status_service,
        registry=state.session_registry,
        store=state.balance_store,
        costs=state.cost_resolver,
    )


CostResolverDep = Annotated[FeatureCostResolver, Depends(get_cost_resolver)]
GenerationClientDep = Annotated[GenerationClient, Depends(get_generation_client)]
StudioSessionDep = Annotated[StudioSession, Depends(get_studio_session)]
AdminServiceDep = Annotated[AdminService, Depends(get_admin_service)]
