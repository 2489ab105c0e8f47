from fastapi import APIRouter

from src.api.admin.router import router as admin_router
from src.api.auth.router import router as auth_router
from src.api.gems.router import router as gems_router
from src.api.health.router import router as health_router, root_router
from src.api.tools.router import router as tools_router

# V1 API router
v1_router = APIRouter(prefix="/v1")

# Include domain routers
v1_router.include_router(admin_router)
v1_router.include_router(auth_router)
v1_router.include_router(gems_router)
v1_router.include_router(tools_router)

# Main API router
api_router = APIRouter()
api_router.include_router(root_router)
api_router.include_router(health_router)
api_router.include_router(v1_router)
