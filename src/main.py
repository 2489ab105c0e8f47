import uvicorn
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.api.core.exceptions.base import register_exception_handlers
from src.api.core.middleware.auth import auth_middleware
from src.api.core.middleware.logging import logging_middleware
from src.api.core.middleware.security import PayloadSizeMiddleware
from src.api.router import api_router
from src.database.connection import AsyncSessionLocal
from src.modules.auth.directory import SqlAccountDirectory
from src.modules.auth.status import AccountStatusService
from src.modules.gems.costs import FeatureCostResolver
from src.modules.gems.memory import (
    InMemoryAccountDirectory,
    InMemoryBalanceStore,
    InMemoryUsageLog,
)
from src.modules.gems.session import SessionRegistry
from src.modules.gems.store import SqlBalanceStore
from src.modules.gems.usage import SqlUsageLog
from src.modules.generation.client import GenerationClient
from src.redis.client import close_redis_pool
from src.utils.logger import setup_logging
from src.utils.settings.app import AppSettings
from src.utils.settings.gems import GemSettings


is_production = AppSettings().ENVIRONMENT.upper() == "PROD"


def build_ledger_services(app: FastAPI, gem_settings: GemSettings) -> None:
    """Wire the gem store backend and the services built on it into app state."""
    state = app.state
    state.store_backend = gem_settings.GEM_STORE_BACKEND

    if gem_settings.GEM_STORE_BACKEND == "memory":
        state.balance_store = InMemoryBalanceStore()
        usage_log = InMemoryUsageLog()
        directory = InMemoryAccountDirectory()
    else:
        state.balance_store = SqlBalanceStore(state.session_factory)
        usage_log = SqlUsageLog(state.session_factory)
        directory = SqlAccountDirectory(state.session_factory)

    state.usage_log = usage_log
    state.cost_resolver = FeatureCostResolver(
        state.balance_store, default_cost=gem_settings.DEFAULT_FEATURE_COST
    )
    state.session_registry = SessionRegistry(
        state.balance_store, usage_log, state.cost_resolver, gem_settings
    )
    state.status_service = AccountStatusService(directory)
    state.generation_client = GenerationClient()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    logger = setup_logging(is_production)
    logger.info("Starting Studio Gem API...")
    AppSettings().validate_prod()

    # Tests may install their own session factory before startup
    if getattr(app.state, "session_factory", None) is None:
        app.state.session_factory = AsyncSessionLocal

    gem_settings = GemSettings()
    build_ledger_services(app, gem_settings)
    logger.info(f"Gem store backend: {gem_settings.GEM_STORE_BACKEND}")

    yield

    # Shutdown
    logger.info("Shutting down Studio Gem API...")
    await app.state.session_registry.close_all()
    await close_redis_pool()


# Create app with production settings
app = FastAPI(
    title="Studio Gem API",
    description="Gem ledger and spend-guarded generation for the creative studio",
    version=AppSettings().API_VERSION,
    lifespan=lifespan,
    # Security: Disable docs in production
    docs_url=None if is_production else "/docs",
    redoc_url=None if is_production else "/redoc",
    openapi_url=None if is_production else "/openapi.json",
)

# Register global exception handlers
register_exception_handlers(app)


# Configure CORS middleware with explicit settings
app_settings = AppSettings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=app_settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(PayloadSizeMiddleware, max_request_size=app_settings.MAX_REQUEST_SIZE)
app.middleware("http")(auth_middleware)
app.middleware("http")(logging_middleware)

app.include_router(api_router)


def run_dev_server():
    """Run development server with auto-reload."""
    uvicorn.run(
        "src.main:app", host="0.0.0.0", port=8010, reload=True, access_log=False
    )


def run_prod_server():
    """Run production server."""
    uvicorn.run(
        "src.main:app", host="0.0.0.0", port=8010, reload=False, access_log=False
    )
