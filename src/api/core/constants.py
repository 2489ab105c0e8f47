# JWT Configuration
JWT_ALGORITHM = "HS256"
JWT_AUDIENCE = "authenticated"

# Pagination
DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100

# Authentication endpoints configuration
SKIP_AUTH_PATHS = {
    "/openapi.json",
    "/docs",
    "/redoc",
    "/health",
    "/health/liveness",
    "/",
    "/v1/gems/costs",
}
