"""Main API router that aggregates all route modules."""

from fastapi import APIRouter

from dropnow.api import auth, connection_tokens, drivers, health, mobile, users

api_router = APIRouter()

api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])

# Admin console
api_router.include_router(
    connection_tokens.router, prefix="/connection-tokens", tags=["connection-tokens"]
)
api_router.include_router(drivers.router, prefix="/drivers", tags=["drivers"])
api_router.include_router(users.router, prefix="/users", tags=["users"])

# Mobile app (no admin auth, see MobileCORSMiddleware)
api_router.include_router(mobile.router, prefix="/mobile", tags=["mobile"])
