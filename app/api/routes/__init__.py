"""API routes, mounted under settings.API_PREFIX."""

from fastapi import APIRouter

from app.api.routes import admin, admin_parser, auth, health, movies, profile

router = APIRouter()
router.include_router(health.router, prefix="/health", tags=["health"])
router.include_router(auth.router, prefix="/auth", tags=["auth"])
router.include_router(profile.router, prefix="/profile", tags=["profile"])
router.include_router(admin_parser.router, prefix="/admin/parser", tags=["admin-parser"])
router.include_router(admin.router, prefix="/admin", tags=["admin"])
router.include_router(movies.router, prefix="/movies", tags=["movies"])
