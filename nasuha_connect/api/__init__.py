"""
API package for the NASUHA Connect backend.

Aggregates every router. Business endpoints live under ``/api``; the health
endpoints are served at the root.
"""

from fastapi import APIRouter

from .routes.audit_logs import router as audit_logs_router
from .routes.auth import router as auth_router
from .routes.categories import router as categories_router
from .routes.health import router as health_router
from .routes.kordas import router as kordas_router
from .routes.media import router as media_router
from .routes.roles import permissions_router, router as roles_router
from .routes.users import router as users_router

api_router = APIRouter()
api_router.include_router(health_router)
api_router.include_router(auth_router)
api_router.include_router(users_router)
api_router.include_router(roles_router)
api_router.include_router(permissions_router)
api_router.include_router(kordas_router)
api_router.include_router(categories_router)
api_router.include_router(media_router)
api_router.include_router(audit_logs_router)
