"""API routers."""

from app.routers.audit import router as audit_router
from app.routers.auth import router as auth_router
from app.routers.customers import router as customers_router
from app.routers.inbound import router as inbound_router
from app.routers.invites import router as invites_router
from app.routers.tickets import router as tickets_router
from app.routers.users import router as users_router

__all__ = [
    "audit_router",
    "auth_router",
    "customers_router",
    "inbound_router",
    "invites_router",
    "tickets_router",
    "users_router",
]
