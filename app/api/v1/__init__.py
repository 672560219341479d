from fastapi import APIRouter

from app.api.v1.routers import (
    admin,
    admin_users,
    applications,
    auth,
    eligibility,
    health,
    payments,
    webhooks,
)

api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(auth.router)
api_router.include_router(eligibility.router)
api_router.include_router(applications.router)
api_router.include_router(payments.router)
api_router.include_router(webhooks.router)
api_router.include_router(admin.router)
api_router.include_router(admin_users.router)

__all__ = ["api_router"]
