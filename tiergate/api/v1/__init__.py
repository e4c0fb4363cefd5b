from fastapi import APIRouter

from tiergate.api.v1 import entitlements, gates, health


def setup_routers() -> APIRouter:
    router = APIRouter()
    router.include_router(health.router, tags=["Health"])
    router.include_router(entitlements.router, prefix="/v1", tags=["Entitlements"])
    router.include_router(gates.router, prefix="/v1", tags=["Gates"])
    return router


__all__ = ["setup_routers"]
