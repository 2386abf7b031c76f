from fastapi import APIRouter

from app.fixpos.core.config import settings
from app.fixpos.routers.catalog import router as catalog_router
from app.fixpos.routers.health import router as health_router
from app.fixpos.routers.metrics import router as metrics_router
from app.fixpos.routers.pos_checkout import router as pos_checkout_router
from app.fixpos.routers.pos_drawer import router as pos_drawer_router

api_router = APIRouter()
api_router.include_router(health_router)
api_router.include_router(catalog_router, tags=["catalog"])
api_router.include_router(pos_drawer_router, tags=["pos-drawer"])
api_router.include_router(pos_checkout_router, tags=["pos-checkout"])
if settings.METRICS_ENABLED:
    api_router.include_router(metrics_router, tags=["ops"])
