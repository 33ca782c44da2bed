from fastapi import APIRouter

from stockdesk.app.api.v1.endpoints.health import router as health_router
from stockdesk.app.api.v1.endpoints.invoke import router as invoke_router

router = APIRouter()
router.include_router(health_router, tags=["health"])
router.include_router(invoke_router, tags=["invoke"])
