from fastapi import APIRouter
from .auth import router as auth_router
from .billing import router as billing_router
from .enhancement import router as enhancement_router
from .health import router as health_router
from .listings import router as listings_router
from .projects import router as projects_router

router = APIRouter()
router.include_router(health_router)
router.include_router(auth_router)
router.include_router(billing_router)
router.include_router(enhancement_router)
router.include_router(projects_router)
router.include_router(listings_router)
