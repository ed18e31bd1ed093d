from fastapi import APIRouter

from emotions_api.api.v1.affirmations import router as affirmations_router
from emotions_api.api.v1.emotions import router as emotions_router
from emotions_api.api.v1.monitoring import router as monitoring_router

api_v1_router = APIRouter(prefix="/api/v1")
api_v1_router.include_router(affirmations_router)
api_v1_router.include_router(emotions_router)
api_v1_router.include_router(monitoring_router)
