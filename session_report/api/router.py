from fastapi import APIRouter

from .sessions import router as sessions_router
from .summary import router as summary_router

api_router = APIRouter()

api_router.include_router(summary_router, tags=["summary"])
api_router.include_router(sessions_router, tags=["sessions"])
