from fastapi import APIRouter

from app.api.routes import applications, utils

api_router = APIRouter()
api_router.include_router(applications.router)
api_router.include_router(utils.router)
