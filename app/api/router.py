"""Root router: system probes plus the notifications API."""

from fastapi import APIRouter

from api.routes.system import router as system_router
from modules.notifications.controllers import router as notifications_router

api_router = APIRouter()
api_router.include_router(system_router)
api_router.include_router(notifications_router)
