from fastapi import APIRouter

from .health import router as health_router

from app.api.notifications import router as notifications_router
from app.api.realtime import router as realtime_router
from app.api.status import router as status_router

"""
Router principal de l’API HTTP.

Rôle (fonctionnel) :
- Regroupe les routeurs (health, statut, présence, notifications).
- Les événements WebSocket sont liés à part (app.api.ws).
"""

api_router = APIRouter()

api_router.include_router(health_router, tags=["health"])
api_router.include_router(status_router)
api_router.include_router(realtime_router)
api_router.include_router(notifications_router)
