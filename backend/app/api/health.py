from fastapi import APIRouter

from app.core.settings import settings

"""
API Health.

Rôle (fonctionnel) :
- Endpoint simple pour vérifier que le service répond.
- Expose l’environnement et l’activation du WebSocket.
"""

router = APIRouter()


@router.get("/health")
def health():
    return {
        "status": "ok",
        "env": settings.ENV,
        "websocket": settings.ENABLE_WEBSOCKET,
    }
