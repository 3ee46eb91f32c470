from __future__ import annotations

from fastapi import Depends, Request

from app.core.errors import AppHTTPException
from app.core.security import require_api_key

"""
Dépendances API.

Rôle (fonctionnel) :
- InternalAuthDep : protège les routes internes (API key).
- get_realtime / get_notification_service : récupèrent les objets construits au démarrage
  (app.state), pour que les routes n’importent aucun singleton.
"""


async def require_internal_auth(request: Request) -> None:
    await require_api_key(request)


# Dépendance prête à l’emploi pour protéger un endpoint interne
InternalAuthDep = Depends(require_internal_auth)


def get_realtime(request: Request):
    server = getattr(request.app.state, "realtime", None)
    if server is None:
        raise AppHTTPException(503, "REALTIME_UNAVAILABLE", "Serveur temps réel non initialisé")
    return server


def get_notification_service(request: Request):
    service = getattr(request.app.state, "notification_service", None)
    if service is None:
        raise AppHTTPException(503, "REALTIME_UNAVAILABLE", "Service de notifications non initialisé")
    return service
