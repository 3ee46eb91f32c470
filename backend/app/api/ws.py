from __future__ import annotations

import logging
from typing import Any

import socketio
from socketio.exceptions import ConnectionRefusedError as SocketConnectionRefused

from app.core.errors import AdmissionError
from app.services.realtime_server import RealtimeServer

"""
API Realtime (Socket.IO).

Rôle (fonctionnel) :
- Relie les événements Socket.IO au RealtimeServer :
  - connect : filtre d’admission (token JWT) ; refus ou échec d’inscription -> ConnectionRefusedError côté client,
  - disconnect : nettoyage du registre,
  - chat:* / notification:* : dispatch vers les relais.

Notes :
- Aucune logique métier ici : tout passe par RealtimeServer (testable sans Socket.IO).
"""

log = logging.getLogger("realtime.ws")


def register_socketio_handlers(sio: socketio.AsyncServer, server: RealtimeServer) -> None:
    @sio.event
    async def connect(sid: str, environ: dict, auth: Any = None):
        try:
            await server.on_connect(sid, environ, auth)
        except AdmissionError as exc:
            log.info("WS connection refused: %s", exc.code, extra={"sid": sid})
            raise SocketConnectionRefused(exc.message)
        except Exception:
            # Rien n’est inscrit au registre (cf. RealtimeServer.on_connect) : refus propre
            log.exception("WS connect failed", extra={"sid": sid})
            raise SocketConnectionRefused("Connection failed")

    @sio.event
    async def disconnect(sid: str, reason: Any = None):
        await server.on_disconnect(sid)

    for event in server.events():
        sio.on(event, handler=_make_handler(server, event))


def _make_handler(server: RealtimeServer, event: str):
    async def handler(sid: str, *args: Any) -> None:
        # Les événements sans payload (ex : notification:readAll) arrivent sans argument
        await server.dispatch(event, sid, args[0] if args else None)

    handler.__name__ = f"on_{event.replace(':', '_')}"
    return handler
