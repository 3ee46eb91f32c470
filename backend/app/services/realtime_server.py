from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional

from app.core.admission import Identity, admit
from app.core.errors import RelayError, event_error_payload
from app.core.realtime import ConnectionRegistry, GroupTransport, user_group
from app.core.request_id import event_context
from app.services.chat_relay import ChatRelay
from app.services.notification_relay import NotificationRelay

"""
Realtime Server (objet process-wide).

Rôle (fonctionnel) :
- Cycle de vie des connexions :
  - on_connect : filtre d’admission (JWT) -> room user:<id> -> registre,
  - on_disconnect : retrait du registre + nettoyage des états par connexion.
- Frontière des handlers : dispatch() exécute chaque événement entrant dans un contexte
  de corrélation, et transforme toute exception en événement d’erreur au seul demandeur.
- API exposée au reste de l’application : send_to_user, send_to_all, is_user_online, get_online_users.

Notes :
- Construit une seule fois au démarrage (app.main) et injecté (app.state.realtime) :
  pas de singleton de module.
"""

logger = logging.getLogger("realtime")

Admission = Callable[[Any, Optional[Mapping[str, Any]]], Identity]


class RealtimeServer:
    def __init__(
        self,
        transport: GroupTransport,
        *,
        chat: ChatRelay,
        notifications: NotificationRelay,
        registry: ConnectionRegistry | None = None,
        admission: Admission = admit,
    ) -> None:
        self.transport = transport
        self.registry = registry or notifications.registry
        self.chat = chat
        self.notifications = notifications
        self._admit = admission

        # sid -> identité attachée à l’admission
        self._identities: Dict[str, Identity] = {}

        self._handlers: Dict[str, tuple[Any, str, str]] = {}
        for relay in (chat, notifications):
            for event, (handler, failure) in relay.handlers().items():
                self._handlers[event] = (handler, failure, relay.error_event)

    def events(self) -> List[str]:
        """Noms des événements entrants gérés (pour l’enregistrement côté Socket.IO)."""
        return list(self._handlers)

    def identity(self, sid: str) -> Optional[Identity]:
        return self._identities.get(sid)

    async def on_connect(self, sid: str, environ: Mapping[str, Any] | None, auth: Any) -> Identity:
        """
        Admission, room user:<id>, puis inscription au registre.

        AdmissionError remonte tel quel (connexion refusée). Si la room ne peut pas être rejointe,
        l’erreur remonte aussi et rien n’est inscrit.
        """
        identity = self._admit(auth, environ)

        await self.transport.join(sid, user_group(identity.user_id))
        self.registry.add_connection(identity.user_id, sid)
        self._identities[sid] = identity

        logger.info(
            "WS connected (%s total)",
            self.registry.count(),
            extra={"sid": sid, "user_id": identity.user_id},
        )
        return identity

    async def on_disconnect(self, sid: str) -> None:
        identity = self._identities.pop(sid, None)
        if identity is None:
            return

        self.registry.remove_connection(identity.user_id, sid)
        self.chat.forget(sid)
        await self.transport.leave(sid, user_group(identity.user_id))

        logger.info(
            "WS disconnected (%s total)",
            self.registry.count(),
            extra={"sid": sid, "user_id": identity.user_id},
        )

    async def dispatch(self, event: str, sid: str, data: Any = None) -> None:
        """Exécute un handler d’événement ; aucune exception ne remonte au transport."""
        entry = self._handlers.get(event)
        identity = self._identities.get(sid)
        if entry is None or identity is None:
            logger.warning("WS event ignored", extra={"sid": sid, "event": event})
            return

        handler, failure, error_event = entry
        with event_context(sid) as rid:
            try:
                await handler(sid, identity, data)
            except RelayError as exc:
                logger.info(
                    "WS event rejected: %s",
                    exc.code,
                    extra={"event": event, "user_id": identity.user_id},
                )
                await self._emit_error(sid, error_event, exc.code, exc.message, rid)
            except Exception:
                logger.exception("WS handler error", extra={"event": event, "user_id": identity.user_id})
                await self._emit_error(sid, error_event, "INTERNAL_ERROR", failure, rid)

    async def _emit_error(self, sid: str, event: str, code: str, message: str, rid: str) -> None:
        try:
            await self.transport.emit_to_connection(
                sid, event, event_error_payload(code=code, message=message, request_id=rid)
            )
        except Exception:
            # Connexion probablement fermée entre-temps : rien d’autre à faire
            logger.warning("WS error event not delivered", extra={"sid": sid, "event": event})

    async def send_to_user(self, user_id: str, event: str, payload: Any) -> None:
        await self.transport.emit_to_group(user_group(user_id), event, payload)

    async def send_to_all(self, event: str, payload: Any) -> None:
        await self.transport.emit_all(event, payload)

    def is_user_online(self, user_id: str) -> bool:
        return self.registry.is_online(user_id)

    def get_online_users(self) -> List[str]:
        return sorted(self.registry.online_identities())
