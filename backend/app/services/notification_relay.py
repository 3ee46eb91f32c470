from __future__ import annotations

import logging
from typing import Any, Dict, Iterable

from app.core.admission import Identity
from app.core.errors import RelayError
from app.core.realtime import ConnectionRegistry, GroupTransport, user_group
from app.services.notification_service import NotificationStore

"""
Notification Relay.

Rôle (fonctionnel) :
- Sortant (appelé par le reste de l’application) :
  - notify_one : notification:new vers toutes les connexions d’un utilisateur (room user:<id>),
  - notify_many : notify_one pour chaque destinataire (livraison partielle normale),
  - broadcast_all : notification:broadcast vers toutes les connexions.
  Livraison best-effort : pas d’accusé, pas de rejeu si l’utilisateur est hors ligne.
- Entrant (événements WebSocket) : état de lecture persisté via NotificationStore
  (notification:read, notification:readAll, notification:unreadCount).
"""

logger = logging.getLogger("realtime.notifications")


class NotificationRelay:
    error_event = "notification:error"

    def __init__(
        self,
        transport: GroupTransport,
        registry: ConnectionRegistry,
        store: NotificationStore,
    ) -> None:
        self.transport = transport
        self.registry = registry
        self.store = store

    def handlers(self) -> Dict[str, tuple[Any, str]]:
        return {
            "notification:read": (self.mark_read, "Failed to mark notification as read"),
            "notification:readAll": (self.mark_all_read, "Failed to mark all notifications as read"),
            "notification:unreadCount": (self.unread_count, "Failed to get unread count"),
        }

    async def notify_one(self, user_id: str, payload: Any) -> bool:
        """Retourne True si l’utilisateur avait au moins une connexion vivante."""
        if not self.registry.is_online(user_id):
            logger.debug("notification skipped (offline)", extra={"user_id": user_id})
            return False
        await self.transport.emit_to_group(user_group(user_id), "notification:new", payload)
        return True

    async def notify_many(self, user_ids: Iterable[str], payload: Any) -> int:
        """Retourne le nombre de destinataires en ligne."""
        delivered = 0
        for user_id in user_ids:
            if await self.notify_one(user_id, payload):
                delivered += 1
        return delivered

    async def broadcast_all(self, payload: Any) -> None:
        await self.transport.emit_all("notification:broadcast", payload)

    async def mark_read(self, sid: str, identity: Identity, data: Any) -> None:
        if isinstance(data, dict):
            data = data.get("notification_id", data.get("notificationId"))
        if not isinstance(data, str) or not data.strip():
            raise RelayError("INVALID_PAYLOAD", "Invalid payload")
        notification_id = data.strip()

        updated = await self.store.mark_read(notification_id, identity.user_id)
        logger.debug(
            "notification read",
            extra={"user_id": identity.user_id, "notification_id": notification_id},
        )
        await self.transport.emit_to_connection(
            sid,
            "notification:read:success",
            {"notification_id": notification_id, "updated": updated},
        )

    async def mark_all_read(self, sid: str, identity: Identity, data: Any) -> None:
        count = await self.store.mark_all_read(identity.user_id)
        await self.transport.emit_to_connection(sid, "notification:readAll:success", {"count": count})

    async def unread_count(self, sid: str, identity: Identity, data: Any) -> None:
        count = await self.store.unread_count(identity.user_id)
        await self.transport.emit_to_connection(sid, "notification:unreadCount", {"count": count})
