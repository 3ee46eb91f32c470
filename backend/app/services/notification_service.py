from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.notification import Notification
from app.schemas.notifications import dump_notification
from app.services.conversation_service import as_uuid

"""
Notification Service.

Rôle (fonctionnel) :
- NotificationStore : persistance des notifications in-app et de leur état de lecture
  (utilisé par les événements WebSocket notification:read / readAll / unreadCount).
- NotificationService : crée une notification en base puis la pousse en temps réel
  à toutes les connexions de l’utilisateur (best-effort, pas de rejeu si hors ligne :
  la notification reste lisible en base).

Notes :
- Une notification d’un autre utilisateur n’est jamais modifiée (filtre user_id systématique).
"""

log = logging.getLogger("app.notifications")


class NotificationStore:
    def __init__(self, session_factory: Callable[[], AsyncSession]) -> None:
        self._session_factory = session_factory

    async def create(
        self,
        user_id: str,
        *,
        type: str,
        title: str,
        message: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> Notification:
        async with self._session_factory() as db:
            notification = Notification(
                user_id=user_id,
                type=type,
                title=title,
                message=message,
                data=data or {},
                read=False,
            )
            db.add(notification)
            await db.commit()
            await db.refresh(notification)
            return notification

    async def mark_read(self, notification_id: Any, user_id: str) -> bool:
        """Marque une notification comme lue. False si introuvable / pas à l’utilisateur / déjà lue."""
        nid = as_uuid(notification_id)
        if nid is None:
            return False

        async with self._session_factory() as db:
            result = await db.execute(
                update(Notification)
                .where(Notification.id == nid)
                .where(Notification.user_id == user_id)
                .where(Notification.read.is_(False))
                .values(read=True, read_at=datetime.now(timezone.utc))
            )
            await db.commit()
            return bool(result.rowcount)

    async def mark_all_read(self, user_id: str) -> int:
        async with self._session_factory() as db:
            result = await db.execute(
                update(Notification)
                .where(Notification.user_id == user_id)
                .where(Notification.read.is_(False))
                .values(read=True, read_at=datetime.now(timezone.utc))
            )
            await db.commit()
            return int(result.rowcount or 0)

    async def unread_count(self, user_id: str) -> int:
        async with self._session_factory() as db:
            stmt = (
                select(func.count(Notification.id))
                .where(Notification.user_id == user_id)
                .where(Notification.read.is_(False))
            )
            return int((await db.execute(stmt)).scalar() or 0)


class NotificationService:
    """Création + push temps réel (appelé par les autres workflows : commandes, paiements…)."""

    def __init__(self, store: NotificationStore, relay: Any) -> None:
        self.store = store
        self.relay = relay

    async def create_and_push(
        self,
        user_id: str,
        *,
        type: str,
        title: str,
        message: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        notification = await self.store.create(user_id, type=type, title=title, message=message, data=data)
        payload = dump_notification(notification)

        delivered = await self.relay.notify_one(user_id, payload)
        log.info(
            "notification_created",
            extra={"user_id": user_id, "notification_id": payload["id"], "event": "notification:new"},
        )
        return {"notification": payload, "delivered": delivered}
