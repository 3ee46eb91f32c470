from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base
from app.models.column_types import JSONType

"""
Model Notification (table notifications).

Rôle (fonctionnel) :
- Notification in-app destinée à un utilisateur (commande, paiement, validation vendeur…).
- Porte l’état de lecture (read + read_at) modifié par les événements WebSocket
  notification:read / notification:readAll.
"""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    # Type métier (ex : ORDER_UPDATE, PAYMENT, SYSTEM…)
    type: Mapped[str] = mapped_column(String(50), nullable=False, default="SYSTEM")
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    data: Mapped[dict | None] = mapped_column(JSONType, nullable=True)

    read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    # Compteur “non lues” par utilisateur
    __table_args__ = (Index("ix_notifications_user_read", "user_id", "read"),)
