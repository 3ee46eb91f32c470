from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.models.column_types import JSONType

"""
Model ChatMessage (table chat_messages).

Rôle (fonctionnel) :
- Stocke chaque message d’une session de chat : role "user" (client) ou "assistant" (IA).
- attachments : liste optionnelle d’URLs de fichiers joints.
- metadata : infos optionnelles produites par l’IA (modèle, tokens consommés…).

Notes :
- L’attribut Python s’appelle `meta` (le nom `metadata` est réservé par SQLAlchemy Declarative),
  la colonne SQL reste `metadata`.
"""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ChatMessage(Base):
    __tablename__ = "chat_messages"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    # Session parente (cascade delete)
    session_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("chat_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    role: Mapped[str] = mapped_column(String(20), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)

    attachments: Mapped[list | None] = mapped_column(JSONType, nullable=True)
    meta: Mapped[dict | None] = mapped_column("metadata", JSONType, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    conversation = relationship("Conversation", back_populates="messages")

    # Historique d’une session trié par date
    __table_args__ = (Index("ix_chat_messages_session_date", "session_id", "created_at"),)
