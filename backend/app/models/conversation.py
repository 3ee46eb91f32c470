from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base

"""
Model Conversation (table chat_sessions).

Rôle (fonctionnel) :
- Représente une session de chat assisté appartenant à un utilisateur.
- Sert de contrôle d’accès : un utilisateur ne peut rejoindre / lire / écrire que ses propres sessions.

Relations :
- Conversation -> ChatMessage (1..N, suppression en cascade).
"""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Conversation(Base):
    __tablename__ = "chat_sessions"

    # Identifiant technique (UUID)
    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    # Propriétaire (identité du JWT)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    title: Mapped[str] = mapped_column(String(255), nullable=False, default="New Chat")

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    messages = relationship(
        "ChatMessage",
        back_populates="conversation",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
