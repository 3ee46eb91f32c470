from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import asc, delete, desc, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.chat_message import ChatMessage
from app.models.conversation import Conversation

"""
Conversation Service (collaborateur de persistance du chat).

Rôle (fonctionnel) :
- Vérifie qu’une session de chat existe ET appartient à l’utilisateur (contrôle d’accès du relais).
- Crée / supprime des sessions (suppression filtrée par propriétaire : 0 ou 1 ligne).
- Persiste les messages (user / assistant) avant leur diffusion.
- Fournit l’historique trié (plus ancien d’abord) et les derniers messages (contexte IA).

Notes :
- Chaque opération ouvre sa propre session via la factory injectée (AsyncSessionLocal en prod,
  engine SQLite en tests).
- Un identifiant qui n’est pas un UUID valide est traité comme “introuvable”.
"""


def as_uuid(value: Any) -> Optional[uuid.UUID]:
    """Convertit une valeur en UUID (None si invalide)."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        return None


class ConversationStore:
    def __init__(self, session_factory: Callable[[], AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_owned(self, conversation_id: Any, user_id: str) -> Optional[Conversation]:
        """Session de chat si elle existe et appartient à user_id, sinon None."""
        cid = as_uuid(conversation_id)
        if cid is None:
            return None

        async with self._session_factory() as db:
            stmt = select(Conversation).where(Conversation.id == cid).where(Conversation.user_id == user_id)
            return (await db.execute(stmt)).scalars().first()

    async def create(self, user_id: str, title: str | None = None) -> Conversation:
        async with self._session_factory() as db:
            conversation = Conversation(user_id=user_id, title=(title or "").strip() or "New Chat")
            db.add(conversation)
            await db.commit()
            await db.refresh(conversation)
            return conversation

    async def delete_owned(self, conversation_id: Any, user_id: str) -> int:
        """Supprime la session (et ses messages) si elle appartient à user_id. Retourne le nombre supprimé."""
        cid = as_uuid(conversation_id)
        if cid is None:
            return 0

        async with self._session_factory() as db:
            owned = select(Conversation.id).where(Conversation.id == cid).where(Conversation.user_id == user_id)
            await db.execute(delete(ChatMessage).where(ChatMessage.session_id.in_(owned)))
            result = await db.execute(
                delete(Conversation).where(Conversation.id == cid).where(Conversation.user_id == user_id)
            )
            await db.commit()
            return int(result.rowcount or 0)

    async def add_message(
        self,
        conversation_id: uuid.UUID,
        role: str,
        content: str,
        *,
        attachments: Optional[List[str]] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> ChatMessage:
        """Persiste un message et rafraîchit updated_at de la session."""
        now = datetime.now(timezone.utc)
        async with self._session_factory() as db:
            message = ChatMessage(
                session_id=conversation_id,
                role=role,
                content=content,
                attachments=attachments,
                meta=metadata,
                created_at=now,
            )
            db.add(message)
            await db.execute(update(Conversation).where(Conversation.id == conversation_id).values(updated_at=now))
            await db.commit()
            await db.refresh(message)
            return message

    async def history(self, conversation_id: Any, user_id: str) -> List[ChatMessage]:
        """Messages de la session (plus ancien d’abord), filtrés par propriétaire dans la même requête."""
        cid = as_uuid(conversation_id)
        if cid is None:
            return []

        async with self._session_factory() as db:
            stmt = (
                select(ChatMessage)
                .join(Conversation, Conversation.id == ChatMessage.session_id)
                .where(ChatMessage.session_id == cid)
                .where(Conversation.user_id == user_id)
                .order_by(asc(ChatMessage.created_at))
            )
            return list((await db.execute(stmt)).scalars().all())

    async def recent_messages(self, conversation_id: Any, limit: int = 10) -> List[ChatMessage]:
        """N derniers messages, remis dans l’ordre chronologique (contexte envoyé à l’IA)."""
        cid = as_uuid(conversation_id)
        if cid is None or limit <= 0:
            return []

        async with self._session_factory() as db:
            stmt = (
                select(ChatMessage)
                .where(ChatMessage.session_id == cid)
                .order_by(desc(ChatMessage.created_at))
                .limit(limit)
            )
            rows = list((await db.execute(stmt)).scalars().all())
        rows.reverse()
        return rows
