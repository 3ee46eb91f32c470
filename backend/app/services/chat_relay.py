from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from app.core.admission import Identity
from app.core.errors import RelayError, event_error_payload
from app.core.realtime import GroupTransport, conversation_group
from app.core.request_id import get_request_id
from app.schemas.chat import (
    SendMessageIn,
    TypingIn,
    dump_conversation,
    dump_message,
    parse_conversation_id,
    parse_payload,
)
from app.services.ai_service import AIReply, AIResponder
from app.services.conversation_service import ConversationStore

"""
Chat Relay (événements WebSocket de conversation).

Rôle (fonctionnel) :
- Traduit les événements entrants chat:* en appels au ConversationStore + diffusions par room.
- Contrôle d’accès : toute opération sur une session vérifie en base qu’elle appartient
  à l’identité de la connexion (revérifié à chaque message, jamais mis en cache).

Flux chat:message :
  vérif propriétaire -> persiste message user -> diffuse au groupe -> typing:on (demandeur)
  -> IA -> persiste + diffuse message assistant (ou chat:error au demandeur) -> typing:off (demandeur)

Ordonnancement :
- Les chat:message d’une même connexion sont traités un par un (verrou par connexion) :
  la réponse IA du 1er message est diffusée avant que le 2e ne soit persisté.
- Les autres connexions ne sont jamais bloquées.

Erreurs :
- RelayError (session introuvable, payload invalide) et erreurs de collaborateurs sont gérées
  à la frontière du handler (RealtimeServer.dispatch) : chat:error au seul demandeur.
- Seul l’appel IA est rattrapé sur place (AI_UNAVAILABLE) ; un échec de persistance de la
  réponse reste une erreur interne (INTERNAL_ERROR).
"""

logger = logging.getLogger("realtime.chat")

Handler = Callable[[str, Identity, Any], Awaitable[None]]


class ChatRelay:
    error_event = "chat:error"

    def __init__(
        self,
        transport: GroupTransport,
        conversations: ConversationStore,
        ai: AIResponder,
    ) -> None:
        self.transport = transport
        self.conversations = conversations
        self.ai = ai

        # sid -> sessions rejointes (miroir des rooms chat:* côté transport)
        self._joined: Dict[str, Set[str]] = {}
        # sid -> verrou single-flight des chat:message
        self._send_locks: Dict[str, asyncio.Lock] = {}

    def handlers(self) -> Dict[str, tuple[Handler, str]]:
        """Événement -> (handler, message d’erreur générique)."""
        return {
            "chat:join": (self.join, "Failed to join session"),
            "chat:leave": (self.leave, "Failed to leave session"),
            "chat:message": (self.send_message, "Failed to send message"),
            "chat:typing": (self.typing, "Failed to relay typing indicator"),
            "chat:history": (self.history, "Failed to fetch history"),
            "chat:create": (self.create, "Failed to create session"),
            "chat:delete": (self.delete, "Failed to delete session"),
        }

    def joined(self, sid: str) -> Set[str]:
        return set(self._joined.get(sid, ()))

    def forget(self, sid: str) -> None:
        """Nettoyage à la déconnexion (les rooms sont quittées par le transport)."""
        self._joined.pop(sid, None)
        self._send_locks.pop(sid, None)

    async def _require_owned(self, conversation_id: str, identity: Identity) -> Any:
        conversation = await self.conversations.get_owned(conversation_id, identity.user_id)
        if conversation is None:
            raise RelayError("SESSION_NOT_FOUND", "Session not found")
        return conversation

    async def _enter(self, sid: str, conversation_id: str) -> None:
        await self.transport.join(sid, conversation_group(conversation_id))
        self._joined.setdefault(sid, set()).add(conversation_id)

    async def _exit(self, sid: str, conversation_id: str) -> None:
        await self.transport.leave(sid, conversation_group(conversation_id))
        joined = self._joined.get(sid)
        if joined is not None:
            joined.discard(conversation_id)

    async def join(self, sid: str, identity: Identity, data: Any) -> None:
        conversation = await self._require_owned(parse_conversation_id(data), identity)
        cid = str(conversation.id)

        await self._enter(sid, cid)
        await self.transport.emit_to_connection(sid, "chat:joined", {"session_id": cid})
        logger.debug("chat joined", extra={"user_id": identity.user_id, "conversation_id": cid})

    async def leave(self, sid: str, identity: Identity, data: Any) -> None:
        cid = parse_conversation_id(data)
        await self._exit(sid, cid)
        logger.debug("chat left", extra={"user_id": identity.user_id, "conversation_id": cid})

    async def send_message(self, sid: str, identity: Identity, data: Any) -> None:
        msg = parse_payload(SendMessageIn, data)

        lock = self._send_locks.setdefault(sid, asyncio.Lock())
        async with lock:
            conversation = await self._require_owned(msg.session_id, identity)
            cid = str(conversation.id)
            group = conversation_group(cid)

            user_message = await self.conversations.add_message(
                conversation.id, "user", msg.content, attachments=msg.attachments
            )
            await self.transport.emit_to_group(group, "chat:message", dump_message(user_message))

            await self.transport.emit_to_connection(sid, "chat:typing", {"session_id": cid, "is_typing": True})
            try:
                reply = await self._ask_ai(sid, identity, cid, msg.content)
                if reply is not None:
                    assistant_message = await self.conversations.add_message(
                        conversation.id, "assistant", reply.content, metadata=reply.metadata or None
                    )
                    await self.transport.emit_to_group(group, "chat:message", dump_message(assistant_message))
            finally:
                await self.transport.emit_to_connection(sid, "chat:typing", {"session_id": cid, "is_typing": False})

    async def _ask_ai(self, sid: str, identity: Identity, cid: str, content: str) -> Optional[AIReply]:
        """Réponse de l’assistant, ou None après chat:error(AI_UNAVAILABLE) au demandeur."""
        try:
            return await self.ai.reply(cid, content)
        except Exception:
            logger.exception("AI processing error", extra={"user_id": identity.user_id, "conversation_id": cid})
            await self.transport.emit_to_connection(
                sid,
                self.error_event,
                event_error_payload(
                    code="AI_UNAVAILABLE",
                    message="AI service temporarily unavailable",
                    request_id=get_request_id(),
                ),
            )
            return None

    async def typing(self, sid: str, identity: Identity, data: Any) -> None:
        event = parse_payload(TypingIn, data)

        # Indicateur relayé uniquement depuis une session rejointe
        if event.session_id not in self._joined.get(sid, ()):
            logger.debug("typing ignored (not joined)", extra={"conversation_id": event.session_id})
            return

        await self.transport.emit_to_group(
            conversation_group(event.session_id),
            "chat:typing",
            {"session_id": event.session_id, "user_id": identity.user_id, "is_typing": event.is_typing},
            skip=sid,
        )

    async def history(self, sid: str, identity: Identity, data: Any) -> None:
        conversation = await self._require_owned(parse_conversation_id(data), identity)
        messages = await self.conversations.history(conversation.id, identity.user_id)
        await self.transport.emit_to_connection(sid, "chat:history", [dump_message(m) for m in messages])

    async def create(self, sid: str, identity: Identity, data: Any) -> None:
        title = data.get("title") if isinstance(data, dict) else data
        if title is not None and not isinstance(title, str):
            raise RelayError("INVALID_PAYLOAD", "Invalid payload")

        conversation = await self.conversations.create(identity.user_id, title)
        cid = str(conversation.id)

        await self._enter(sid, cid)
        await self.transport.emit_to_connection(sid, "chat:created", dump_conversation(conversation))
        logger.info("chat session created", extra={"user_id": identity.user_id, "conversation_id": cid})

    async def delete(self, sid: str, identity: Identity, data: Any) -> None:
        cid = parse_conversation_id(data)

        deleted = await self.conversations.delete_owned(cid, identity.user_id)
        await self._exit(sid, cid)
        await self.transport.emit_to_connection(sid, "chat:deleted", {"session_id": cid})
        logger.info(
            "chat session deleted (%s row)",
            deleted,
            extra={"user_id": identity.user_id, "conversation_id": cid},
        )
