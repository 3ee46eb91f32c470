from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from app.core.errors import RelayError

"""
Schemas Chat (Pydantic).

Rôle (fonctionnel) :
- Définit le contrat des événements WebSocket de chat (payloads entrants / sortants).
- Valide les payloads entrants : un payload malformé devient une RelayError(INVALID_PAYLOAD)
  au lieu d’une erreur opaque de la couche DB.
- Sérialise les objets ORM (Conversation, ChatMessage) en JSON pour l’émission.

Notes :
- Les clients historiques envoient du camelCase (sessionId, isTyping) : les deux formes sont acceptées.
- Les identifiants de session sont normalisés (forme UUID canonique) dès la validation :
  rooms chat:<id> et sessions rejointes utilisent toujours la même clé.
"""


class SendMessageIn(BaseModel):
    """Payload de chat:message."""
    session_id: str = Field(min_length=1, validation_alias=AliasChoices("session_id", "sessionId"))
    content: str = Field(min_length=1, max_length=10000)
    attachments: Optional[List[str]] = None

    model_config = ConfigDict(extra="ignore")

    @field_validator("session_id")
    @classmethod
    def canonical_session(cls, value: str) -> str:
        return _checked_conversation_id(value)


class TypingIn(BaseModel):
    """Payload de chat:typing."""
    session_id: str = Field(min_length=1, validation_alias=AliasChoices("session_id", "sessionId"))
    is_typing: bool = Field(validation_alias=AliasChoices("is_typing", "isTyping"))

    model_config = ConfigDict(extra="ignore")

    @field_validator("session_id")
    @classmethod
    def canonical_session(cls, value: str) -> str:
        return _checked_conversation_id(value)


class ConversationOut(BaseModel):
    """Session de chat émise au client (chat:created)."""
    id: uuid.UUID
    user_id: str
    title: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MessageOut(BaseModel):
    """Message de chat émis au groupe (chat:message) ou dans l’historique (chat:history)."""
    id: uuid.UUID
    session_id: uuid.UUID
    role: str
    content: str
    attachments: Optional[List[str]] = None
    metadata: Optional[Dict[str, Any]] = Field(default=None, validation_alias=AliasChoices("meta", "metadata"))
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


def parse_payload(model: type[BaseModel], data: Any) -> Any:
    """Valide un payload entrant ; RelayError(INVALID_PAYLOAD) si invalide."""
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise RelayError("INVALID_PAYLOAD", "Invalid payload") from exc


def canonical_conversation_id(value: str) -> str:
    """Forme canonique d’un identifiant de session (UUID minuscule avec tirets, sinon la valeur nettoyée)."""
    value = value.strip()
    try:
        return str(uuid.UUID(value))
    except ValueError:
        return value


def _checked_conversation_id(value: str) -> str:
    value = canonical_conversation_id(value)
    if not value:
        raise ValueError("session_id must not be blank")
    return value


def parse_conversation_id(data: Any) -> str:
    """
    Extrait l’identifiant de session d’un payload simple, sous forme canonique.

    Formes acceptées : "<id>" ou {"session_id": "<id>"} / {"sessionId": "<id>"}.
    """
    if isinstance(data, dict):
        data = data.get("session_id", data.get("sessionId"))
    if isinstance(data, str) and data.strip():
        return canonical_conversation_id(data)
    raise RelayError("INVALID_PAYLOAD", "Invalid payload")


def dump_message(message: Any) -> Dict[str, Any]:
    return MessageOut.model_validate(message).model_dump(mode="json")


def dump_conversation(conversation: Any) -> Dict[str, Any]:
    return ConversationOut.model_validate(conversation).model_dump(mode="json")
