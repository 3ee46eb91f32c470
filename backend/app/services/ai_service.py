from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI, OpenAIError

from app.core.settings import Settings, settings as default_settings
from app.services.conversation_service import ConversationStore

"""
AI Service (assistant du chat).

Rôle (fonctionnel) :
- Produit la réponse “assistant” d’un message utilisateur.
- Contexte envoyé au modèle :
  - prompt système (AI_SYSTEM_PROMPT),
  - derniers messages de la session (AI_HISTORY_LIMIT), message utilisateur inclus
    puisqu’il est persisté avant l’appel.
- Retourne AIReply(content, metadata) ; metadata = {model, tokens_used}.

Comportement :
- IA désactivée (ENABLE_AI_CHAT=false) ou clé absente : réponse fixe “indisponible”, aucun appel externe.
- Erreur fournisseur : AIServiceError (le relais la remonte au seul demandeur).
"""

log = logging.getLogger("app.ai")

UNAVAILABLE_REPLY = "I'm sorry, but the AI assistant is currently unavailable. Please try again later."
EMPTY_REPLY = "I couldn't generate a response."


class AIServiceError(Exception):
    """Échec de l’appel au fournisseur IA."""


@dataclass(frozen=True)
class AIReply:
    content: str
    metadata: Dict[str, Any] = field(default_factory=dict)


class AIResponder:
    def __init__(
        self,
        conversations: ConversationStore,
        *,
        client: Any = None,
        config: Settings | None = None,
    ) -> None:
        self.conversations = conversations
        self.config = config or default_settings
        self._client = client

    @property
    def enabled(self) -> bool:
        return bool(self.config.ENABLE_AI_CHAT and (self._client is not None or self.config.OPENAI_API_KEY))

    def _get_client(self) -> Any:
        # Client créé à la première utilisation (pas d’appel réseau au démarrage)
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self.config.OPENAI_API_KEY,
                timeout=self.config.AI_TIMEOUT_SECONDS,
            )
        return self._client

    async def _build_messages(self, conversation_id: str, content: str) -> List[Dict[str, str]]:
        history = await self.conversations.recent_messages(conversation_id, self.config.AI_HISTORY_LIMIT)

        messages: List[Dict[str, str]] = [{"role": "system", "content": self.config.AI_SYSTEM_PROMPT}]
        messages.extend({"role": m.role, "content": m.content} for m in history)

        # Message courant absent de l’historique (limite à 0, écriture non visible…) : on l’ajoute
        if not history or history[-1].role != "user" or history[-1].content != content:
            messages.append({"role": "user", "content": content})
        return messages

    async def reply(self, conversation_id: str, content: str) -> AIReply:
        if not self.enabled:
            return AIReply(content=UNAVAILABLE_REPLY)

        messages = await self._build_messages(conversation_id, content)

        try:
            completion = await self._get_client().chat.completions.create(
                model=self.config.AI_MODEL,
                messages=messages,
                max_tokens=self.config.AI_MAX_TOKENS,
                temperature=self.config.AI_TEMPERATURE,
            )
        except OpenAIError as exc:
            log.warning("AI provider error: %s", exc, extra={"conversation_id": conversation_id})
            raise AIServiceError(str(exc)) from exc

        text: Optional[str] = None
        if completion.choices:
            text = completion.choices[0].message.content

        usage = getattr(completion, "usage", None)
        return AIReply(
            content=text or EMPTY_REPLY,
            metadata={
                "model": self.config.AI_MODEL,
                "tokens_used": getattr(usage, "total_tokens", None),
            },
        )
