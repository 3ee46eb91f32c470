from __future__ import annotations

import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator

"""
Core Request ID.

Rôle (fonctionnel) :
- Gère un identifiant de corrélation (request_id) stocké dans un ContextVar.
- Côté HTTP : 1 request_id par requête (header X-Request-Id ou UUID généré).
- Côté WebSocket : 1 request_id par événement reçu, + l’identifiant de la connexion (sid)
  pour relier tous les logs d’un même client.

Notes :
- ContextVar est adapté aux contextes async : chaque tâche garde ses propres valeurs,
  même quand plusieurs connexions s’entrelacent sur la boucle d’événements.
"""

_request_id: ContextVar[str | None] = ContextVar("request_id", default=None)
_connection_id: ContextVar[str | None] = ContextVar("connection_id", default=None)


def set_request_id(rid: str | None) -> None:
    """Force la valeur du request_id pour le contexte courant."""
    _request_id.set(rid)


def get_request_id() -> str | None:
    """Retourne le request_id du contexte courant (ou None)."""
    return _request_id.get()


def get_connection_id() -> str | None:
    """Retourne le sid de la connexion WebSocket en cours de traitement (ou None)."""
    return _connection_id.get()


def ensure_request_id(incoming: str | None = None) -> str:
    """
    Garantit un request_id pour le contexte courant.

    - Si un request_id entrant est fourni, il est nettoyé et réutilisé.
    - Sinon, on génère un UUID.
    """
    rid = (incoming or "").strip() or str(uuid.uuid4())
    set_request_id(rid)
    return rid


@contextmanager
def event_context(sid: str | None) -> Iterator[str]:
    """
    Ouvre un contexte de corrélation pour un événement WebSocket.

    Génère un request_id neuf, positionne le sid, puis restaure les valeurs
    précédentes en sortie.
    """
    rid_token = _request_id.set(str(uuid.uuid4()))
    sid_token = _connection_id.set(sid)
    try:
        yield _request_id.get() or ""
    finally:
        _connection_id.reset(sid_token)
        _request_id.reset(rid_token)
