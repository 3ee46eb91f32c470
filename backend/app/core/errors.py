from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import HTTPException

"""
Core Errors.

Rôle (fonctionnel) :
- Standardise le format des erreurs renvoyées par l’API HTTP (payload homogène).
- Standardise le format des événements d’erreur WebSocket (chat:error, notification:error).
- Fournit les exceptions applicatives :
  - AppHTTPException : erreurs métier côté HTTP,
  - AdmissionError : refus d’une connexion WebSocket (token absent / invalide),
  - RelayError : erreur métier d’un handler WebSocket (session introuvable, payload invalide…).

Convention de réponse HTTP (exemple) :
{
  "error": {
    "code": "UNAUTHORIZED",
    "message": "Clé API invalide ou manquante",
    "status": 401,
    "request_id": "...",
    "timestamp": "..."
  }
}

Convention d’événement WebSocket (exemple) :
{"code": "SESSION_NOT_FOUND", "message": "Session not found", "request_id": "...", "timestamp": "..."}
"""


def now_iso() -> str:
    """Timestamp ISO-8601 en UTC (utilisé dans toutes les erreurs)."""
    return datetime.now(timezone.utc).isoformat()


def error_payload(
    *,
    code: str,
    message: str,
    status: int,
    request_id: str,
    details: Optional[Any] = None,
) -> Dict[str, Any]:
    """Construit un payload d’erreur homogène pour l’API."""
    payload: Dict[str, Any] = {
        "error": {
            "code": code,
            "message": message,
            "status": status,
            "request_id": request_id,
            "timestamp": now_iso(),
        }
    }
    if details is not None:
        payload["error"]["details"] = details
    return payload


def event_error_payload(*, code: str, message: str, request_id: str | None) -> Dict[str, Any]:
    """Payload d’un événement d’erreur WebSocket (envoyé au seul demandeur)."""
    return {
        "code": code,
        "message": message,
        "request_id": request_id or "-",
        "timestamp": now_iso(),
    }


class AppHTTPException(HTTPException):
    """
    Exception applicative standardisée.

    Exemple :
        raise AppHTTPException(401, "UNAUTHORIZED", "Clé API invalide ou manquante")
    """

    def __init__(self, status_code: int, code: str, message: str, details: Any = None):
        super().__init__(status_code=status_code, detail={"code": code, "message": message, "details": details})


class AdmissionError(Exception):
    """Connexion WebSocket refusée avant toute inscription au registre."""

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


class RelayError(Exception):
    """Erreur métier d’un handler WebSocket, rapportée au seul demandeur."""

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message
