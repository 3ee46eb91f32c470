from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from jose import JWTError

from app.core.errors import AdmissionError
from app.core.security import bearer_token, decode_access_token

"""
Core Admission (filtre d’entrée WebSocket).

Rôle (fonctionnel) :
- Valide le credential présenté au handshake avant toute logique temps réel.
- Sources du token (dans cet ordre) :
  - payload d’auth Socket.IO : {"token": "<jwt>"}
  - header Authorization : "Bearer <jwt>" (préfixe retiré)
- En cas de succès : retourne l’identité (user_id, role, email) attachée à la connexion.
- En cas d’échec : AdmissionError, la connexion n’atteint jamais le registre.

Notes :
- Aucun accès DB ici : la vérification repose uniquement sur la signature + exp du JWT.
"""

logger = logging.getLogger("realtime.admission")


@dataclass(frozen=True)
class Identity:
    """Principal authentifié attaché à une connexion (immuable pendant sa durée de vie)."""
    user_id: str
    role: str | None = None
    email: str | None = None


def extract_credential(auth: Any, environ: Mapping[str, Any] | None = None) -> Optional[str]:
    """Récupère le token depuis le payload d’auth ou le header Authorization."""
    if isinstance(auth, Mapping):
        token = auth.get("token")
        if isinstance(token, str) and token.strip():
            return token.strip()

    header = (environ or {}).get("HTTP_AUTHORIZATION")
    if isinstance(header, str) and header.strip():
        return bearer_token(header) or header.strip()

    return None


def admit(auth: Any, environ: Mapping[str, Any] | None = None, *, secret: str | None = None) -> Identity:
    """
    Filtre d’admission.

    - Pas de token : AdmissionError(AUTH_REQUIRED)
    - Token malformé / signature invalide / expiré : AdmissionError(INVALID_TOKEN)
    """
    token = extract_credential(auth, environ)
    if not token:
        raise AdmissionError("AUTH_REQUIRED", "Authentication required")

    try:
        claims = decode_access_token(token, secret=secret)
    except JWTError as exc:
        logger.warning("WS admission refused: %s", exc)
        raise AdmissionError("INVALID_TOKEN", "Invalid token") from exc

    user_id = claims.get("userId")
    if user_id is None or str(user_id) == "":
        raise AdmissionError("INVALID_TOKEN", "Invalid token")

    identity = Identity(user_id=str(user_id), role=claims.get("role"), email=claims.get("email"))
    logger.debug("WS authenticated", extra={"user_id": identity.user_id})
    return identity
