from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from fastapi import Request
from jose import jwt

from app.core.settings import settings
from app.core.errors import AppHTTPException

"""
Core Security.

Rôle (fonctionnel) :
- API key : protège les routes HTTP internes (push de notifications, présence)
  consommées par les autres services de la marketplace (commandes, validation vendeurs…).
  Deux formats de headers :
  - Authorization: Bearer <token>
  - X-API-Key: <token>
- JWT : émission / vérification des access tokens utilisés à l’admission WebSocket.
  Claims : userId, email, role, iat, exp.

Comportement API key :
- Si API_KEY est configurée : la clé est requise.
- Si API_KEY est vide et ENV != prod : bypass (pratique en dev / local).
- Si API_KEY est vide et ENV = prod : erreur 500 (configuration serveur invalide).
"""


def bearer_token(value: Optional[str]) -> Optional[str]:
    """Extrait le token d’une valeur 'Bearer <token>' (None si format inattendu)."""
    if not value:
        return None
    parts = value.split()
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1].strip() or None
    return None


def _extract_token(request: Request) -> Optional[str]:
    """Extrait un token depuis Authorization Bearer ou X-API-Key (si présent)."""
    token = bearer_token(request.headers.get("authorization"))
    if token:
        return token

    x_api_key = request.headers.get("x-api-key")
    if x_api_key:
        return x_api_key.strip()

    return None


async def require_api_key(request: Request) -> None:
    """
    Dépendance FastAPI : vérifie la présence/validité d’une API key.

    Ne retourne rien : lève AppHTTPException si non autorisé.
    """
    expected = getattr(settings, "API_KEY", "") or ""

    if not expected:
        if str(getattr(settings, "ENV", "dev")).lower() == "prod":
            raise AppHTTPException(
                500,
                "SERVER_MISCONFIG",
                "API_KEY manquante côté serveur",
            )
        return

    token = _extract_token(request)
    if not token or not secrets.compare_digest(token, expected):
        raise AppHTTPException(
            401,
            "UNAUTHORIZED",
            "Clé API invalide ou manquante",
        )


def issue_access_token(
    user_id: str,
    *,
    email: str,
    role: str,
    expires_in: timedelta | None = None,
    secret: str | None = None,
) -> str:
    """Signe un access token au format de la marketplace (HS256 par défaut)."""
    now = datetime.now(timezone.utc)
    ttl = expires_in if expires_in is not None else timedelta(minutes=settings.JWT_EXPIRE_MINUTES)
    claims: Dict[str, Any] = {
        "userId": user_id,
        "email": email,
        "role": role,
        "iat": now,
        "exp": now + ttl,
    }
    return jwt.encode(claims, secret or settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str, *, secret: str | None = None) -> Dict[str, Any]:
    """
    Vérifie signature + expiration et retourne les claims.

    Lève jose.JWTError (ExpiredSignatureError inclus) si le token est invalide.
    """
    return jwt.decode(token, secret or settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
