from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from .request_id import get_connection_id, get_request_id

"""
Core Logging.

Rôle (fonctionnel) :
- Configure un logging JSON uniforme pour toute l’application (API + Socket.IO + uvicorn).
- Injecte request_id et sid (connexion WebSocket) dans chaque log pour corréler
  les événements d’une même requête ou d’un même client.
- Supporte des “extras” structurés (user_id, event, conversation_id, duration_ms, etc.).

Notes :
- 1 event = 1 ligne JSON, adapté aux agrégateurs de logs.
- Le root logger est configuré et uvicorn est aligné sur le même handler.
"""


class RequestIdFilter(logging.Filter):
    """Ajoute request_id et sid au LogRecord (valeur '-' si absent)."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id() or "-"
        if not hasattr(record, "sid"):
            record.sid = get_connection_id() or "-"
        return True


class JsonFormatter(logging.Formatter):
    """Formateur JSON pour logs structurés (1 event = 1 ligne JSON)."""

    EXTRA_KEYS = (
        "method",
        "path",
        "status_code",
        "duration_ms",
        "client_ip",
        "sid",
        "user_id",
        "event",
        "conversation_id",
        "notification_id",
        "online_users",
    )

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "request_id": getattr(record, "request_id", "-"),
            "msg": record.getMessage(),
        }

        # Extras standardisés (si fournis via logger.info(..., extra={...}))
        for key in self.EXTRA_KEYS:
            if hasattr(record, key):
                payload[key] = getattr(record, key)

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO") -> None:
    """
    Initialise le logging global (root) en JSON et aligne uvicorn + engineio sur la même configuration.

    - Nettoie les handlers existants pour éviter les doublons (notamment avec --reload).
    - Configure un StreamHandler stdout + JsonFormatter + RequestIdFilter.
    """
    lvl = level.upper()

    root = logging.getLogger()
    root.setLevel(lvl)

    if root.handlers:
        root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())
    handler.addFilter(RequestIdFilter())
    root.addHandler(handler)

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logger = logging.getLogger(name)
        logger.handlers = root.handlers
        logger.setLevel(lvl)

    # Socket.IO / Engine.IO : très bavards en DEBUG, on les garde au niveau WARNING
    for name in ("socketio", "engineio"):
        logging.getLogger(name).setLevel(max(logging.WARNING, logging.getLevelName(lvl)))
