from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_realtime
from app.core.settings import settings
from app.db.session import get_db

"""
API System Status.

Rôle (fonctionnel) :
- Vérifie la disponibilité de la base (requête simple).
- Expose l’état du temps réel : connexions vivantes + identités en ligne.
- Indique si l’assistant IA est activé.
"""

router = APIRouter(prefix="/system", tags=["system"])


@router.get("/status")
async def system_status(db: AsyncSession = Depends(get_db), realtime=Depends(get_realtime)):
    # 1) DB check (requête minimale)
    db_ok = True
    try:
        await db.execute(text("SELECT 1"))
    except Exception:
        db_ok = False

    return {
        "ok": db_ok,
        "db": {"ok": db_ok},
        "realtime": {
            "enabled": settings.ENABLE_WEBSOCKET,
            "connections": realtime.registry.count(),
            "online_users": len(realtime.get_online_users()),
        },
        "ai": {"enabled": realtime.chat.ai.enabled, "model": settings.AI_MODEL},
        "ts": datetime.now(timezone.utc).isoformat(),
    }
