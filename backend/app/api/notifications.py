from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from app.api.deps import InternalAuthDep, get_notification_service, get_realtime
from app.schemas.notifications import NotificationPush

"""
API Notifications (interne).

Rôle (fonctionnel) :
- POST /notifications : crée une notification par destinataire puis la pousse en temps réel
  (notification:new), ou diffuse un message à toutes les connexions (notification:broadcast).
- Réponse : nombre de destinataires joints en direct (les autres liront la notification en base).
"""

router = APIRouter(prefix="/notifications", tags=["notifications"], dependencies=[InternalAuthDep])
log = logging.getLogger("app.notifications")


@router.post("", status_code=202)
async def push_notification(
    payload: NotificationPush,
    realtime=Depends(get_realtime),
    service=Depends(get_notification_service),
):
    if payload.broadcast:
        await realtime.notifications.broadcast_all(
            {
                "type": payload.type,
                "title": payload.title,
                "message": payload.message,
                "data": payload.data or {},
                "created_at": datetime.now(timezone.utc).isoformat(),
            }
        )
        log.info("notification_broadcast", extra={"online_users": len(realtime.get_online_users())})
        return {"broadcast": True, "created": 0, "delivered": None}

    delivered = 0
    created = []
    for user_id in dict.fromkeys(payload.user_ids):
        result = await service.create_and_push(
            user_id,
            type=payload.type,
            title=payload.title,
            message=payload.message,
            data=payload.data,
        )
        created.append(result["notification"]["id"])
        delivered += int(result["delivered"])

    return {"broadcast": False, "created": len(created), "delivered": delivered, "ids": created}
