from __future__ import annotations

from fastapi import APIRouter, Depends

from app.api.deps import InternalAuthDep, get_realtime

"""
API Présence (interne).

Rôle (fonctionnel) :
- Permet aux autres services (commandes, validation vendeurs…) de savoir
  qui est connecté avant de choisir un canal (temps réel vs email).
"""

router = APIRouter(prefix="/realtime", tags=["realtime"], dependencies=[InternalAuthDep])


@router.get("/online")
async def list_online_users(realtime=Depends(get_realtime)):
    users = realtime.get_online_users()
    return {"users": users, "count": len(users)}


@router.get("/online/{user_id}")
async def user_online(user_id: str, realtime=Depends(get_realtime)):
    return {"user_id": user_id, "online": realtime.is_user_online(user_id)}
