from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

"""
Schemas Notifications (Pydantic).

Rôle (fonctionnel) :
- NotificationPush : contrat HTTP de la route interne POST /notifications
  (push vers une liste d’utilisateurs ou broadcast global).
- NotificationOut : représentation émise dans notification:new.
"""


class NotificationPush(BaseModel):
    """Payload de push (route interne)."""
    user_ids: List[str] = Field(default_factory=list)
    broadcast: bool = False
    type: str = Field(default="SYSTEM", max_length=50)
    title: str = Field(min_length=1, max_length=255)
    message: str = Field(min_length=1, max_length=5000)
    data: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(extra="forbid")

    @model_validator(mode="after")
    def _check_targets(self) -> "NotificationPush":
        # Au moins une cible : liste d’utilisateurs ou broadcast
        if not self.broadcast and not self.user_ids:
            raise ValueError("user_ids is required unless broadcast is true")
        return self


class NotificationOut(BaseModel):
    """Notification émise en temps réel (et renvoyée par l’API)."""
    id: uuid.UUID
    user_id: str
    type: str
    title: str
    message: str
    data: Optional[Dict[str, Any]] = None
    read: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


def dump_notification(notification: Any) -> Dict[str, Any]:
    return NotificationOut.model_validate(notification).model_dump(mode="json")
