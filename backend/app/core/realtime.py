from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Protocol, Set

import socketio

"""
Core Realtime (registre de présence + transport Socket.IO).

Rôle (fonctionnel) :
- ConnectionRegistry : associe chaque identité (user_id) à l’ensemble de ses connexions vivantes (sid).
  C’est la seule source de vérité pour “l’utilisateur X est-il en ligne ?” et “qui est en ligne ?”.
- GroupTransport : interface minimale d’envoi par groupe (rooms), pour que la logique de relais
  reste indépendante de la librairie socket (testable avec un faux transport).
- SocketIOTransport : implémentation au-dessus de socketio.AsyncServer.

Notes :
- Le registre n’a pas de verrou : il n’est modifié que depuis les handlers connect / disconnect,
  sérialisés par la boucle asyncio (un seul thread). Une version multi-thread devrait en ajouter un.
- Rien n’est persisté : la présence repart de zéro à chaque redémarrage du process.
"""

logger = logging.getLogger("realtime")


def user_group(user_id: str) -> str:
    """Room Socket.IO regroupant toutes les connexions d’une identité."""
    return f"user:{user_id}"


def conversation_group(conversation_id: str) -> str:
    """Room Socket.IO d’une conversation (session de chat)."""
    return f"chat:{conversation_id}"


class ConnectionRegistry:
    """
    Registre identité -> connexions vivantes.

    Invariant :
    - une identité est présente dans le mapping si et seulement si elle a au moins une connexion.
    """

    def __init__(self) -> None:
        self._connections: Dict[str, Set[str]] = {}

    def add_connection(self, user_id: str, connection_id: str) -> None:
        """Ajoute connection_id à l’identité (idempotent)."""
        self._connections.setdefault(user_id, set()).add(connection_id)

    def remove_connection(self, user_id: str, connection_id: str) -> None:
        """Retire connection_id ; supprime l’identité quand il ne reste plus aucune connexion."""
        conns = self._connections.get(user_id)
        if conns is None:
            return
        conns.discard(connection_id)
        if not conns:
            del self._connections[user_id]

    def is_online(self, user_id: str) -> bool:
        return bool(self._connections.get(user_id))

    def online_identities(self) -> Set[str]:
        return set(self._connections)

    def connections_for(self, user_id: str) -> Set[str]:
        """Copie de l’ensemble des connexions d’une identité (vide si hors ligne)."""
        return set(self._connections.get(user_id, ()))

    def count(self) -> int:
        """Nombre total de connexions vivantes."""
        return sum(len(conns) for conns in self._connections.values())


class GroupTransport(Protocol):
    """Primitives de groupes attendues par le relais (rooms Socket.IO ou faux transport)."""

    async def join(self, connection_id: str, group: str) -> None: ...

    async def leave(self, connection_id: str, group: str) -> None: ...

    async def emit_to_group(
        self, group: str, event: str, payload: Any, *, skip: Optional[str] = None
    ) -> None: ...

    async def emit_to_connection(self, connection_id: str, event: str, payload: Any) -> None: ...

    async def emit_all(self, event: str, payload: Any) -> None: ...


class SocketIOTransport:
    """Adaptateur GroupTransport au-dessus de socketio.AsyncServer."""

    def __init__(self, sio: socketio.AsyncServer) -> None:
        self.sio = sio

    async def join(self, connection_id: str, group: str) -> None:
        await self.sio.enter_room(connection_id, group)

    async def leave(self, connection_id: str, group: str) -> None:
        await self.sio.leave_room(connection_id, group)

    async def emit_to_group(
        self, group: str, event: str, payload: Any, *, skip: Optional[str] = None
    ) -> None:
        await self.sio.emit(event, payload, room=group, skip_sid=skip)

    async def emit_to_connection(self, connection_id: str, event: str, payload: Any) -> None:
        await self.sio.emit(event, payload, to=connection_id)

    async def emit_all(self, event: str, payload: Any) -> None:
        await self.sio.emit(event, payload)
