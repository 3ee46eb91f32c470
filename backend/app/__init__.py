"""
app

Package racine du service temps réel ShopFronts (présence, chat assisté, notifications).

Organisation :
- app.api      : routes FastAPI internes + liaison des événements Socket.IO
- app.core     : briques transverses (settings, errors, logs, sécurité, admission, registre/transport)
- app.db       : base SQLAlchemy + session async
- app.models   : modèles ORM (sessions de chat, messages, notifications)
- app.schemas  : schémas Pydantic (payloads WebSocket / HTTP)
- app.services : relais chat / notifications, stores, IA, RealtimeServer
"""
