"""
app.services

Package “services” : logique applicative indépendante du transport (Socket.IO / HTTP).

Contenu :
- conversation_service / notification_service : collaborateurs de persistance (SQLAlchemy async).
- ai_service : réponses de l’assistant (OpenAI).
- chat_relay / notification_relay : traduction des événements entrants en persistance + diffusions.
- realtime_server : objet process-wide (cycle de vie des connexions, frontière des handlers, API d’envoi).

Principe :
- app.api = transport (routes HTTP, liaison des événements Socket.IO)
- app.services = orchestration (réutilisable, testable avec de faux transports)
- app.models / app.schemas = persistance et contrats
"""
