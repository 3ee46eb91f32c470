"""
app.core

Package “cœur” : tout ce qui est transversal (cross-cutting concerns) et ne dépend pas
d’un domaine métier (chat, notifications).

- settings
  Configuration centralisée (variables d’environnement : JWT, IA, DB, CORS, WebSocket…).

- errors
  Format d’erreur uniforme (HTTP + événements WebSocket) et exceptions applicatives
  (AppHTTPException, AdmissionError, RelayError).

- logging
  Logs JSON 1 ligne / event, enrichis du request_id et du sid de la connexion.

- request_id
  Identifiants de corrélation (par requête HTTP, par événement WebSocket).

- security
  API key des routes internes + émission / vérification des access tokens JWT.

- admission
  Filtre d’entrée des connexions WebSocket (token -> identité).

- realtime
  Registre de présence (identité -> connexions) et transport par rooms (Socket.IO).
"""
