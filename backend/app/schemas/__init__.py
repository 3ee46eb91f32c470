"""
app.schemas

Contrats Pydantic (payloads WebSocket + HTTP), distincts des modèles ORM (app.models).
"""
