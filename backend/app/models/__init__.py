"""
app.models

Package ORM (SQLAlchemy) : miroir des tables utilisées par le service temps réel.

- Conversation (chat_sessions), ChatMessage (chat_messages), Notification (notifications).
"""

from app.models.conversation import Conversation
from app.models.chat_message import ChatMessage
from app.models.notification import Notification

__all__ = ["Conversation", "ChatMessage", "Notification"]
