from sqlalchemy.orm import DeclarativeBase

"""
DB Base.

Rôle (fonctionnel) :
- Définit la classe Base SQLAlchemy commune aux modèles ORM (sessions de chat, messages, notifications).
- Sert de point d’ancrage pour la metadata (création des tables en dev / tests).

Note :
- Le schéma appartient à la couche de persistance de la marketplace : les modèles ici
  en sont le miroir, utilisé par les stores du service temps réel.
"""


class Base(DeclarativeBase):
    """Classe racine ORM (SQLAlchemy Declarative)."""
    pass
