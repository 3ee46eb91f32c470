"""
app.db

Package base de données : connexion, session et helpers d’accès DB.

Contenu :
- base : classe Declarative commune aux modèles.
- session : engine async, factory de sessions (AsyncSessionLocal), dépendance get_db, create_all (dev).
"""
