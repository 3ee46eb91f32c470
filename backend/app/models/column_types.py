from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB

"""
Types de colonnes partagés.

- JSONType : JSONB sur PostgreSQL (prod), JSON générique ailleurs (SQLite en tests).
"""

JSONType = JSON().with_variant(JSONB(), "postgresql")
