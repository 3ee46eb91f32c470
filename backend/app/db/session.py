from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from app.core.settings import settings
from app.db.base import Base

"""
DB Session.

Rôle (fonctionnel) :
- Initialise l’engine SQLAlchemy en mode async (runtime FastAPI + handlers Socket.IO).
- Fournit une factory de sessions AsyncSession (AsyncSessionLocal), injectée dans les stores.
- Expose `get_db()` comme dépendance FastAPI (Depends(get_db)).

Notes :
- expire_on_commit=False : permet de sérialiser les objets après commit sans rechargement.
- echo=False : pas de log SQL brut (on préfère les logs applicatifs en JSON).
"""

engine = create_async_engine(settings.DATABASE_URL, echo=False)

AsyncSessionLocal = sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db():
    """Dépendance FastAPI : yield une session DB et garantit sa fermeture."""
    async with AsyncSessionLocal() as session:
        yield session


async def create_all(bind: AsyncEngine = engine) -> None:
    """Crée les tables manquantes (dev / tests uniquement)."""
    import app.models  # noqa: F401  (enregistre les modèles dans la metadata)

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
