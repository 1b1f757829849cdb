"""
Configuration de la connexion à la base de données.
Un moteur unique par processus, ouvert au démarrage et libéré à l'arrêt (lifespan).
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from patroltrack.config import settings


def build_engine(url: str):
    """Crée un moteur SQLAlchemy ; SQLite doit accepter plusieurs threads (workers FastAPI)."""
    if not url.startswith("sqlite"):
        return create_engine(url, pool_pre_ping=True)
    kwargs = {"connect_args": {"check_same_thread": False}}
    if url in ("sqlite://", "sqlite:///:memory:"):
        # Base en mémoire : une seule connexion partagée, sinon chaque connexion voit une base vide
        kwargs["poolclass"] = StaticPool
    return create_engine(url, **kwargs)


engine = build_engine(settings.DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def init_db() -> None:
    """Crée les tables manquantes (développement / démonstration)."""
    import patroltrack.models  # noqa: F401 (enregistre les modèles dans Base.metadata)

    Base.metadata.create_all(bind=engine)


def dispose_engine() -> None:
    """Ferme toutes les connexions du pool (appelé à l'arrêt de l'API)."""
    engine.dispose()


def get_db():
    """Dépendance FastAPI : fournit une session BDD et la ferme après usage."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
