"""
Configuration partagée pour tous les tests.

- client    : API avec la dépendance get_db remplacée par un MagicMock (aucune BDD)
- db_session: session SQLAlchemy sur une base SQLite en mémoire, schéma complet
- api_client: API branchée sur db_session (tests de bout en bout)
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

import uuid  # noqa: E402
from datetime import datetime, timedelta, timezone  # noqa: E402
from unittest.mock import MagicMock  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

import patroltrack.models  # noqa: E402,F401
from patroltrack.database import Base, build_engine, get_db  # noqa: E402
from patroltrack.main import app  # noqa: E402
from patroltrack.models.checkpoint import Checkpoint  # noqa: E402
from patroltrack.models.client_service import ClientService, ServiceCheckpoint  # noqa: E402
from patroltrack.schemas.sync import ScanItem  # noqa: E402

# Heure locale d'un appareil en Argentine (UTC-3)
SCAN_TIME = datetime(2026, 3, 1, 22, 15, tzinfo=timezone(timedelta(hours=-3)))


def make_scan(checkpoint_id, badge_number=500, client_uuid=None, guard_name="Juan Pérez", **kwargs) -> ScanItem:
    return ScanItem(
        client_uuid=client_uuid or uuid.uuid4(),
        badge_number=badge_number,
        guard_name=guard_name,
        checkpoint_id=checkpoint_id,
        scanned_at=kwargs.pop("scanned_at", SCAN_TIME),
        **kwargs,
    )


@pytest.fixture
def client():
    """Client HTTP de test avec la BDD mockée."""
    mock_db = MagicMock()
    app.dependency_overrides[get_db] = lambda: mock_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def db_session():
    """Session sur une base SQLite en mémoire, détruite après le test."""
    engine = build_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(bind=engine, autoflush=False)
    db = TestingSession()
    try:
        yield db
    finally:
        db.close()
        engine.dispose()


@pytest.fixture
def api_client(db_session):
    """Client HTTP branché sur la base SQLite en mémoire."""
    app.dependency_overrides[get_db] = lambda: db_session
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def make_service(db_session):
    """Fabrique : crée un service client et rattache les checkpoints donnés (créés au besoin)."""

    def _make(name, checkpoint_ids):
        service = ClientService(name=name)
        db_session.add(service)
        db_session.flush()
        for checkpoint_id in checkpoint_ids:
            if db_session.get(Checkpoint, checkpoint_id) is None:
                db_session.add(Checkpoint(id=checkpoint_id, name=f"Punto {checkpoint_id}"))
                db_session.flush()
            db_session.add(ServiceCheckpoint(service_id=service.id, checkpoint_id=checkpoint_id))
        db_session.commit()
        return service

    return _make
