"""
Tests d'intégration API pour l'état des vigiles et le diagnostic du catalogue.
Endpoints : GET /api/v1/guards/{badge}/state, GET /api/v1/guards,
            POST /api/v1/guards/{badge}/reset-round, GET /api/v1/catalog/conflicts
"""

import uuid
from datetime import datetime, timezone
from unittest.mock import patch

from patroltrack.config import settings
from patroltrack.schemas.catalog import CatalogConflicts, SharedCheckpoint
from patroltrack.schemas.guard import GuardState, GuardSummary


def make_state(**kwargs) -> GuardState:
    return GuardState(
        badge_number=kwargs.get("badge_number", 500),
        name=kwargs.get("name", "Juan Pérez"),
        service_name=kwargs.get("service_name", "North"),
        checkpoint_index=kwargs.get("checkpoint_index", 1),
        round_active=kwargs.get("round_active", True),
        total_checkpoints=kwargs.get("total_checkpoints", 3),
        completion_percent=kwargs.get("completion_percent", 33),
        expected_checkpoint_id=kwargs.get("expected_checkpoint_id", 2),
        last_scan_at=kwargs.get("last_scan_at", datetime(2026, 3, 2, 1, 15, tzinfo=timezone.utc)),
    )


# ============================================================
# GET /api/v1/guards/{badge}/state
# ============================================================

def test_etat_vigile(client):
    with patch("patroltrack.routers.guards.guard_service.get_guard_state") as mock:
        mock.return_value = make_state()
        response = client.get("/api/v1/guards/500/state")

    assert response.status_code == 200
    data = response.json()
    assert data["service_name"] == "North"
    assert data["completion_percent"] == 33
    assert data["expected_checkpoint_id"] == 2
    mock.assert_called_once()
    assert mock.call_args[0][1] == 500


def test_etat_vigile_introuvable(client):
    with patch("patroltrack.routers.guards.guard_service.get_guard_state") as mock:
        mock.side_effect = ValueError("Vigile 999 introuvable.")
        response = client.get("/api/v1/guards/999/state")

    assert response.status_code == 404
    assert "introuvable" in response.json()["detail"]


def test_etat_matricule_non_numerique(client):
    response = client.get("/api/v1/guards/abc/state")
    assert response.status_code == 422


# ============================================================
# Vue opérateur
# ============================================================

def test_liste_vigiles(client):
    summary = GuardSummary(
        id=uuid.uuid4(), badge_number=500, name="Juan Pérez",
        service_name="North", checkpoint_index=2, round_active=True,
    )
    with patch("patroltrack.routers.guards.guard_service.list_guards", return_value=[summary]):
        response = client.get("/api/v1/guards")

    assert response.status_code == 200
    assert response.json()[0]["badge_number"] == 500


def test_liste_vigiles_jeton_admin_requis(client, monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_CAPABILITY_TOKEN", "admin-secret")
    response = client.get("/api/v1/guards")
    assert response.status_code == 401


def test_etat_vigile_sans_jeton_admin(client, monkeypatch):
    """La consultation de l'état reste ouverte à l'interface du vigile."""
    monkeypatch.setattr(settings, "ADMIN_CAPABILITY_TOKEN", "admin-secret")
    with patch("patroltrack.routers.guards.guard_service.get_guard_state", return_value=make_state()):
        response = client.get("/api/v1/guards/500/state")
    assert response.status_code == 200


def test_reset_round(client, monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_CAPABILITY_TOKEN", "admin-secret")
    with patch("patroltrack.routers.guards.guard_service.reset_round") as mock:
        mock.return_value = make_state(checkpoint_index=0, round_active=False, completion_percent=0)
        response = client.post(
            "/api/v1/guards/500/reset-round", headers={"X-Capability-Token": "admin-secret"}
        )

    assert response.status_code == 200
    assert response.json()["checkpoint_index"] == 0
    assert response.json()["round_active"] is False


def test_reset_round_introuvable(client):
    with patch("patroltrack.routers.guards.guard_service.reset_round") as mock:
        mock.side_effect = ValueError("Vigile 999 introuvable.")
        response = client.post("/api/v1/guards/999/reset-round")
    assert response.status_code == 404


# ============================================================
# GET /api/v1/catalog/conflicts
# ============================================================

def test_conflits_catalogue(client):
    conflicts = CatalogConflicts(
        shared_checkpoints=[SharedCheckpoint(checkpoint_id=2, checkpoint_name="Portón", services=["North", "South"])],
        empty_services=["Vacío"],
    )
    with patch("patroltrack.routers.catalog.catalog_service.find_catalog_conflicts", return_value=conflicts):
        response = client.get("/api/v1/catalog/conflicts")

    assert response.status_code == 200
    data = response.json()
    assert data["shared_checkpoints"][0]["services"] == ["North", "South"]
    assert data["empty_services"] == ["Vacío"]


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
