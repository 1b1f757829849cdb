"""
Tests de bout en bout sur base SQLite en mémoire : scans via HTTP puis état du vigile.
"""

import uuid

from patroltrack.models.client_service import ServiceCheckpoint
from patroltrack.models.guard import Guard


def scan_payload(checkpoint_id, client_uuid=None, badge_number=500):
    return {
        "client_uuid": client_uuid or str(uuid.uuid4()),
        "badge_number": badge_number,
        "guard_name": "Juan Pérez",
        "checkpoint_id": checkpoint_id,
        "scanned_at": "2026-03-01T22:15:00-03:00",
    }


def post_scan(api_client, checkpoint_id, **kwargs):
    response = api_client.post("/api/sync/scans", json={"scans": [scan_payload(checkpoint_id, **kwargs)]})
    assert response.status_code == 200
    return response.json()["results"][0]


def test_scenario_north(api_client, make_service):
    """North = [1, 2, 3] : 1 ok, 3 refusé, 2 ok, 1 refusé, 3 ok → ronde terminée."""
    make_service("North", [1, 2, 3])

    assert post_scan(api_client, 1)["status"] == "ACCEPTED"
    state = api_client.get("/api/v1/guards/500/state").json()
    assert state["service_name"] == "North"
    assert state["checkpoint_index"] == 1

    refused = post_scan(api_client, 3)
    assert refused["reason"] == "OUT_OF_SEQUENCE"
    assert refused["expected_checkpoint_id"] == 2

    assert post_scan(api_client, 2)["checkpoint_index"] == 2

    refused = post_scan(api_client, 1)
    assert refused["expected_checkpoint_id"] == 3

    done = post_scan(api_client, 3)
    assert done["status"] == "ACCEPTED"
    assert done["round_completed"] is True

    state = api_client.get("/api/v1/guards/500/state").json()
    assert state["checkpoint_index"] == 0
    assert state["round_active"] is False
    assert state["completion_percent"] == 0


def test_renvoi_du_meme_batch(api_client, make_service):
    make_service("North", [1, 2, 3])
    body = {"scans": [scan_payload(1), scan_payload(2)], "device_id": "tablet-01"}

    first = api_client.post("/api/sync/scans", json=body).json()
    second = api_client.post("/api/sync/scans", json=body).json()

    assert sorted(second["applied_uuids"]) == sorted(first["applied_uuids"])
    assert [r["status"] for r in second["results"]] == ["DUPLICATE", "DUPLICATE"]
    assert api_client.get("/api/v1/guards/500/state").json()["checkpoint_index"] == 2


def test_configuration_partagee_signalee(api_client, make_service, db_session):
    make_service("North", [1, 2])
    south = make_service("South", [3])
    db_session.add(ServiceCheckpoint(service_id=south.id, checkpoint_id=1))
    db_session.commit()

    refused = post_scan(api_client, 1)
    assert refused["reason"] == "SHARED_CHECKPOINT"
    assert refused["conflicting_services"] == ["North", "South"]

    conflicts = api_client.get("/api/v1/catalog/conflicts").json()
    assert conflicts["shared_checkpoints"][0]["checkpoint_id"] == 1


def test_etat_incoherent_n_arrete_pas_le_batch(api_client, db_session, make_service):
    """Ronde active sans service : ERROR pour ce scan seul, l'autre vigile est traité, puis remise à zéro."""
    make_service("North", [1, 2, 3])
    db_session.add(Guard(badge_number=500, name="Juan Pérez", last_checkpoint_index=1, round_active=True))
    db_session.commit()
    stuck = scan_payload(2, badge_number=500)
    other = scan_payload(1, badge_number=501)

    response = api_client.post("/api/sync/scans", json={"scans": [stuck, other]})

    assert response.status_code == 200
    data = response.json()
    assert data["results"][0]["status"] == "ERROR"
    assert data["results"][0]["reason"] == "INCONSISTENT_STATE"
    assert data["results"][1]["status"] == "ACCEPTED"
    assert data["applied_uuids"] == [other["client_uuid"]]
    assert data["total_failed"] == 1
    assert data["total_rejected"] == 0
    assert api_client.get("/api/v1/guards/501/state").json()["checkpoint_index"] == 1

    reset = api_client.post("/api/v1/guards/500/reset-round")
    assert reset.status_code == 200

    response = api_client.post("/api/sync/scans", json={"scans": [scan_payload(1)]})
    assert response.json()["results"][0]["status"] == "ACCEPTED"
