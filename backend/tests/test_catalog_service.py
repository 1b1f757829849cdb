"""
Tests de lecture du catalogue : parcours ordonné et diagnostic de configuration.
"""

from patroltrack.models.client_service import ClientService, ServiceCheckpoint
from patroltrack.services.catalog_service import find_catalog_conflicts, get_service_sequence


def test_parcours_trie_par_identifiant(db_session, make_service):
    service = make_service("North", [30, 10, 20])
    assert get_service_sequence(db_session, service.id) == [10, 20, 30]


def test_parcours_service_vide(db_session):
    service = ClientService(name="Vacío")
    db_session.add(service)
    db_session.commit()
    assert get_service_sequence(db_session, service.id) == []


def test_aucun_conflit(db_session, make_service):
    make_service("North", [1, 2])
    make_service("South", [3])

    conflicts = find_catalog_conflicts(db_session)

    assert conflicts.shared_checkpoints == []
    assert conflicts.empty_services == []


def test_conflits_detectes(db_session, make_service):
    make_service("North", [1, 2])
    south = make_service("South", [3])
    db_session.add(ServiceCheckpoint(service_id=south.id, checkpoint_id=2))
    db_session.add(ClientService(name="Vacío"))
    db_session.commit()

    conflicts = find_catalog_conflicts(db_session)

    assert len(conflicts.shared_checkpoints) == 1
    shared = conflicts.shared_checkpoints[0]
    assert shared.checkpoint_id == 2
    assert shared.checkpoint_name == "Punto 2"
    assert shared.services == ["North", "South"]
    assert conflicts.empty_services == ["Vacío"]
