"""
Tests du résolveur de service propriétaire d'un checkpoint.
"""

from patroltrack.models.checkpoint import Checkpoint
from patroltrack.models.client_service import ServiceCheckpoint
from patroltrack.services.assignment_resolver import resolve_service
from patroltrack.services.outcomes import Rejected, RejectionReason, ResolvedService


def test_un_seul_service(db_session, make_service):
    north = make_service("North", [1, 2, 3])

    result = resolve_service(db_session, 2)

    assert result == ResolvedService(service_id=north.id, service_name="North")


def test_aucun_service(db_session):
    db_session.add(Checkpoint(id=5, name="Portón"))
    db_session.commit()

    result = resolve_service(db_session, 5)

    assert isinstance(result, Rejected)
    assert result.reason == RejectionReason.NO_SERVICE_FOR_CHECKPOINT
    assert result.checkpoint_id == 5


def test_checkpoint_inconnu(db_session):
    result = resolve_service(db_session, 404)
    assert result.reason == RejectionReason.NO_SERVICE_FOR_CHECKPOINT


def test_checkpoint_partage_nomme_tous_les_services(db_session, make_service):
    make_service("North", [1, 2])
    south = make_service("South", [3])
    db_session.add(ServiceCheckpoint(service_id=south.id, checkpoint_id=2))
    db_session.commit()

    result = resolve_service(db_session, 2)

    assert isinstance(result, Rejected)
    assert result.reason == RejectionReason.SHARED_CHECKPOINT
    assert result.conflicting_services == ("North", "South")
    assert "North" in result.message and "South" in result.message


def test_lecture_seule(db_session, make_service):
    make_service("North", [1])
    resolve_service(db_session, 1)
    assert not db_session.new
    assert not db_session.dirty
