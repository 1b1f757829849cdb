"""
Lecture du catalogue : parcours ordonné d'un service et diagnostic de configuration.
L'ordre d'un parcours est l'ordre ascendant des identifiants de checkpoint.
"""

import uuid
from typing import List

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from patroltrack.models.checkpoint import Checkpoint
from patroltrack.models.client_service import ClientService, ServiceCheckpoint
from patroltrack.schemas.catalog import CatalogConflicts, SharedCheckpoint


def get_service_sequence(db: Session, service_id: uuid.UUID) -> List[int]:
    """Identifiants des checkpoints du service, dans l'ordre de passage."""
    return list(
        db.execute(
            select(ServiceCheckpoint.checkpoint_id)
            .where(ServiceCheckpoint.service_id == service_id)
            .order_by(ServiceCheckpoint.checkpoint_id)
        ).scalars().all()
    )


def find_catalog_conflicts(db: Session) -> CatalogConflicts:
    """
    Liste les erreurs de configuration qui bloqueront des scans :
    - checkpoints rattachés à plusieurs services (SHARED_CHECKPOINT)
    - services sans aucun checkpoint (EMPTY_SERVICE_SEQUENCE)
    """
    shared_ids = (
        select(ServiceCheckpoint.checkpoint_id)
        .group_by(ServiceCheckpoint.checkpoint_id)
        .having(func.count(ServiceCheckpoint.service_id) > 1)
    )
    rows = db.execute(
        select(Checkpoint.id, Checkpoint.name, ClientService.name)
        .join(ServiceCheckpoint, ServiceCheckpoint.checkpoint_id == Checkpoint.id)
        .join(ClientService, ClientService.id == ServiceCheckpoint.service_id)
        .where(Checkpoint.id.in_(shared_ids))
        .order_by(Checkpoint.id, ClientService.name)
    ).all()

    shared: dict = {}
    for checkpoint_id, checkpoint_name, service_name in rows:
        entry = shared.setdefault(
            checkpoint_id,
            SharedCheckpoint(checkpoint_id=checkpoint_id, checkpoint_name=checkpoint_name, services=[]),
        )
        entry.services.append(service_name)

    empty_services = db.execute(
        select(ClientService.name)
        .outerjoin(ServiceCheckpoint, ServiceCheckpoint.service_id == ClientService.id)
        .where(ServiceCheckpoint.service_id.is_(None))
        .order_by(ClientService.name)
    ).scalars().all()

    return CatalogConflicts(shared_checkpoints=list(shared.values()), empty_services=list(empty_services))
