"""
Résolution du service client propriétaire d'un checkpoint.

Un checkpoint doit appartenir à exactement un service. Zéro ou plusieurs
propriétaires est une erreur de configuration, jamais arbitrée automatiquement.
Lecture seule, sans effet de bord.
"""

import logging
from typing import Union

from sqlalchemy import select
from sqlalchemy.orm import Session

from patroltrack.models.client_service import ClientService, ServiceCheckpoint
from patroltrack.services.outcomes import Rejected, RejectionReason, ResolvedService

logger = logging.getLogger(__name__)


def resolve_service(db: Session, checkpoint_id: int) -> Union[ResolvedService, Rejected]:
    """Retourne le service propriétaire du checkpoint, ou un refus de configuration."""
    owners = db.execute(
        select(ClientService.id, ClientService.name)
        .join(ServiceCheckpoint, ServiceCheckpoint.service_id == ClientService.id)
        .where(ServiceCheckpoint.checkpoint_id == checkpoint_id)
        .order_by(ClientService.name)
    ).all()

    if not owners:
        logger.warning("Checkpoint %s rattaché à aucun service", checkpoint_id)
        return Rejected(
            reason=RejectionReason.NO_SERVICE_FOR_CHECKPOINT,
            message=f"Le checkpoint {checkpoint_id} n'est rattaché à aucun service client.",
            checkpoint_id=checkpoint_id,
        )

    if len(owners) > 1:
        names = tuple(name for _, name in owners)
        logger.error("Checkpoint %s partagé entre plusieurs services : %s", checkpoint_id, ", ".join(names))
        return Rejected(
            reason=RejectionReason.SHARED_CHECKPOINT,
            message=(
                f"Erreur de configuration : le checkpoint {checkpoint_id} est rattaché "
                f"à plusieurs services ({', '.join(names)})."
            ),
            checkpoint_id=checkpoint_id,
            conflicting_services=names,
        )

    service_id, service_name = owners[0]
    return ResolvedService(service_id=service_id, service_name=service_name)
