"""
Machine à états de la ronde : valide l'ordre des scans d'un vigile.

États :
- AWAITING_START : index = 0 et ronde inactive
- IN_ROUND       : ronde active, 1 <= index < total
- la fin de ronde est transitoire : retour immédiat à AWAITING_START

Le service du vigile est (re)fixé au premier scan de chaque ronde, d'après le
propriétaire du checkpoint scanné, puis reste figé jusqu'à la fin de la ronde.
Le parcours est l'ordre ascendant des identifiants de checkpoint du service.

La lecture de la progression, la décision et l'écriture doivent se faire dans
la même transaction, sur une ligne Guard verrouillée (voir ingestion_service).
"""

import logging
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Union

from sqlalchemy.orm import Session

from patroltrack.exceptions import InconsistentRoundStateError
from patroltrack.models.guard import Guard
from patroltrack.services import catalog_service
from patroltrack.services.assignment_resolver import resolve_service
from patroltrack.services.outcomes import (
    Accepted,
    Rejected,
    RejectionReason,
    ResolvedService,
    RoundOutcome,
)

logger = logging.getLogger(__name__)


class RoundState(str, Enum):
    AWAITING_START = "AWAITING_START"
    IN_ROUND = "IN_ROUND"


@dataclass(frozen=True)
class RoundProgress:
    """Photo de la progression d'un vigile avant un scan."""

    service_id: Optional[uuid.UUID]
    index: int
    active: bool

    @classmethod
    def of(cls, guard: Guard) -> "RoundProgress":
        return cls(
            service_id=guard.current_service_id,
            index=guard.last_checkpoint_index or 0,
            active=bool(guard.round_active),
        )

    @property
    def state(self) -> RoundState:
        if self.index == 0 and not self.active:
            return RoundState.AWAITING_START
        return RoundState.IN_ROUND


def decide(
    progress: RoundProgress,
    checkpoint_id: int,
    resolution: Union[ResolvedService, Rejected],
    sequence: List[int],
) -> RoundOutcome:
    """
    Fonction de transition pure.

    resolution : propriétaire du checkpoint scanné (ou refus de configuration)
    sequence   : parcours ordonné du service de la ronde (service résolu si la
                 ronde démarre, service courant sinon)

    Lève InconsistentRoundStateError si la progression ne correspond pas au parcours.
    """
    # Un checkpoint sans propriétaire ou partagé est refusé quel que soit l'état
    if isinstance(resolution, Rejected):
        return resolution

    if progress.state == RoundState.AWAITING_START:
        service_id = resolution.service_id
        index = 0
    else:
        service_id = progress.service_id
        index = progress.index
        if service_id is None:
            raise InconsistentRoundStateError(
                f"Ronde active (index {index}) sans service assigné."
            )
        if resolution.service_id != service_id:
            return Rejected(
                reason=RejectionReason.WRONG_SERVICE,
                message=(
                    f"Le checkpoint {checkpoint_id} appartient au service {resolution.service_name}, "
                    "pas au service de la ronde en cours."
                ),
                checkpoint_id=checkpoint_id,
                expected_checkpoint_id=sequence[index] if index < len(sequence) else None,
            )

    total = len(sequence)
    if total == 0:
        return Rejected(
            reason=RejectionReason.EMPTY_SERVICE_SEQUENCE,
            message="Erreur de configuration : le service n'a aucun checkpoint.",
            checkpoint_id=checkpoint_id,
        )

    if index >= total:
        raise InconsistentRoundStateError(
            f"Index de progression {index} hors du parcours du service ({total} checkpoints)."
        )

    expected = sequence[index]
    if checkpoint_id != expected:
        return Rejected(
            reason=RejectionReason.OUT_OF_SEQUENCE,
            message=f"Séquence invalide : checkpoint attendu {expected}, reçu {checkpoint_id}.",
            checkpoint_id=checkpoint_id,
            expected_checkpoint_id=expected,
        )

    position = index + 1
    completed = position == total
    return Accepted(
        service_id=service_id,
        position=position,
        new_index=0 if completed else position,
        total=total,
        completed=completed,
    )


def apply_scan(db: Session, guard: Guard, checkpoint_id: int) -> RoundOutcome:
    """
    Applique un scan à la progression du vigile.

    Sur acceptation, met à jour guard (service, index, ronde active) sans commit :
    l'appelant persiste le ScanEvent dans la même transaction.
    Sur refus, guard n'est pas modifié.
    """
    progress = RoundProgress.of(guard)
    resolution = resolve_service(db, checkpoint_id)

    if progress.state == RoundState.AWAITING_START and isinstance(resolution, ResolvedService):
        round_service_id = resolution.service_id
    else:
        round_service_id = progress.service_id

    sequence = catalog_service.get_service_sequence(db, round_service_id) if round_service_id else []

    outcome = decide(progress, checkpoint_id, resolution, sequence)

    if isinstance(outcome, Rejected):
        logger.warning(
            "Scan refusé — vigile %s, checkpoint %s : %s (index %s, attendu %s)",
            guard.badge_number, checkpoint_id, outcome.reason.value,
            progress.index, outcome.expected_checkpoint_id,
        )
        return outcome

    if progress.state == RoundState.AWAITING_START and guard.current_service_id != outcome.service_id:
        logger.info(
            "Vigile %s lié au service %s pour cette ronde",
            guard.badge_number, resolution.service_name,
        )

    guard.current_service_id = outcome.service_id
    guard.last_checkpoint_index = outcome.new_index
    guard.round_active = not outcome.completed

    if outcome.completed:
        logger.info("Ronde terminée — vigile %s (%d checkpoints)", guard.badge_number, outcome.total)
    else:
        logger.info(
            "Checkpoint %s validé — vigile %s, %d/%d",
            checkpoint_id, guard.badge_number, outcome.position, outcome.total,
        )
    return outcome
