"""
Service de consultation et de remise à zéro de la progression des vigiles.
"""

import logging
from typing import List

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from patroltrack.models.client_service import ClientService
from patroltrack.models.guard import Guard
from patroltrack.models.scan_event import ScanEvent
from patroltrack.schemas.guard import GuardState, GuardSummary
from patroltrack.services import catalog_service, guard_registry

logger = logging.getLogger(__name__)


def get_guard_state(db: Session, badge_number: int) -> GuardState:
    """
    Retourne la progression d'un vigile : service courant, index, ronde active,
    pourcentage d'avancement (index / total, 0 sans service) et dernier scan.

    Lève ValueError si le matricule est inconnu.
    """
    guard = guard_registry.get_guard(db, badge_number)
    if guard is None:
        raise ValueError(f"Vigile {badge_number} introuvable.")

    service_name = None
    sequence: List[int] = []
    if guard.current_service_id is not None:
        service_name = db.execute(
            select(ClientService.name).where(ClientService.id == guard.current_service_id)
        ).scalar()
        sequence = catalog_service.get_service_sequence(db, guard.current_service_id)

    total = len(sequence)
    index = guard.last_checkpoint_index or 0
    completion = round(100 * index / total) if total else 0
    expected = sequence[index] if index < total else None

    last_scan_at = db.execute(
        select(func.max(ScanEvent.scanned_at)).where(ScanEvent.guard_id == guard.id)
    ).scalar()

    return GuardState(
        badge_number=guard.badge_number,
        name=guard.name,
        service_name=service_name,
        checkpoint_index=index,
        round_active=bool(guard.round_active),
        total_checkpoints=total,
        completion_percent=completion,
        expected_checkpoint_id=expected,
        last_scan_at=last_scan_at,
    )


def list_guards(db: Session) -> List[GuardSummary]:
    """Tous les vigiles triés par matricule, avec le nom de leur service courant."""
    rows = db.execute(
        select(Guard, ClientService.name)
        .outerjoin(ClientService, ClientService.id == Guard.current_service_id)
        .order_by(Guard.badge_number)
    ).all()

    return [
        GuardSummary(
            id=guard.id,
            badge_number=guard.badge_number,
            name=guard.name,
            service_name=service_name,
            checkpoint_index=guard.last_checkpoint_index or 0,
            round_active=bool(guard.round_active),
        )
        for guard, service_name in rows
    ]


def reset_round(db: Session, badge_number: int) -> GuardState:
    """
    Remet le vigile en attente de début de ronde (index 0, ronde inactive).
    Le prochain scan re-résout le service d'après le checkpoint scanné.

    Lève ValueError si le matricule est inconnu.
    """
    guard = guard_registry.get_guard(db, badge_number, for_update=True)
    if guard is None:
        db.rollback()
        raise ValueError(f"Vigile {badge_number} introuvable.")

    previous_index = guard.last_checkpoint_index
    guard.last_checkpoint_index = 0
    guard.round_active = False
    db.commit()

    logger.info("Ronde réinitialisée — vigile %s (index %s → 0)", badge_number, previous_index)
    return get_guard_state(db, badge_number)
