"""
Registre des vigiles : recherche ou création par matricule (badge_number).

Aucun service n'est assigné ici : la liaison se fait au premier scan d'une
ronde, d'après le checkpoint réellement scanné (voir round_engine).
"""

import logging
from typing import Callable, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from patroltrack.models.guard import Guard

logger = logging.getLogger(__name__)


def get_guard(db: Session, badge_number: int, for_update: bool = False) -> Optional[Guard]:
    """Retourne le vigile ; for_update verrouille la ligne jusqu'à la fin de la transaction."""
    stmt = select(Guard).where(Guard.badge_number == badge_number)
    if for_update:
        stmt = stmt.with_for_update()
    return db.execute(stmt).scalar()


def find_or_create(
    db: Session,
    badge_number: int,
    name: str,
    for_update: bool = False,
    on_retry: Optional[Callable[[Session], None]] = None,
) -> Guard:
    """
    Retourne le vigile existant tel quel (le nom en base fait foi) ou le crée
    en attente de début de ronde, sans service.

    Doit être la première écriture de la transaction : en cas de création
    concurrente du même matricule, la transaction est annulée puis la ligne
    gagnante est relue. on_retry est rappelé sur la nouvelle transaction avant
    cette relecture (ex. rétablir les SET LOCAL de timeout perdus au rollback).
    """
    guard = get_guard(db, badge_number, for_update=for_update)
    if guard is not None:
        return guard

    guard = Guard(
        badge_number=badge_number,
        name=name.strip(),
        current_service_id=None,
        last_checkpoint_index=0,
        round_active=False,
    )
    db.add(guard)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        logger.info("Création concurrente du vigile %s, relecture", badge_number)
        if on_retry is not None:
            on_retry(db)
        guard = get_guard(db, badge_number, for_update=for_update)
        if guard is None:
            raise
        return guard

    logger.info("Nouveau vigile créé : matricule %s (%s)", badge_number, guard.name)
    return guard
