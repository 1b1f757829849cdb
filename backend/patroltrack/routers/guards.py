"""
Routers pour la progression des vigiles (état de ronde, vue opérateur).
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from patroltrack.database import get_db
from patroltrack.schemas.guard import GuardState, GuardSummary
from patroltrack.security import GUARD_ADMIN, require_capability
from patroltrack.services import guard_service

router = APIRouter(prefix="/api/v1/guards", tags=["Vigiles"])


@router.get(
    "/{badge_number}/state",
    response_model=GuardState,
    summary="État de ronde d'un vigile",
)
def get_guard_state(badge_number: int, db: Session = Depends(get_db)):
    """
    Retourne le service courant, l'index atteint, la ronde active et le
    pourcentage d'avancement. Retourne 404 si le matricule est inconnu.
    """
    try:
        return guard_service.get_guard_state(db, badge_number)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get(
    "",
    response_model=List[GuardSummary],
    summary="Lister les vigiles",
    dependencies=[Depends(require_capability(GUARD_ADMIN))],
)
def list_guards(db: Session = Depends(get_db)):
    return guard_service.list_guards(db)


@router.post(
    "/{badge_number}/reset-round",
    response_model=GuardState,
    summary="Réinitialiser la ronde d'un vigile",
    dependencies=[Depends(require_capability(GUARD_ADMIN))],
)
def reset_round(badge_number: int, db: Session = Depends(get_db)):
    """
    Remet le vigile en attente de début de ronde (index 0).
    Utilisé par un opérateur après une correction du catalogue ou une ronde abandonnée.
    """
    try:
        return guard_service.reset_round(db, badge_number)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
