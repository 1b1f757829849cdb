"""
Router de diagnostic du catalogue (checkpoints partagés, services vides).
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from patroltrack.database import get_db
from patroltrack.schemas.catalog import CatalogConflicts
from patroltrack.security import GUARD_ADMIN, require_capability
from patroltrack.services import catalog_service

router = APIRouter(
    prefix="/api/v1/catalog",
    tags=["Catalogue"],
    dependencies=[Depends(require_capability(GUARD_ADMIN))],
)


@router.get(
    "/conflicts",
    response_model=CatalogConflicts,
    summary="Erreurs de configuration du catalogue",
)
def get_catalog_conflicts(db: Session = Depends(get_db)):
    """Checkpoints rattachés à plusieurs services et services sans checkpoint."""
    return catalog_service.find_catalog_conflicts(db)
