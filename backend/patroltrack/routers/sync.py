"""
Router pour la synchronisation des scans de ronde (offline → online).
Reçoit les scans depuis l'appareil du vigile et les applique avec idempotence.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from patroltrack.database import get_db
from patroltrack.schemas.sync import ScanItem, SyncRequest, SyncResponse
from patroltrack.security import SCAN_SUBMIT, require_capability
from patroltrack.services import ingestion_service

router = APIRouter(
    prefix="/api/sync",
    tags=["Synchronisation offline"],
    dependencies=[Depends(require_capability(SCAN_SUBMIT))],
)


@router.post(
    "/scans",
    response_model=SyncResponse,
    summary="Synchroniser les scans de ronde (offline → online)",
)
def sync_scans(data: SyncRequest, db: Session = Depends(get_db)):
    """
    Reçoit un batch de scans générés hors-ligne et les applique dans l'ordre reçu.

    Comportement :
    - Idempotent : un client_uuid déjà connu est compté comme appliqué (pas d'erreur)
    - Refus de séquence ou de configuration : par scan, n'interrompt pas le batch
    - Payload invalide : 422, aucun scan appliqué
    - Base indisponible / timeout : 503, l'appareil renvoie plus tard les scans non confirmés
    """
    return ingestion_service.ingest_scans(db, data.scans, data.device_id)


@router.post(
    "/scan",
    response_model=SyncResponse,
    summary="Envoyer un scan unique (en ligne)",
)
def sync_single_scan(scan: ScanItem, db: Session = Depends(get_db)):
    """Raccourci pour un appareil connecté : équivalent à un batch d'un seul scan."""
    return ingestion_service.ingest_scans(db, [scan])
