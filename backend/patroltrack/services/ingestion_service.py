"""
Service d'ingestion idempotente des scans de ronde (offline → online).

Stratégie :
- Idempotence via client_uuid : un UUID déjà connu est un succès sans effet
- Une transaction par scan (pas par batch) : un batch interrompu reste partiellement
  appliqué, ce qui est sans risque puisque le renvoi est idempotent
- Scans traités strictement dans l'ordre reçu : la validation de séquence dépend
  de l'état laissé par les scans précédents du même batch
- La ligne Guard est verrouillée (SELECT ... FOR UPDATE) pendant la décision, ce qui
  sérialise deux requêtes concurrentes pour le même vigile
- Refus métier : rollback du scan, le batch continue
- État incohérent d'un vigile : rollback du scan, ERROR pour ce scan seul, le batch continue
- Erreur d'infrastructure : rollback du scan, arrêt du batch, StoreUnavailableError
"""

import logging
import uuid
from typing import List

from sqlalchemy import select, text
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from patroltrack.config import settings
from patroltrack.exceptions import InconsistentRoundStateError, StoreUnavailableError
from patroltrack.models.scan_event import ScanEvent
from patroltrack.schemas.sync import ScanItem, ScanResult, SyncResponse
from patroltrack.services import guard_registry, round_engine
from patroltrack.services.outcomes import Rejected

logger = logging.getLogger(__name__)

STATUS_ACCEPTED = "ACCEPTED"
STATUS_DUPLICATE = "DUPLICATE"
STATUS_REJECTED = "REJECTED"
STATUS_ERROR = "ERROR"

REASON_INCONSISTENT_STATE = "INCONSISTENT_STATE"


def ingest_scans(db: Session, scans: List[ScanItem], device_id: str = "") -> SyncResponse:
    """
    Applique en séquence les scans reçus d'un appareil.

    Pour chaque scan (une transaction chacun) :
    1. client_uuid déjà en base → DUPLICATE, rien d'autre n'est fait
    2. Sinon, recherche/création du vigile (ligne verrouillée) puis transition de ronde
    3. Refus → rollback, REJECTED avec la raison typée
    4. Acceptation → insertion du ScanEvent et de la progression, commit, ACCEPTED
    5. Progression du vigile incohérente → rollback, ERROR (non appliqué, à renvoyer)

    applied_uuids = ACCEPTED + DUPLICATE : l'appareil peut les marquer synchronisés.
    """
    results: List[ScanResult] = []
    applied: List[str] = []

    for scan in scans:
        try:
            result = _ingest_one(db, scan, device_id)
        except OperationalError as exc:
            db.rollback()
            logger.error(
                "Sync device=%s interrompue au scan %s : %s",
                device_id or "inconnu", scan.client_uuid, exc,
            )
            raise StoreUnavailableError(
                "Base de données indisponible ou transaction expirée, réessayer plus tard.",
                applied_uuids=applied,
            ) from exc

        results.append(result)
        if result.status in (STATUS_ACCEPTED, STATUS_DUPLICATE):
            applied.append(result.client_uuid)

    rejected = sum(1 for r in results if r.status == STATUS_REJECTED)
    failed = sum(1 for r in results if r.status == STATUS_ERROR)
    logger.info(
        "Sync device=%s : %d reçus, %d appliqués, %d refusés, %d en erreur",
        device_id or "inconnu", len(scans), len(applied), rejected, failed,
    )

    return SyncResponse(
        applied_uuids=applied,
        results=results,
        total_received=len(scans),
        total_applied=len(applied),
        total_rejected=rejected,
        total_failed=failed,
    )


def _ingest_one(db: Session, scan: ScanItem, device_id: str) -> ScanResult:
    client_uuid_str = str(scan.client_uuid)

    if _already_applied(db, scan.client_uuid):
        db.rollback()
        logger.debug("UUID déjà synchronisé, ignoré : %s", client_uuid_str)
        return ScanResult(client_uuid=client_uuid_str, status=STATUS_DUPLICATE)

    try:
        _apply_transaction_timeout(db)
        guard = guard_registry.find_or_create(
            db, scan.badge_number, scan.guard_name,
            for_update=True, on_retry=_apply_transaction_timeout,
        )

        # Un renvoi concurrent du même scan a pu être commité pendant l'attente du verrou
        if _already_applied(db, scan.client_uuid):
            db.rollback()
            return ScanResult(client_uuid=client_uuid_str, status=STATUS_DUPLICATE)

        outcome = round_engine.apply_scan(db, guard, scan.checkpoint_id)
        if isinstance(outcome, Rejected):
            db.rollback()
            return ScanResult(
                client_uuid=client_uuid_str,
                status=STATUS_REJECTED,
                reason=outcome.reason.value,
                message=outcome.message,
                expected_checkpoint_id=outcome.expected_checkpoint_id,
                conflicting_services=list(outcome.conflicting_services),
            )

        db.add(
            ScanEvent(
                client_uuid=scan.client_uuid,
                guard_id=guard.id,
                checkpoint_id=scan.checkpoint_id,
                service_id=outcome.service_id,
                scanned_at=scan.scanned_at,
                latitude=scan.geo.lat if scan.geo else None,
                longitude=scan.geo.long if scan.geo else None,
                note=scan.note,
                checkpoint_index=outcome.position,
                round_completed=outcome.completed,
                device_id=device_id or None,
            )
        )
        db.commit()
    except IntegrityError:
        db.rollback()
        if _already_applied(db, scan.client_uuid):
            db.rollback()
            logger.debug("UUID inséré par une requête concurrente : %s", client_uuid_str)
            return ScanResult(client_uuid=client_uuid_str, status=STATUS_DUPLICATE)
        raise
    except InconsistentRoundStateError as exc:
        db.rollback()
        logger.error("Scan %s non appliqué, vigile %s : %s", client_uuid_str, scan.badge_number, exc)
        return ScanResult(
            client_uuid=client_uuid_str,
            status=STATUS_ERROR,
            reason=REASON_INCONSISTENT_STATE,
            message=str(exc),
        )
    except Exception:
        db.rollback()
        raise

    return ScanResult(
        client_uuid=client_uuid_str,
        status=STATUS_ACCEPTED,
        checkpoint_index=outcome.position,
        round_completed=outcome.completed,
    )


def _already_applied(db: Session, client_uuid: uuid.UUID) -> bool:
    return db.execute(
        select(ScanEvent.id).where(ScanEvent.client_uuid == client_uuid)
    ).scalar() is not None


def _apply_transaction_timeout(db: Session) -> None:
    """Borne l'attente de verrou et la durée des requêtes de la transaction courante."""
    if db.get_bind().dialect.name != "postgresql":
        return
    timeout_ms = int(settings.TRANSACTION_TIMEOUT_MS)
    db.execute(text(f"SET LOCAL lock_timeout = {timeout_ms}"))
    db.execute(text(f"SET LOCAL statement_timeout = {timeout_ms}"))
