"""
File locale durable des scans de l'appareil du vigile (SQLite).

Architecture offline-first :
- client_uuid généré UNE fois à la mise en file, jamais régénéré lors des renvois
- Un scan n'est jamais supprimé tant que le serveur ne l'a pas confirmé par son UUID
- Statuts : PENDING (à envoyer), SYNCED (confirmé), REJECTED (refus définitif du serveur)
- Les champs sont validés à la mise en file avec le schéma du serveur (ScanItem)
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from pydantic import ValidationError
from sqlalchemy import Column, DateTime, Float, Integer, String, Text, func, select, update, delete
from sqlalchemy.orm import declarative_base, sessionmaker

from patroltrack.config import settings
from patroltrack.database import build_engine
from patroltrack.schemas.sync import ScanItem

logger = logging.getLogger(__name__)

STATUS_PENDING = "PENDING"
STATUS_SYNCED = "SYNCED"
STATUS_REJECTED = "REJECTED"

LocalBase = declarative_base()


class LocalScan(LocalBase):
    """Scan enregistré sur l'appareil, en attente ou déjà confirmé par le serveur."""
    __tablename__ = "local_scans"

    id = Column(Integer, primary_key=True, autoincrement=True)   # Ordre de mise en file
    client_uuid = Column(String(36), unique=True, nullable=False)
    badge_number = Column(Integer, nullable=False, index=True)
    guard_name = Column(String(255), nullable=False)
    checkpoint_id = Column(Integer, nullable=False)
    scanned_at = Column(String(40), nullable=False)               # ISO-8601 avec décalage, conservé tel quel
    note = Column(Text, nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    status = Column(String(20), nullable=False, default=STATUS_PENDING, index=True)
    last_error = Column(Text, nullable=True)                     # Dernier message de refus du serveur
    created_at = Column(DateTime, server_default=func.now())

    def to_payload(self) -> dict:
        """Corps JSON attendu par POST /api/sync/scans pour ce scan."""
        geo = None
        if self.latitude is not None or self.longitude is not None:
            geo = {"lat": self.latitude, "long": self.longitude}
        return {
            "client_uuid": self.client_uuid,
            "badge_number": self.badge_number,
            "guard_name": self.guard_name,
            "checkpoint_id": self.checkpoint_id,
            "scanned_at": self.scanned_at,
            "note": self.note,
            "geo": geo,
        }


class DuplicatePendingScanError(ValueError):
    """Un scan du même checkpoint par le même vigile attend déjà d'être envoyé."""


def _describe(exc: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(p) for p in err['loc'])} : {err['msg']}" for err in exc.errors()
    )


class LocalScanQueue:
    def __init__(self, url: Optional[str] = None):
        self.engine = build_engine(url or settings.SYNC_QUEUE_URL)
        LocalBase.metadata.create_all(bind=self.engine)
        self._session_factory = sessionmaker(bind=self.engine, autoflush=False, expire_on_commit=False)

    def close(self) -> None:
        self.engine.dispose()

    def enqueue(
        self,
        badge_number: int,
        guard_name: str,
        checkpoint_id: int,
        scanned_at: Optional[datetime] = None,
        note: Optional[str] = None,
        lat: Optional[float] = None,
        long: Optional[float] = None,
    ) -> LocalScan:
        """
        Met un scan en file avec un nouveau client_uuid.

        Les champs sont validés comme côté serveur (ScanItem) : un scan invalide lève
        ValueError ici plutôt que de faire refuser tout le batch en 422.
        Lève DuplicatePendingScanError si un scan PENDING existe déjà pour le même
        (vigile, checkpoint) : le serveur le refuserait de toute façon.
        """
        if scanned_at is None:
            scanned_at = datetime.now(timezone.utc).astimezone()
        geo = None
        if lat is not None or long is not None:
            geo = {"lat": lat, "long": long}
        try:
            item = ScanItem(
                client_uuid=uuid.uuid4(),
                badge_number=badge_number,
                guard_name=guard_name,
                checkpoint_id=checkpoint_id,
                scanned_at=scanned_at,
                note=note,
                geo=geo,
            )
        except ValidationError as exc:
            raise ValueError(f"Scan invalide : {_describe(exc)}") from exc

        with self._session_factory() as db:
            existing = db.execute(
                select(LocalScan.id).where(
                    LocalScan.badge_number == badge_number,
                    LocalScan.checkpoint_id == checkpoint_id,
                    LocalScan.status == STATUS_PENDING,
                )
            ).scalar()
            if existing is not None:
                raise DuplicatePendingScanError(
                    f"Le checkpoint {checkpoint_id} est déjà enregistré et attend la synchronisation."
                )

            scan = LocalScan(
                client_uuid=str(item.client_uuid),
                badge_number=item.badge_number,
                guard_name=item.guard_name,
                checkpoint_id=item.checkpoint_id,
                scanned_at=item.scanned_at.isoformat(),
                note=item.note,
                latitude=item.geo.lat if item.geo else None,
                longitude=item.geo.long if item.geo else None,
                status=STATUS_PENDING,
            )
            db.add(scan)
            db.commit()

        logger.debug("Scan mis en file : %s (vigile %s, checkpoint %s)", scan.client_uuid, badge_number, checkpoint_id)
        return scan

    def pending(self) -> List[LocalScan]:
        """Scans à envoyer, dans l'ordre de mise en file."""
        with self._session_factory() as db:
            return list(
                db.execute(
                    select(LocalScan).where(LocalScan.status == STATUS_PENDING).order_by(LocalScan.id)
                ).scalars().all()
            )

    def pending_count(self) -> int:
        with self._session_factory() as db:
            return db.execute(
                select(func.count(LocalScan.id)).where(LocalScan.status == STATUS_PENDING)
            ).scalar() or 0

    def get(self, client_uuid: str) -> Optional[LocalScan]:
        with self._session_factory() as db:
            return db.execute(select(LocalScan).where(LocalScan.client_uuid == client_uuid)).scalar()

    def mark_synced(self, client_uuids: Iterable[str]) -> int:
        """Marque SYNCED les scans confirmés par le serveur. Retourne le nombre de lignes modifiées."""
        uuids = list(client_uuids)
        if not uuids:
            return 0
        with self._session_factory() as db:
            result = db.execute(
                update(LocalScan)
                .where(LocalScan.client_uuid.in_(uuids))
                .values(status=STATUS_SYNCED, last_error=None)
            )
            db.commit()
            return result.rowcount

    def mark_rejected(self, client_uuid: str, message: str) -> None:
        """Refus métier du serveur : le scan n'est plus renvoyé automatiquement mais reste consultable."""
        with self._session_factory() as db:
            db.execute(
                update(LocalScan)
                .where(LocalScan.client_uuid == client_uuid, LocalScan.status == STATUS_PENDING)
                .values(status=STATUS_REJECTED, last_error=message)
            )
            db.commit()

    def record_error(self, client_uuid: str, message: str) -> None:
        """Note la dernière erreur sans changer le statut (le scan reste PENDING)."""
        with self._session_factory() as db:
            db.execute(
                update(LocalScan)
                .where(LocalScan.client_uuid == client_uuid, LocalScan.status == STATUS_PENDING)
                .values(last_error=message)
            )
            db.commit()

    def rejected(self) -> List[LocalScan]:
        with self._session_factory() as db:
            return list(
                db.execute(
                    select(LocalScan).where(LocalScan.status == STATUS_REJECTED).order_by(LocalScan.id)
                ).scalars().all()
            )

    def retry_rejected(self, client_uuid: str) -> bool:
        """
        Remet un scan refusé en PENDING (même client_uuid), par exemple après
        correction de la configuration côté serveur. Retourne False si le scan
        n'est pas REJECTED ou si un autre scan PENDING couvre déjà le même checkpoint.
        """
        with self._session_factory() as db:
            scan = db.execute(
                select(LocalScan).where(
                    LocalScan.client_uuid == client_uuid, LocalScan.status == STATUS_REJECTED
                )
            ).scalar()
            if scan is None:
                return False
            conflict = db.execute(
                select(LocalScan.id).where(
                    LocalScan.badge_number == scan.badge_number,
                    LocalScan.checkpoint_id == scan.checkpoint_id,
                    LocalScan.status == STATUS_PENDING,
                )
            ).scalar()
            if conflict is not None:
                return False
            scan.status = STATUS_PENDING
            db.commit()
            return True

    def purge_synced(self) -> int:
        """Supprime uniquement les scans confirmés par le serveur."""
        with self._session_factory() as db:
            result = db.execute(delete(LocalScan).where(LocalScan.status == STATUS_SYNCED))
            db.commit()
            return result.rowcount
