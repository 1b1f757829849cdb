"""
Schémas Pydantic pour la synchronisation des scans de ronde (offline → online).
Endpoint : POST /api/sync/scans
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from patroltrack.config import settings


class GeoPoint(BaseModel):
    """Position GPS au moment du scan ; chaque coordonnée peut manquer (permission refusée)."""

    lat: Optional[float] = Field(default=None, ge=-90, le=90)
    long: Optional[float] = Field(default=None, ge=-180, le=180)


class ScanItem(BaseModel):
    """Un scan de checkpoint généré côté appareil, éventuellement hors-ligne."""

    client_uuid: uuid.UUID        # Généré une seule fois par scan physique, clé d'idempotence
    badge_number: int = Field(gt=0)
    guard_name: str
    checkpoint_id: int = Field(gt=0)
    scanned_at: datetime          # ISO-8601 avec décalage horaire obligatoire
    note: Optional[str] = None
    geo: Optional[GeoPoint] = None

    @field_validator("guard_name")
    @classmethod
    def guard_name_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Le nom du vigile ne peut pas être vide.")
        return v.strip()

    @field_validator("scanned_at")
    @classmethod
    def scanned_at_has_offset(cls, v: datetime) -> datetime:
        if v.tzinfo is None or v.utcoffset() is None:
            raise ValueError("Le timestamp doit inclure un décalage horaire (ex. 2026-03-01T22:15:00-03:00).")
        return v

    @field_validator("note")
    @classmethod
    def normalize_note(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None


class SyncRequest(BaseModel):
    """Corps de la requête batch de synchronisation."""

    scans: List[ScanItem]
    device_id: str = ""           # Identifiant de l'appareil (journalisation)

    @field_validator("scans")
    @classmethod
    def scans_not_too_large(cls, v: List[ScanItem]) -> List[ScanItem]:
        if len(v) > settings.MAX_BATCH_SIZE:
            raise ValueError(f"Batch trop grand : maximum {settings.MAX_BATCH_SIZE} scans par requête.")
        return v


class ScanResult(BaseModel):
    """Issue d'un scan du batch."""

    client_uuid: str
    status: str                   # ACCEPTED, DUPLICATE, REJECTED, ERROR
    reason: Optional[str] = None  # Membre de RejectionReason si REJECTED, INCONSISTENT_STATE si ERROR
    message: Optional[str] = None
    checkpoint_index: Optional[int] = None
    round_completed: bool = False
    expected_checkpoint_id: Optional[int] = None
    conflicting_services: List[str] = []


class SyncResponse(BaseModel):
    """Rapport de synchronisation retourné par le serveur."""

    applied_uuids: List[str]      # Acceptés + déjà présents : l'appareil peut les marquer synchronisés
    results: List[ScanResult]
    total_received: int
    total_applied: int
    total_rejected: int
    total_failed: int = 0         # Erreurs d'état par scan (ERROR), à renvoyer après intervention
