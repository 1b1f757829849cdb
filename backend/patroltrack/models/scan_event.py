"""
Modèle SQLAlchemy pour les scans de ronde (journal append-only).

Architecture offline-first :
- client_uuid : généré par l'appareil une seule fois par scan physique, clé d'idempotence
- scanned_at  : timestamp local de l'appareil (avant sync réseau)
- Jamais mis à jour ni supprimé après insertion
"""

import uuid
from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text, Uuid, func

from patroltrack.database import Base


class ScanEvent(Base):
    """Scan accepté d'un checkpoint par un vigile, dans le parcours de son service."""
    __tablename__ = "scan_events"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    client_uuid = Column(Uuid, unique=True, nullable=False)  # Clé idempotence (offline-first)

    guard_id = Column(Uuid, ForeignKey("guards.id", ondelete="CASCADE"), nullable=False, index=True)
    checkpoint_id = Column(Integer, ForeignKey("checkpoints.id"), nullable=False)
    service_id = Column(Uuid, ForeignKey("client_services.id"), nullable=False, index=True)

    scanned_at = Column(DateTime(timezone=True), nullable=False)   # Timestamp client (offline)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    note = Column(Text, nullable=True)                              # Observation libre du vigile

    checkpoint_index = Column(Integer, nullable=False)              # Position atteinte (1..total)
    round_completed = Column(Boolean, nullable=False, default=False)
    device_id = Column(String(100), nullable=True)

    created_at = Column(DateTime, server_default=func.now())
