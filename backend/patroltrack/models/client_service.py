"""
Modèles SQLAlchemy pour les services clients et leur parcours de checkpoints.
"""

import uuid
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Uuid, func

from patroltrack.database import Base


class ClientService(Base):
    """Contrat client : définit un parcours de ronde ordonné."""
    __tablename__ = "client_services"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(100), unique=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class ServiceCheckpoint(Base):
    """
    Association service ↔ checkpoint (clé composite = unicité de la paire).
    Un checkpoint rattaché à plusieurs services est une erreur de configuration.
    """
    __tablename__ = "service_checkpoints"

    service_id = Column(Uuid, ForeignKey("client_services.id", ondelete="CASCADE"), primary_key=True)
    checkpoint_id = Column(Integer, ForeignKey("checkpoints.id", ondelete="CASCADE"), primary_key=True, index=True)
