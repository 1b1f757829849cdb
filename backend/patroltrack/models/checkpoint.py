"""
Modèle SQLAlchemy pour les checkpoints (points de ronde scannables).
L'identifiant entier sert aussi d'ordre de passage dans une ronde (tri ascendant).
"""

from sqlalchemy import Column, DateTime, Integer, String, func

from patroltrack.database import Base


class Checkpoint(Base):
    """Point physique identifié par une étiquette scannée par le vigile."""
    __tablename__ = "checkpoints"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), unique=True, nullable=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
