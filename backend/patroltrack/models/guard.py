"""
Modèle SQLAlchemy pour les vigiles et leur progression dans la ronde en cours.

last_checkpoint_index = 0 et round_active = False → en attente de début de ronde.
Le service courant n'est (re)fixé qu'au premier scan d'une ronde.
"""

import uuid
from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Integer, String, Uuid, func

from patroltrack.database import Base


class Guard(Base):
    __tablename__ = "guards"
    __table_args__ = (
        CheckConstraint("last_checkpoint_index >= 0", name="ck_guards_index_positive"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    badge_number = Column(Integer, unique=True, nullable=False)   # Matricule, immuable
    name = Column(String(255), nullable=False)

    current_service_id = Column(Uuid, ForeignKey("client_services.id", ondelete="SET NULL"), nullable=True)
    last_checkpoint_index = Column(Integer, nullable=False, default=0)
    round_active = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
