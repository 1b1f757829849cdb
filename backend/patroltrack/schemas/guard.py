"""
Schémas Pydantic pour l'état de ronde des vigiles.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class GuardState(BaseModel):
    """Progression courante d'un vigile, consommée par l'interface du vigile."""

    badge_number: int
    name: str
    service_name: Optional[str]
    checkpoint_index: int
    round_active: bool
    total_checkpoints: int
    completion_percent: int
    expected_checkpoint_id: Optional[int]
    last_scan_at: Optional[datetime]


class GuardSummary(BaseModel):
    """Ligne de la liste des vigiles (vue opérateur)."""

    id: uuid.UUID
    badge_number: int
    name: str
    service_name: Optional[str]
    checkpoint_index: int
    round_active: bool
