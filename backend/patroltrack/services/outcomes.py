"""
Issues typées d'un scan de ronde.

Ensemble fermé de variantes : Accepted ou Rejected(reason). Les refus métier
sont retournés, jamais levés ; l'appelant traite chaque RejectionReason.
"""

import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple, Union


class RejectionCategory(str, Enum):
    CONFIGURATION = "CONFIGURATION"   # Intervention opérateur requise
    SEQUENCE = "SEQUENCE"             # Déterministe : ne pas renvoyer tel quel


class RejectionReason(str, Enum):
    NO_SERVICE_FOR_CHECKPOINT = "NO_SERVICE_FOR_CHECKPOINT"
    SHARED_CHECKPOINT = "SHARED_CHECKPOINT"
    EMPTY_SERVICE_SEQUENCE = "EMPTY_SERVICE_SEQUENCE"
    OUT_OF_SEQUENCE = "OUT_OF_SEQUENCE"
    WRONG_SERVICE = "WRONG_SERVICE"

    @property
    def category(self) -> RejectionCategory:
        if self in (RejectionReason.OUT_OF_SEQUENCE, RejectionReason.WRONG_SERVICE):
            return RejectionCategory.SEQUENCE
        return RejectionCategory.CONFIGURATION


@dataclass(frozen=True)
class Rejected:
    reason: RejectionReason
    message: str
    checkpoint_id: int
    expected_checkpoint_id: Optional[int] = None
    conflicting_services: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Accepted:
    """
    Scan accepté.
    position  : rang atteint dans le parcours (1..total)
    new_index : index persisté après le scan (0 si la ronde vient de se terminer)
    """
    service_id: uuid.UUID
    position: int
    new_index: int
    total: int
    completed: bool


@dataclass(frozen=True)
class ResolvedService:
    service_id: uuid.UUID
    service_name: str


RoundOutcome = Union[Accepted, Rejected]
