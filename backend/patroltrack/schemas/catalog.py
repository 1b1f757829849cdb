"""
Schémas Pydantic pour le diagnostic de configuration du catalogue.
"""

from typing import List

from pydantic import BaseModel


class SharedCheckpoint(BaseModel):
    checkpoint_id: int
    checkpoint_name: str
    services: List[str]


class CatalogConflicts(BaseModel):
    """Erreurs de configuration à corriger par un opérateur."""

    shared_checkpoints: List[SharedCheckpoint]
    empty_services: List[str]
