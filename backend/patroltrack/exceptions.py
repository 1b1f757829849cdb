"""
Exceptions d'infrastructure et états inattendus.

Les refus métier (séquence, configuration) ne sont PAS des exceptions :
voir RejectionReason / Rejected dans services/outcomes.py.
"""


class StoreUnavailableError(Exception):
    """Timeout, conflit de verrou ou perte de connexion : le client peut réessayer plus tard."""

    def __init__(self, message: str, applied_uuids=None):
        super().__init__(message)
        self.applied_uuids = list(applied_uuids or [])


class InconsistentRoundStateError(Exception):
    """Progression d'un vigile incompatible avec le parcours de son service (intervention requise)."""
