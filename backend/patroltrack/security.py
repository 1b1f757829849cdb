"""
Contrôle des jetons de capacité à la frontière HTTP.

La machine à états reste indépendante de l'autorisation : seul le router
vérifie que l'appelant présente la capacité requise (en-tête X-Capability-Token).
"""

import hmac
from typing import Optional

from fastapi import Header, HTTPException

from patroltrack.config import settings

SCAN_SUBMIT = "scan:submit"
GUARD_ADMIN = "guard:admin"


def _expected_token(capability: str) -> str:
    if capability == SCAN_SUBMIT:
        return settings.SCAN_CAPABILITY_TOKEN
    if capability == GUARD_ADMIN:
        return settings.ADMIN_CAPABILITY_TOKEN
    raise ValueError(f"Capacité inconnue : {capability}")


def require_capability(capability: str):
    """Dépendance FastAPI : 401 sans jeton, 403 si le jeton ne donne pas la capacité."""

    def dependency(x_capability_token: Optional[str] = Header(default=None)) -> None:
        expected = _expected_token(capability)
        if not expected:
            return
        if not x_capability_token:
            raise HTTPException(status_code=401, detail="Jeton de capacité manquant.")
        if not hmac.compare_digest(x_capability_token.encode(), expected.encode()):
            raise HTTPException(status_code=403, detail=f"Capacité {capability} refusée.")

    return dependency
