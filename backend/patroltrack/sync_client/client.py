"""
Client de synchronisation : envoie les scans PENDING de la file locale au serveur.

- Un batch par cycle (découpé si la file dépasse MAX_BATCH_SIZE), dans l'ordre de mise en file
- Les UUIDs renvoyés dans applied_uuids passent SYNCED, les autres restent PENDING
- Refus de séquence : jamais renvoyés automatiquement → REJECTED
- Refus de configuration et erreurs d'état du vigile : restent PENDING, renvoyés
  au cycle suivant (acceptés une fois la correction faite par un opérateur)
- Erreurs réseau / 5xx : nouvel essai avec backoff exponentiel (doublé à chaque échec, plafonné)
- Erreurs 4xx : pas de nouvel essai (la requête serait refusée à l'identique) ; sur 422,
  les scans désignés par la validation passent REJECTED et le reste du lot est renvoyé
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Set

import httpx

from patroltrack.config import settings
from patroltrack.services.outcomes import RejectionCategory, RejectionReason
from patroltrack.sync_client.local_queue import LocalScan, LocalScanQueue

logger = logging.getLogger(__name__)

SYNC_PATH = "/api/sync/scans"


@dataclass
class SyncOutcome:
    """Bilan d'un cycle de synchronisation."""

    sent: int = 0
    synced: int = 0
    rejected: int = 0
    deferred: int = 0             # Laissés PENDING par le serveur (configuration, état du vigile)
    attempts: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class SyncClient:
    def __init__(
        self,
        queue: LocalScanQueue,
        base_url: Optional[str] = None,
        device_id: str = "",
        capability_token: Optional[str] = None,
        http_client: Optional[httpx.Client] = None,
        max_attempts: Optional[int] = None,
        backoff_initial: Optional[float] = None,
        backoff_max: Optional[float] = None,
        batch_size: Optional[int] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.queue = queue
        self.device_id = device_id
        self.capability_token = capability_token or settings.SCAN_CAPABILITY_TOKEN
        self.max_attempts = max_attempts or settings.SYNC_MAX_ATTEMPTS
        self.backoff_initial = backoff_initial if backoff_initial is not None else settings.SYNC_BACKOFF_INITIAL
        self.backoff_max = backoff_max if backoff_max is not None else settings.SYNC_BACKOFF_MAX
        self.batch_size = batch_size or settings.MAX_BATCH_SIZE
        self._sleep = sleep
        self._client = http_client or httpx.Client(
            base_url=(base_url or settings.SYNC_SERVER_URL).rstrip("/"),
            timeout=settings.SYNC_HTTP_TIMEOUT,
        )
        self._lock = threading.Lock()

    def close(self) -> None:
        self._client.close()

    # Déclencheurs : reconnexion réseau, retour au premier plan, minuterie (voir scheduler)

    def on_connectivity_regained(self) -> SyncOutcome:
        logger.info("Connexion réseau rétablie → synchronisation")
        return self.sync_pending()

    def on_foreground(self) -> SyncOutcome:
        logger.info("Application au premier plan → synchronisation")
        return self.sync_pending()

    def sync_pending(self) -> SyncOutcome:
        """
        Envoie tous les scans PENDING. Ne lève pas d'exception pour les erreurs
        transitoires : elles sont journalisées et reportées dans SyncOutcome.error.
        Deux appels simultanés sont sérialisés.
        """
        with self._lock:
            pending = self.queue.pending()
            if not pending:
                return SyncOutcome()

            logger.info("Envoi de %d scans en attente...", len(pending))
            total = SyncOutcome()
            for start in range(0, len(pending), self.batch_size):
                chunk = pending[start:start + self.batch_size]
                outcome = self._send_batch(chunk)
                total.sent += outcome.sent
                total.synced += outcome.synced
                total.rejected += outcome.rejected
                total.deferred += outcome.deferred
                total.attempts += outcome.attempts
                if not outcome.ok:
                    # Les lots suivants dépendent de la progression laissée par celui-ci
                    total.error = outcome.error
                    break

            logger.info(
                "Synchronisation : %d envoyés, %d confirmés, %d refusés, %d en attente serveur%s",
                total.sent, total.synced, total.rejected, total.deferred,
                f", erreur : {total.error}" if total.error else "",
            )
            return total

    def _send_batch(self, scans: List[LocalScan]) -> SyncOutcome:
        payload = {
            "device_id": self.device_id,
            "scans": [scan.to_payload() for scan in scans],
        }
        headers = {}
        if self.capability_token:
            headers["X-Capability-Token"] = self.capability_token

        backoff = self.backoff_initial
        error = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                response = self._client.post(SYNC_PATH, json=payload, headers=headers)
            except httpx.TransportError as exc:
                error = f"Erreur réseau : {exc}"
                logger.warning("Tentative %d/%d échouée : %s", attempt, self.max_attempts, error)
            else:
                if response.status_code < 300:
                    return self._apply_response(response.json(), len(scans), attempt)
                error = f"HTTP {response.status_code}"
                if response.status_code < 500:
                    logger.warning("Batch refusé par le serveur (%s) : %s", error, response.text)
                    if response.status_code == 422:
                        invalid = self._reject_invalid(scans, response)
                        remaining = [s for s in scans if s.client_uuid not in invalid]
                        if invalid and remaining:
                            # Les scans valides du lot ne doivent pas rester bloqués par les invalides
                            outcome = self._send_batch(remaining)
                            outcome.sent = len(scans)
                            outcome.rejected += len(invalid)
                            outcome.attempts += attempt
                            return outcome
                        if invalid:
                            return SyncOutcome(sent=len(scans), rejected=len(invalid), attempts=attempt)
                    self._record_error(scans, error)
                    return SyncOutcome(sent=len(scans), attempts=attempt, error=error)
                if response.status_code == 503:
                    self._mark_partial(response)
                logger.warning("Tentative %d/%d échouée : %s", attempt, self.max_attempts, error)

            if attempt < self.max_attempts:
                self._sleep(backoff)
                backoff = min(backoff * 2.0, self.backoff_max)

        self._record_error(scans, error)
        return SyncOutcome(sent=len(scans), attempts=self.max_attempts, error=error)

    def _record_error(self, scans: List[LocalScan], error: str) -> None:
        for scan in scans:
            self.queue.record_error(scan.client_uuid, error)

    def _mark_partial(self, response: httpx.Response) -> None:
        """503 : le serveur indique les scans déjà commités avant l'interruption du batch."""
        try:
            applied = response.json().get("applied_uuids") or []
        except ValueError:
            return
        if applied:
            self.queue.mark_synced([str(u) for u in applied])

    def _apply_response(self, data: dict, sent: int, attempts: int) -> SyncOutcome:
        applied = [str(u) for u in data.get("applied_uuids", [])]
        synced = self.queue.mark_synced(applied)

        rejected = deferred = 0
        for result in data.get("results", []):
            status = result.get("status")
            if status not in ("REJECTED", "ERROR"):
                continue
            client_uuid = result["client_uuid"]
            message = result.get("message") or result.get("reason") or "Scan refusé"
            if status == "REJECTED" and not _awaits_operator(result.get("reason")):
                rejected += 1
                self.queue.mark_rejected(client_uuid, message)
                logger.warning("Scan %s refusé : %s", client_uuid[:8], message)
            else:
                # Configuration ou état du vigile à corriger côté serveur : renvoyé au prochain cycle
                deferred += 1
                self.queue.record_error(client_uuid, message)
                logger.warning("Scan %s en attente d'une intervention : %s", client_uuid[:8], message)

        return SyncOutcome(sent=sent, synced=synced, rejected=rejected, deferred=deferred, attempts=attempts)

    def _reject_invalid(self, scans: List[LocalScan], response: httpx.Response) -> Set[str]:
        """422 : marque REJECTED les scans désignés par le détail de validation, retourne leurs UUIDs."""
        try:
            detail = response.json().get("detail")
        except ValueError:
            return set()
        if not isinstance(detail, list):
            return set()

        messages = {}
        for err in detail:
            loc = err.get("loc") or []
            # ["body", "scans", <index>, <champ>...]
            if len(loc) < 3 or loc[1] != "scans" or not isinstance(loc[2], int):
                continue
            if 0 <= loc[2] < len(scans):
                field = ".".join(str(p) for p in loc[3:])
                messages.setdefault(scans[loc[2]].client_uuid, []).append(
                    f"{field} : {err.get('msg')}" if field else str(err.get("msg"))
                )

        for client_uuid, errors in messages.items():
            message = "Scan invalide : " + "; ".join(errors)
            self.queue.mark_rejected(client_uuid, message)
            logger.warning("Scan %s refusé à la validation : %s", client_uuid[:8], message)
        return set(messages)


def _awaits_operator(reason: Optional[str]) -> bool:
    """Refus de configuration : corrigé par un opérateur, le même scan sera alors accepté."""
    try:
        return RejectionReason(reason).category == RejectionCategory.CONFIGURATION
    except ValueError:
        return False
