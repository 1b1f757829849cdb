"""
Planificateur APScheduler de la synchronisation périodique (côté appareil).

Le job s'exécute toutes les SYNC_INTERVAL_SECONDS et envoie les scans
encore en attente, en complément des déclencheurs reconnexion / premier plan.
"""

import logging
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler

from patroltrack.config import settings
from patroltrack.sync_client.client import SyncClient

logger = logging.getLogger(__name__)

JOB_ID = "patrol_sync_pending"

scheduler = BackgroundScheduler()


def _sync_scheduled(client: SyncClient) -> None:
    """Tâche planifiée : un cycle de synchronisation, erreurs journalisées."""
    try:
        outcome = client.sync_pending()
        if outcome.sent:
            logger.info(
                "Sync périodique : %d envoyés, %d confirmés, %d refusés",
                outcome.sent, outcome.synced, outcome.rejected,
            )
    except Exception as exc:
        logger.error("Erreur lors de la synchronisation périodique : %s", exc)


def start_periodic_sync(client: SyncClient, interval_seconds: Optional[int] = None) -> None:
    """Démarre la synchronisation périodique en arrière-plan."""
    interval = interval_seconds or settings.SYNC_INTERVAL_SECONDS
    scheduler.add_job(
        _sync_scheduled,
        trigger="interval",
        seconds=interval,
        args=[client],
        id=JOB_ID,
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    if not scheduler.running:
        scheduler.start()
    logger.info("Scheduler démarré — synchronisation toutes les %d s.", interval)


def stop_periodic_sync() -> None:
    """Arrête le planificateur proprement."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler arrêté.")
