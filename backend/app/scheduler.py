"""
Planificateur APScheduler pour la resynchronisation périodique des niveaux utilisateurs.

Le niveau stocké sur chaque utilisateur est un cache dérivé de son XP : après une
modification de la table des niveaux, le job le remet en cohérence.
"""

import logging

from apscheduler.schedulers.background import BackgroundScheduler

from app.config import settings
from app.database import SessionLocal

logger = logging.getLogger(__name__)

scheduler = BackgroundScheduler()


def _sync_user_levels() -> None:
    """
    Tâche planifiée : recalcule le niveau de tous les utilisateurs.
    Import local pour éviter les imports circulaires.
    """
    from app.services.level_service import recompute_user_levels

    db = SessionLocal()
    try:
        result = recompute_user_levels(db, settings.LEVEL_DEFAULT_SPAN)
        if result.updated_users:
            logger.info(
                "Synchronisation des niveaux : %d/%d utilisateurs mis à jour",
                result.updated_users, result.total_users,
            )
    except Exception as exc:
        db.rollback()
        logger.error("Erreur lors de la synchronisation des niveaux : %s", exc)
    finally:
        db.close()


def start_scheduler() -> None:
    """Démarre le planificateur en arrière-plan (appelé au démarrage de l'API)."""
    scheduler.add_job(
        _sync_user_levels,
        trigger="interval",
        minutes=settings.LEVEL_SYNC_INTERVAL_MINUTES,
        id="user_level_sync",
        replace_existing=True,
    )
    scheduler.start()
    logger.info(
        "Scheduler démarré, synchronisation des niveaux toutes les %d minutes.",
        settings.LEVEL_SYNC_INTERVAL_MINUTES,
    )


def stop_scheduler() -> None:
    """Arrête le planificateur proprement (appelé à l'arrêt de l'API)."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler arrêté.")
