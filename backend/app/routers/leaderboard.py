"""
Router pour le classement (lecture publique).
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.config import settings
from app.database import get_db
from app.schemas.leaderboard import LeaderboardResponse, LeaderboardStats, UserRankResponse
from app.services import leaderboard_service

router = APIRouter(prefix="/api/v1/leaderboard", tags=["Classement"])


@router.get("", response_model=LeaderboardResponse, summary="Classement")
def get_leaderboard(
    limit: Optional[int] = Query(None, ge=1),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    """Classement par XP décroissante ; à égalité, le compte le plus ancien passe devant."""
    limit = min(limit or settings.LEADERBOARD_DEFAULT_LIMIT, settings.LEADERBOARD_MAX_LIMIT)
    return leaderboard_service.get_leaderboard(
        db, limit=limit, offset=offset, level_span=settings.LEVEL_DEFAULT_SPAN,
    )


@router.get("/stats", response_model=LeaderboardStats, summary="Statistiques globales")
def get_stats(db: Session = Depends(get_db)):
    return leaderboard_service.get_stats(db, level_span=settings.LEVEL_DEFAULT_SPAN)


@router.get("/users/{user_id}/rank", response_model=UserRankResponse, summary="Rang d'un utilisateur")
def get_user_rank(user_id: int, db: Session = Depends(get_db)):
    """Position (1-based) de l'utilisateur dans le classement complet. 404 si inconnu."""
    return leaderboard_service.get_user_rank(db, user_id, level_span=settings.LEVEL_DEFAULT_SPAN)
