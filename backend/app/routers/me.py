"""
Router pour les données de l'utilisateur courant.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.auth import get_current_user
from app.config import settings
from app.database import get_db
from app.models.user import User
from app.schemas.leaderboard import UserRankResponse
from app.schemas.progress import ChallengeProgressResponse
from app.services import leaderboard_service, progress_service

router = APIRouter(prefix="/api/v1/me", tags=["Utilisateur courant"])


@router.get("/challenges", response_model=List[ChallengeProgressResponse], summary="Mes challenges")
def my_challenges(
    status: Optional[str] = Query(None, pattern="^(ACTIVE|COMPLETED)$"),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Inscriptions de l'utilisateur, avec le statut de chaque étape. Filtre optionnel par statut."""
    return progress_service.get_user_challenges(db, user.id, status)


@router.get("/rank", response_model=UserRankResponse, summary="Mon rang")
def my_rank(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return leaderboard_service.get_user_rank(db, user.id, level_span=settings.LEVEL_DEFAULT_SPAN)
