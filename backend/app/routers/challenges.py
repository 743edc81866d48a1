"""
Router pour les challenges : consultation, inscription, soumission des étapes
et administration.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session

from app.auth import get_current_user, get_optional_user, require_admin
from app.config import settings
from app.database import get_db
from app.models.user import User
from app.schemas.challenge import (
    ChallengeAdminResponse,
    ChallengeCreate,
    ChallengeDetailResponse,
    ChallengeListResponse,
    ChallengeUpdate,
)
from app.schemas.progress import (
    ChallengeProgressResponse,
    JoinChallengeRequest,
    StageStatusResponse,
    StageSubmission,
    SubmissionResult,
)
from app.services import challenge_service, progress_service

router = APIRouter(prefix="/api/v1/challenges", tags=["Challenges"])


@router.get("", response_model=ChallengeListResponse, summary="Lister les challenges")
def list_challenges(
    category: Optional[str] = None,
    difficulty: Optional[str] = None,
    status: str = Query("all", pattern="^(active|upcoming|completed|all)$"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    """
    Liste paginée des challenges, filtrable par catégorie, difficulté et statut
    (active, upcoming, completed, all).
    """
    return challenge_service.get_challenges(
        db, category=category, difficulty=difficulty, status=status, limit=limit, offset=offset,
    )


@router.post("/join", response_model=ChallengeProgressResponse, status_code=201,
             summary="Rejoindre un challenge")
def join_challenge(
    data: JoinChallengeRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Inscrit l'utilisateur courant au challenge et déverrouille la première étape.

    Retourne 409 si déjà inscrit, 400 si le niveau est insuffisant, le challenge
    fermé ou complet, ou sans étape.
    """
    return progress_service.join_challenge(
        db, user.id, data.challenge_id, level_span=settings.LEVEL_DEFAULT_SPAN,
    )


@router.post("/submit-stage", response_model=SubmissionResult, summary="Valider une étape")
def submit_stage(
    data: StageSubmission,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Soumet la preuve (QR code scanné ou position GPS) d'une étape déverrouillée.

    La dernière étape termine le challenge et crédite l'XP du challenge.
    Retourne 404 si l'étape est inconnue ou l'utilisateur non inscrit,
    400 si l'étape est verrouillée, le challenge clos ou la preuve invalide.
    """
    return progress_service.submit_stage(
        db, user.id, data, level_span=settings.LEVEL_DEFAULT_SPAN,
    )


@router.get("/stages/{stage_id}/status", response_model=StageStatusResponse,
            summary="Statut d'une étape pour l'utilisateur courant")
def get_stage_status(
    stage_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """LOCKED, PENDING, COMPLETED ou SKIPPED."""
    return progress_service.get_stage_status(db, user.id, stage_id)


@router.get("/{challenge_id}", response_model=ChallengeDetailResponse, summary="Détail d'un challenge")
def get_challenge(
    challenge_id: int,
    user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    """Détail d'un challenge ; inclut la progression de l'utilisateur s'il est authentifié."""
    return challenge_service.get_challenge_by_id(db, challenge_id, user.id if user else None)


# --- Administration ---

@router.post("", response_model=ChallengeAdminResponse, status_code=201, summary="Créer un challenge")
def create_challenge(
    data: ChallengeCreate,
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Crée un challenge et ses étapes, dans l'ordre de la liste fournie."""
    return challenge_service.create_challenge(db, data)


@router.get("/{challenge_id}/admin", response_model=ChallengeAdminResponse,
            summary="Détail complet d'un challenge (admin)")
def get_challenge_admin(
    challenge_id: int,
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Inclut le contenu attendu des QR codes."""
    return challenge_service.get_challenge_admin(db, challenge_id)


@router.put("/{challenge_id}", response_model=ChallengeAdminResponse, summary="Modifier un challenge")
def update_challenge(
    challenge_id: int,
    data: ChallengeUpdate,
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """
    Met à jour les champs fournis.
    Le remplacement des étapes est refusé (409) dès qu'un utilisateur est inscrit.
    """
    return challenge_service.update_challenge(db, challenge_id, data)


@router.delete("/{challenge_id}", status_code=204, summary="Supprimer un challenge")
def delete_challenge(
    challenge_id: int,
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Supprime le challenge. Bloqué (409) tant qu'une participation est en cours."""
    if not challenge_service.delete_challenge(db, challenge_id):
        raise HTTPException(status_code=404, detail="Challenge introuvable.")


@router.get("/{challenge_id}/stages/{stage_id}/qr", summary="QR code d'une étape (PNG)")
def get_stage_qr(
    challenge_id: int,
    stage_id: int,
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Image PNG du QR code à imprimer et placer sur le lieu de l'étape."""
    png = challenge_service.render_stage_qr(db, challenge_id, stage_id)
    return Response(
        content=png,
        media_type="image/png",
        headers={"Content-Disposition": f"inline; filename=stage_{stage_id}_qr.png"},
    )
