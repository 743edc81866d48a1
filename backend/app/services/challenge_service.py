"""
Service métier pour les challenges et leurs étapes : consultation publique et
administration (création, modification, suppression, impression des QR codes).
"""

import io
import logging
from datetime import datetime
from typing import List, Optional

import qrcode
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.errors import ChallengeInProgress, InvalidInput, NotFound
from app.models.challenge import Challenge, Stage
from app.models.progress import ChallengeProgress
from app.schemas.challenge import (
    ChallengeAdminResponse,
    ChallengeCreate,
    ChallengeDetailResponse,
    ChallengeListResponse,
    ChallengeResponse,
    ChallengeUpdate,
    StageAdminResponse,
    StageCreate,
    StageResponse,
)
from app.services.progress_service import count_participants, get_user_progress
from app.timeutils import utcnow

logger = logging.getLogger(__name__)


def get_challenges(
    db: Session,
    category: Optional[str] = None,
    difficulty: Optional[str] = None,
    status: str = "all",
    limit: int = 20,
    offset: int = 0,
    now: Optional[datetime] = None,
) -> ChallengeListResponse:
    """
    Liste paginée des challenges.

    status :
    - active    : is_active et start_date <= maintenant <= end_date
    - upcoming  : start_date dans le futur
    - completed : end_date dépassée
    - all       : aucun filtre temporel
    """
    now = now or utcnow()

    query = select(Challenge)
    if category:
        query = query.where(Challenge.category == category)
    if difficulty:
        query = query.where(Challenge.difficulty == difficulty.upper())
    if status == "active":
        query = query.where(
            Challenge.is_active.is_(True),
            Challenge.start_date <= now,
            Challenge.end_date >= now,
        )
    elif status == "upcoming":
        query = query.where(Challenge.start_date > now)
    elif status == "completed":
        query = query.where(Challenge.end_date < now)
    elif status != "all":
        raise InvalidInput(f"Filtre de statut invalide : {status}")

    total = db.execute(select(func.count()).select_from(query.subquery())).scalar() or 0

    challenges = db.execute(
        query.order_by(Challenge.start_date.desc(), Challenge.id.desc()).limit(limit).offset(offset)
    ).scalars().all()

    return ChallengeListResponse(items=[_to_response(db, c) for c in challenges], total=total)


def get_challenge_by_id(
    db: Session,
    challenge_id: int,
    user_id: Optional[int] = None,
) -> ChallengeDetailResponse:
    """
    Détail d'un challenge avec ses étapes ordonnées.
    Si user_id est fourni, inclut la progression de l'utilisateur (None s'il ne participe pas).
    """
    challenge = db.get(Challenge, challenge_id)
    if challenge is None:
        raise NotFound(f"Challenge {challenge_id} introuvable.")

    base = _to_response(db, challenge)
    return ChallengeDetailResponse(
        **base.model_dump(),
        stages=[_stage_response(s) for s in challenge.stages],
        user_progress=get_user_progress(db, user_id, challenge_id) if user_id is not None else None,
    )


def get_challenge_admin(db: Session, challenge_id: int) -> ChallengeAdminResponse:
    """Détail complet, QR codes attendus compris (administration)."""
    challenge = db.get(Challenge, challenge_id)
    if challenge is None:
        raise NotFound(f"Challenge {challenge_id} introuvable.")
    return _to_admin_response(db, challenge)


def create_challenge(db: Session, data: ChallengeCreate) -> ChallengeAdminResponse:
    """
    Crée un challenge et ses étapes.
    L'ordre des étapes (0..N-1) suit l'ordre de la liste fournie.
    """
    challenge = Challenge(**data.model_dump(exclude={"stages"}))
    challenge.stages = _build_stages(data.stages)
    db.add(challenge)
    db.commit()
    db.refresh(challenge)

    logger.info(
        "Challenge créé : %s (%s), %d étapes, %d XP",
        challenge.title, challenge.id, len(challenge.stages), challenge.xp_reward,
    )
    return _to_admin_response(db, challenge)


def update_challenge(db: Session, challenge_id: int, data: ChallengeUpdate) -> ChallengeAdminResponse:
    """
    Met à jour les champs fournis d'un challenge.

    Si stages est fourni, les étapes sont remplacées. Refusé dès qu'un utilisateur
    est inscrit : modifier l'ordre corromprait les progressions existantes.
    """
    challenge = db.get(Challenge, challenge_id)
    if challenge is None:
        raise NotFound(f"Challenge {challenge_id} introuvable.")

    update_data = data.model_dump(exclude_unset=True, exclude={"stages"})
    start = update_data.get("start_date", challenge.start_date)
    end = update_data.get("end_date", challenge.end_date)
    if end <= start:
        raise InvalidInput("La date de fin doit être postérieure à la date de début.")

    if data.stages is not None and count_participants(db, challenge_id) > 0:
        raise ChallengeInProgress(
            "Impossible de modifier les étapes : des utilisateurs participent déjà à ce challenge."
        )

    for field, value in update_data.items():
        setattr(challenge, field, value)

    if data.stages is not None:
        challenge.stages.clear()
        db.flush()  # Supprimer les anciennes étapes avant d'insérer (contrainte unique sur l'ordre)
        challenge.stages.extend(_build_stages(data.stages))

    db.commit()
    db.refresh(challenge)
    logger.info("Challenge mis à jour : %s", challenge.id)
    return _to_admin_response(db, challenge)


def delete_challenge(db: Session, challenge_id: int) -> bool:
    """
    Supprime un challenge, ses étapes et les progressions terminées.
    Bloqué tant qu'une inscription ACTIVE existe.
    Retourne True si supprimé, False si introuvable.
    """
    challenge = db.get(Challenge, challenge_id)
    if challenge is None:
        return False

    active = db.execute(
        select(func.count())
        .select_from(ChallengeProgress)
        .where(
            ChallengeProgress.challenge_id == challenge_id,
            ChallengeProgress.status == "ACTIVE",
        )
    ).scalar() or 0
    if active:
        raise ChallengeInProgress(
            f"Impossible de supprimer ce challenge : {active} participant(s) en cours."
        )

    finished = db.execute(
        select(ChallengeProgress).where(ChallengeProgress.challenge_id == challenge_id)
    ).scalars().all()
    for progress in finished:
        db.delete(progress)

    db.delete(challenge)
    db.commit()
    logger.info("Challenge supprimé : %s (%d progressions terminées supprimées)", challenge_id, len(finished))
    return True


def render_stage_qr(db: Session, challenge_id: int, stage_id: int) -> bytes:
    """Image PNG du QR code attendu par une étape, pour impression."""
    stage = db.get(Stage, stage_id)
    if stage is None or stage.challenge_id != challenge_id:
        raise NotFound(f"Étape {stage_id} introuvable pour ce challenge.")
    if stage.qr_code is None:
        raise NotFound("Cette étape ne comporte pas de QR code.")
    return generate_qr_image(stage.qr_code)


def generate_qr_image(payload: str) -> bytes:
    """
    PNG du QR code d'une étape, à imprimer et afficher sur place.

    Le contenu encodé est le payload attendu par l'étape (Stage.qr_code) : c'est
    exactement ce que le joueur renverra dans submit-stage après le scan.
    """
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.ERROR_CORRECT_M,
        box_size=10,
        border=4,
    )
    qr.add_data(payload)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def _build_stages(stages: List[StageCreate]) -> List[Stage]:
    return [
        Stage(
            order=index,
            title=s.title,
            description=s.description,
            qr_code=s.qr_code,
            latitude=s.latitude,
            longitude=s.longitude,
            radius_meters=s.radius_meters,
        )
        for index, s in enumerate(stages)
    ]


def _stage_response(stage: Stage) -> StageResponse:
    return StageResponse(
        id=stage.id,
        order=stage.order,
        title=stage.title,
        description=stage.description,
        requires_qr=stage.qr_code is not None,
        latitude=stage.latitude,
        longitude=stage.longitude,
        radius_meters=stage.radius_meters,
    )


def _to_response(db: Session, challenge: Challenge) -> ChallengeResponse:
    """Construit le schéma de réponse avec le nombre de participants."""
    return ChallengeResponse(
        id=challenge.id,
        title=challenge.title,
        description=challenge.description,
        category=challenge.category,
        difficulty=challenge.difficulty,
        xp_reward=challenge.xp_reward,
        required_level=challenge.required_level,
        start_date=challenge.start_date,
        end_date=challenge.end_date,
        is_active=challenge.is_active,
        max_participants=challenge.max_participants,
        image_url=challenge.image_url,
        participant_count=count_participants(db, challenge.id),
        stage_count=len(challenge.stages),
        created_at=challenge.created_at,
    )


def _to_admin_response(db: Session, challenge: Challenge) -> ChallengeAdminResponse:
    base = _to_response(db, challenge)
    return ChallengeAdminResponse(
        **base.model_dump(),
        stages=[
            StageAdminResponse(**_stage_response(s).model_dump(), qr_code=s.qr_code)
            for s in challenge.stages
        ],
    )
