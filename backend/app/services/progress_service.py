"""
Moteur de progression : inscription aux challenges, déverrouillage séquentiel des
étapes, validation des preuves et attribution de l'XP.

Machine à états par couple (utilisateur, challenge) :
    NOT_JOINED → ACTIVE → COMPLETED
Par étape :
    LOCKED → PENDING → COMPLETED | SKIPPED

Stockage : une ligne stage_progress n'est écrite qu'à une transition
(étape 0 à l'inscription, étape suivante au déverrouillage, étape validée).
Les autres statuts sont dérivés à la lecture (derive_stage_statuses).

Concurrence : chaque opération d'écriture est une seule transaction.
- PENDING → COMPLETED est un UPDATE conditionnel (WHERE status = 'PENDING') dont le
  rowcount doit valoir 1 ; la seconde de deux soumissions simultanées échoue en StageLocked.
- Une insertion de ligne s'appuie sur la contrainte unique (challenge_progress_id, stage_id).
- ACTIVE → COMPLETED du challenge est conditionnel de la même façon, et l'XP est
  incrémentée en SQL (xp = xp + récompense) : jamais de double attribution.
- L'inscription verrouille la ligne du challenge (SELECT ... FOR UPDATE) avant de
  compter les participants.
- Toute erreur annule la transaction : aucun effet partiel n'est visible.
"""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, List, Mapping, Optional, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from app.errors import (
    AlreadyJoined,
    ChallengeFull,
    ChallengeNotActive,
    ChallengeWindowClosed,
    InfrastructureError,
    InvalidProof,
    LevelTooLow,
    NoStages,
    NotFound,
    StageLocked,
)
from app.models.challenge import Challenge, Stage
from app.models.progress import ChallengeProgress, StageProgress
from app.models.user import User
from app.schemas.progress import (
    ChallengeProgressResponse,
    StageProgressResponse,
    StageStatusResponse,
    StageSubmission,
    SubmissionResult,
)
from app.services.level_resolver import DEFAULT_SPAN
from app.services.level_service import build_resolver
from app.timeutils import utcnow

logger = logging.getLogger(__name__)

# Statuts d'étape
LOCKED = "LOCKED"
PENDING = "PENDING"
COMPLETED = "COMPLETED"
SKIPPED = "SKIPPED"

# Statuts d'inscription
ACTIVE = "ACTIVE"


@contextmanager
def _unit_of_work(db: Session):
    """Commit en sortie normale, rollback sur toute erreur."""
    try:
        yield
        db.commit()
    except OperationalError as exc:
        db.rollback()
        logger.error("Base de données indisponible : %s", exc)
        raise InfrastructureError("Base de données indisponible, réessayez plus tard.") from exc
    except Exception:
        db.rollback()
        raise


def derive_stage_statuses(
    stages: Sequence[Stage],
    stored: Mapping[int, str],
    enrolled: bool,
) -> List[str]:
    """
    Statut de chaque étape (stages triées par ordre) à partir des statuts stockés
    (stage_id → statut).

    1. Pas d'inscription → LOCKED partout
    2. Ligne existante → statut stocké tel quel
    3. Première étape sans ligne → PENDING
    4. Sinon PENDING si l'étape précédente est COMPLETED, LOCKED sinon
       (SKIPPED ne déverrouille pas la suite)
    """
    if not enrolled:
        return [LOCKED] * len(stages)

    statuses: List[str] = []
    for index, stage in enumerate(stages):
        if stage.id in stored:
            statuses.append(stored[stage.id])
        elif index == 0:
            statuses.append(PENDING)
        elif stored.get(stages[index - 1].id) == COMPLETED:
            statuses.append(PENDING)
        else:
            statuses.append(LOCKED)
    return statuses


def join_challenge(
    db: Session,
    user_id: int,
    challenge_id: int,
    now: Optional[datetime] = None,
    level_span: int = DEFAULT_SPAN,
) -> ChallengeProgressResponse:
    """
    Inscrit un utilisateur à un challenge et déverrouille la première étape.

    Vérifications, dans l'ordre :
    1. Pas déjà inscrit (AlreadyJoined)
    2. Niveau suffisant (LevelTooLow)
    3. Challenge actif et dans sa fenêtre de dates (ChallengeNotActive)
    4. Places disponibles (ChallengeFull)
    5. Au moins une étape (NoStages)
    """
    now = now or utcnow()

    with _unit_of_work(db):
        user = db.get(User, user_id)
        if user is None:
            raise NotFound(f"Utilisateur {user_id} introuvable.")
        # FOR UPDATE : sérialise les inscriptions au même challenge (plafond strict)
        challenge = db.get(Challenge, challenge_id, with_for_update=True)
        if challenge is None:
            raise NotFound(f"Challenge {challenge_id} introuvable.")

        if _find_progress(db, user_id, challenge_id) is not None:
            raise AlreadyJoined("Vous participez déjà à ce challenge.")

        user_level = build_resolver(db, level_span).resolve_level(user.xp or 0)
        if user_level < challenge.required_level:
            raise LevelTooLow(
                f"Niveau {challenge.required_level} requis (niveau actuel : {user_level}).",
                {"required_level": challenge.required_level, "user_level": user_level},
            )

        if not challenge.is_active or now < challenge.start_date or now > challenge.end_date:
            raise ChallengeNotActive("Ce challenge n'est pas ouvert actuellement.")

        if challenge.max_participants is not None:
            if count_participants(db, challenge_id) >= challenge.max_participants:
                raise ChallengeFull("Ce challenge a atteint son nombre maximum de participants.")

        stages = _load_stages(db, challenge_id)
        if not stages:
            raise NoStages("Ce challenge ne comporte aucune étape.")

        progress = ChallengeProgress(
            user_id=user_id,
            challenge_id=challenge_id,
            status=ACTIVE,
            joined_at=now,
        )
        db.add(progress)
        try:
            db.flush()  # Obtenir l'ID ; la contrainte unique arbitre les inscriptions simultanées
        except IntegrityError:
            raise AlreadyJoined("Vous participez déjà à ce challenge.")

        db.add(StageProgress(
            challenge_progress_id=progress.id,
            stage_id=stages[0].id,
            status=PENDING,
        ))

    logger.info("Utilisateur %s inscrit au challenge %s", user_id, challenge_id)
    return _to_progress_response(db, progress, challenge)


def get_stage_status(db: Session, user_id: int, stage_id: int) -> StageStatusResponse:
    """Statut courant d'une étape pour un utilisateur. Lecture pure."""
    stage = db.get(Stage, stage_id)
    if stage is None:
        raise NotFound(f"Étape {stage_id} introuvable.")

    progress = _find_progress(db, user_id, stage.challenge_id)
    if progress is None:
        return StageStatusResponse(stage_id=stage_id, status=LOCKED)

    stages = _load_stages(db, stage.challenge_id)
    stored = {stage_id_: row.status for stage_id_, row in _load_rows(db, progress.id).items()}
    statuses = derive_stage_statuses(stages, stored, enrolled=True)
    index = _index_of(stages, stage_id)
    return StageStatusResponse(stage_id=stage_id, status=statuses[index])


def submit_stage(
    db: Session,
    user_id: int,
    data: StageSubmission,
    now: Optional[datetime] = None,
    level_span: int = DEFAULT_SPAN,
) -> SubmissionResult:
    """
    Valide la preuve soumise pour une étape.

    Échecs, dans l'ordre : NotFound (étape inconnue ou utilisateur non inscrit),
    StageLocked (étape non PENDING), ChallengeWindowClosed (après end_date),
    InvalidProof (QR ne correspondant pas).

    En cas de succès, l'étape passe COMPLETED puis :
    - si ce n'est pas la dernière, l'étape suivante est déverrouillée (PENDING) ;
    - sinon le challenge passe COMPLETED et l'XP du challenge est attribuée,
      le niveau de l'utilisateur est recalculé.
    """
    now = now or utcnow()
    xp_awarded = 0

    with _unit_of_work(db):
        stage = db.get(Stage, data.stage_id)
        if stage is None:
            raise NotFound(f"Étape {data.stage_id} introuvable.")
        challenge = db.get(Challenge, stage.challenge_id)
        progress = _find_progress(db, user_id, stage.challenge_id)
        if progress is None:
            raise NotFound("Vous ne participez pas à ce challenge.")

        stages = _load_stages(db, challenge.id)
        rows = _load_rows(db, progress.id)
        statuses = derive_stage_statuses(
            stages, {sid: row.status for sid, row in rows.items()}, enrolled=True
        )
        index = _index_of(stages, stage.id)

        if statuses[index] != PENDING:
            logger.debug(
                "Soumission refusée : étape %s en statut %s (utilisateur %s)",
                stage.id, statuses[index], user_id,
            )
            if statuses[index] == COMPLETED:
                raise StageLocked("Cette étape a déjà été validée.")
            raise StageLocked("Cette étape n'est pas encore déverrouillée.")

        if now > challenge.end_date:
            raise ChallengeWindowClosed("Le challenge est terminé : les soumissions sont closes.")

        _check_proof(stage, data)

        row = rows.get(stage.id)
        if row is not None:
            result = db.execute(
                update(StageProgress)
                .where(StageProgress.id == row.id, StageProgress.status == PENDING)
                .values(
                    status=COMPLETED,
                    submission_type=data.submission_type,
                    content=data.content,
                    submitted_at=now,
                )
            )
            if result.rowcount != 1:
                raise StageLocked("Cette étape a déjà été validée.")
        else:
            row = StageProgress(
                challenge_progress_id=progress.id,
                stage_id=stage.id,
                status=COMPLETED,
                submission_type=data.submission_type,
                content=data.content,
                submitted_at=now,
            )
            db.add(row)
            try:
                db.flush()
            except IntegrityError:
                raise StageLocked("Cette étape a déjà été validée.")

        is_last = index == len(stages) - 1
        if not is_last:
            next_stage = stages[index + 1]
            if next_stage.id not in rows:
                db.add(StageProgress(
                    challenge_progress_id=progress.id,
                    stage_id=next_stage.id,
                    status=PENDING,
                ))
        else:
            result = db.execute(
                update(ChallengeProgress)
                .where(ChallengeProgress.id == progress.id, ChallengeProgress.status == ACTIVE)
                .values(status=COMPLETED, completed_at=now)
            )
            if result.rowcount != 1:
                raise StageLocked("Ce challenge est déjà terminé.")

            db.execute(
                update(User)
                .where(User.id == user_id)
                .values(xp=User.xp + challenge.xp_reward)
            )
            xp_awarded = challenge.xp_reward

        user = db.get(User, user_id)
        db.refresh(user)
        if is_last:
            user.level = build_resolver(db, level_span).resolve_level(user.xp)

    if xp_awarded:
        logger.info(
            "Challenge %s terminé par l'utilisateur %s : +%d XP (total %d, niveau %d)",
            challenge.id, user_id, xp_awarded, user.xp, user.level,
        )
    else:
        logger.info("Étape %s validée par l'utilisateur %s", stage.id, user_id)

    progress_response = _to_progress_response(db, progress, challenge)
    return SubmissionResult(
        stage=progress_response.stages[index],
        challenge_completed=is_last,
        challenge_progress=progress_response,
        xp_awarded=xp_awarded,
        user_xp=user.xp,
        user_level=user.level,
    )


def get_user_challenges(
    db: Session,
    user_id: int,
    status: Optional[str] = None,
) -> List[ChallengeProgressResponse]:
    """Inscriptions d'un utilisateur (filtrables par statut), avec le statut de chaque étape."""
    query = select(ChallengeProgress).where(ChallengeProgress.user_id == user_id)
    if status is not None:
        query = query.where(ChallengeProgress.status == status)
    query = query.order_by(ChallengeProgress.joined_at.desc(), ChallengeProgress.id.desc())

    progresses = db.execute(query).scalars().all()
    return [_to_progress_response(db, p) for p in progresses]


def get_user_progress(db: Session, user_id: int, challenge_id: int) -> Optional[ChallengeProgressResponse]:
    """Progression d'un utilisateur sur un challenge, ou None s'il n'y participe pas."""
    progress = _find_progress(db, user_id, challenge_id)
    if progress is None:
        return None
    return _to_progress_response(db, progress)


def count_participants(db: Session, challenge_id: int) -> int:
    """Nombre d'inscrits (calculé à la lecture, pas de compteur stocké)."""
    return db.execute(
        select(func.count())
        .select_from(ChallengeProgress)
        .where(ChallengeProgress.challenge_id == challenge_id)
    ).scalar() or 0


def _check_proof(stage: Stage, data: StageSubmission) -> None:
    """
    Étape QR : le contenu décodé doit correspondre exactement au QR attendu.
    Étape GPS : acceptée sans contrôle de distance (géorepérage désactivé).
    """
    if stage.qr_code is None:
        return
    if data.submission_type != "QR_CODE":
        raise InvalidProof("Cette étape se valide en scannant son QR code.")
    if data.content != stage.qr_code:
        logger.debug("QR invalide pour l'étape %s", stage.id)
        raise InvalidProof("QR code invalide pour cette étape.")


def _find_progress(db: Session, user_id: int, challenge_id: int) -> Optional[ChallengeProgress]:
    return db.execute(
        select(ChallengeProgress).where(
            ChallengeProgress.user_id == user_id,
            ChallengeProgress.challenge_id == challenge_id,
        )
    ).scalar()


def _load_stages(db: Session, challenge_id: int) -> List[Stage]:
    return list(db.execute(
        select(Stage).where(Stage.challenge_id == challenge_id).order_by(Stage.order)
    ).scalars().all())


def _load_rows(db: Session, progress_id: int) -> Dict[int, StageProgress]:
    rows = db.execute(
        select(StageProgress).where(StageProgress.challenge_progress_id == progress_id)
    ).scalars().all()
    return {row.stage_id: row for row in rows}


def _index_of(stages: Sequence[Stage], stage_id: int) -> int:
    for index, stage in enumerate(stages):
        if stage.id == stage_id:
            return index
    raise NotFound(f"Étape {stage_id} introuvable.")


def _to_progress_response(
    db: Session,
    progress: ChallengeProgress,
    challenge: Optional[Challenge] = None,
) -> ChallengeProgressResponse:
    """Construit la réponse avec le statut dérivé de chaque étape."""
    challenge = challenge or db.get(Challenge, progress.challenge_id)
    stages = _load_stages(db, progress.challenge_id)
    rows = _load_rows(db, progress.id)
    statuses = derive_stage_statuses(
        stages, {sid: row.status for sid, row in rows.items()}, enrolled=True
    )

    stage_items = []
    for stage, status in zip(stages, statuses):
        row = rows.get(stage.id)
        stage_items.append(StageProgressResponse(
            stage_id=stage.id,
            order=stage.order,
            title=stage.title,
            status=status,
            submission_type=row.submission_type if row is not None else None,
            submitted_at=row.submitted_at if row is not None else None,
        ))

    return ChallengeProgressResponse(
        id=progress.id,
        user_id=progress.user_id,
        challenge_id=progress.challenge_id,
        challenge_title=challenge.title,
        status=progress.status,
        joined_at=progress.joined_at,
        completed_at=progress.completed_at,
        completed_stages=sum(1 for s in statuses if s == COMPLETED),
        total_stages=len(stages),
        stages=stage_items,
    )
